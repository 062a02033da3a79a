"""End-to-end tests for the moderation service."""
import asyncio
import io

import pytest
from PIL import Image

from ..models import (
    ContentType,
    ModerationFlag,
    ModerationSeverity,
    ModerationStatus,
    PIIDetection,
    PIIType,
    Rect,
    TextFragment,
)
from ..services.moderation import ModerationService, SubmissionItem, combine_results


def _png(width: int = 400, height: int = 300) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


class StubRecognizer:
    def __init__(self, fragments: list[TextFragment]) -> None:
        self.fragments = fragments

    async def recognize(self, image: bytes) -> list[TextFragment]:
        return self.fragments


def test_phone_number_in_text_is_flagged() -> None:
    result = asyncio.run(ModerationService().moderate_text("Call me at 555-123-4567", content_id="p-1"))

    assert result.status == ModerationStatus.FLAGGED
    assert [d.type for d in result.detected_pii] == [PIIType.PHONE_NUMBER]
    assert result.detected_pii[0].confidence == pytest.approx(0.90)
    assert result.content_id == "p-1"
    assert result.content_type == ContentType.POST


def test_harassment_is_rejected() -> None:
    result = asyncio.run(
        ModerationService().moderate_text("you are worthless, kill yourself", content_id="p-2")
    )

    assert result.flags == (ModerationFlag.HARASSMENT,)
    assert result.confidence == pytest.approx(0.84)
    assert result.severity == ModerationSeverity.HIGH
    assert result.status == ModerationStatus.REJECTED
    assert result.reason == "Harassment"
    assert result.requires_human_review


def test_shouted_promotion_waits_for_review() -> None:
    result = asyncio.run(
        ModerationService().moderate_text("BUY NOW!!!! LIMITED TIME!!!!", content_id="p-3")
    )

    assert result.flags == (ModerationFlag.SPAM,)
    assert result.confidence == pytest.approx(0.65)
    assert result.severity == ModerationSeverity.LOW
    assert result.status == ModerationStatus.PENDING


def test_clean_text_is_approved() -> None:
    result = asyncio.run(
        ModerationService().moderate_text(
            "The blender arrived on time and works well", content_id="p-4", content_type=ContentType.COMMENT
        )
    )

    assert result.status == ModerationStatus.APPROVED
    assert result.flags == ()
    assert result.confidence == pytest.approx(1.0)
    assert result.reason is None
    assert result.content_type == ContentType.COMMENT


def test_plain_image_is_pending_at_baseline_confidence() -> None:
    result = asyncio.run(ModerationService().moderate_image(_png(), content_id="i-1"))

    assert result.confidence == pytest.approx(0.8)
    assert result.severity == ModerationSeverity.LOW
    assert result.status == ModerationStatus.PENDING
    assert result.content_type == ContentType.IMAGE


def test_review_with_phone_number_in_image_is_flagged() -> None:
    recognizer = StubRecognizer(
        [TextFragment(text="text 555-123-4567", box=Rect(0.1, 0.1, 0.5, 0.2), confidence=0.8)]
    )
    service = ModerationService(recognizer=recognizer)

    result = asyncio.run(
        service.moderate_review("Sturdy tent, kept us dry all weekend", [_png()], content_id="r-1")
    )

    assert result.status == ModerationStatus.FLAGGED
    assert result.content_type == ContentType.REVIEW
    assert [d.type for d in result.detected_pii] == [PIIType.PHONE_NUMBER]
    assert not result.detected_pii[0].location.is_empty


def test_review_takes_weakest_confidence_across_channels() -> None:
    result = asyncio.run(
        ModerationService().moderate_review(
            "Lovely colours and sturdy paper", [_png(), _png(50, 50), _png(300, 300)], content_id="r-2"
        )
    )

    assert result.confidence == pytest.approx(0.7)
    assert result.flags == (ModerationFlag.SPAM,)
    assert result.status == ModerationStatus.PENDING


def test_review_unions_flags_from_every_channel() -> None:
    result = asyncio.run(
        ModerationService().moderate_review(
            "you are worthless, kill yourself", [_png(40, 40)], content_id="r-3"
        )
    )

    assert result.flags == (ModerationFlag.HARASSMENT, ModerationFlag.SPAM)
    assert result.severity == ModerationSeverity.HIGH
    assert result.confidence == pytest.approx(0.7)
    assert result.status == ModerationStatus.REJECTED
    assert result.reason == "Multiple policy violations detected: Harassment, Spam"


def test_review_without_images_matches_text_moderation() -> None:
    service = ModerationService()
    text = "BUY NOW!!!! LIMITED TIME!!!!"

    review = asyncio.run(service.moderate_review(text, [], content_id="r-4"))
    post = asyncio.run(service.moderate_text(text, content_id="r-4"))

    assert review.flags == post.flags
    assert review.confidence == pytest.approx(post.confidence)
    assert review.status == post.status


def test_combine_results_without_channels_is_neutral() -> None:
    result = combine_results(content_id="x", content_type=ContentType.POST, results=())

    assert result.status == ModerationStatus.APPROVED
    assert result.confidence == pytest.approx(1.0)


def test_redact_with_region_less_detections_returns_input() -> None:
    image = _png()
    detections = [PIIDetection(type=PIIType.EMAIL, confidence=0.95, text="buyer@example.com")]

    assert ModerationService().redact(image, detections) == image
    assert ModerationService().redact(image, []) == image


def test_submission_routing() -> None:
    service = ModerationService()
    items = [
        SubmissionItem("s-1", ContentType.POST, text="you are worthless, kill yourself"),
        SubmissionItem("s-2", ContentType.IMAGE, images=(_png(40, 40),)),
        SubmissionItem("s-3", ContentType.REVIEW, text="  ", images=(_png(),)),
        SubmissionItem("s-4", ContentType.COMMENT),
        SubmissionItem("s-5", ContentType.REVIEW, text="Lovely colours", images=(_png(40, 40),)),
    ]

    results = asyncio.run(service.moderate_batch(items))

    assert [result.content_id for result in results] == ["s-1", "s-2", "s-3", "s-4", "s-5"]
    assert results[0].status == ModerationStatus.REJECTED
    assert results[1].flags == (ModerationFlag.SPAM,)
    assert results[2].confidence == pytest.approx(0.8)
    assert results[2].content_type == ContentType.REVIEW
    assert results[3].status == ModerationStatus.APPROVED
    assert results[4].flags == (ModerationFlag.SPAM,)


def test_batch_respects_concurrency_limit() -> None:
    asyncio.run(_batch_respects_concurrency_limit())


async def _batch_respects_concurrency_limit() -> None:
    active = 0
    peak = 0

    class CountingRecognizer:
        async def recognize(self, image: bytes) -> list[TextFragment]:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return []

    service = ModerationService(recognizer=CountingRecognizer(), max_concurrency=2)
    items = [SubmissionItem(f"b-{index}", ContentType.IMAGE, images=(_png(),)) for index in range(6)]

    results = await service.moderate_batch(items)

    assert len(results) == 6
    assert peak <= 2


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Contact me at 555-123-4567", ModerationStatus.FLAGGED),
        ("Just a normal friendly comment about my great first date.", ModerationStatus.APPROVED),
    ],
)
def test_reference_messages(text: str, expected: ModerationStatus) -> None:
    result = asyncio.run(ModerationService().moderate_text(text, content_id="ref"))

    assert result.status == expected
    assert result.flags == ()


PII_SAMPLES = [
    "Contact me at 555-123-4567",
    "BUY NOW!!!! email deals@shop.example.com",
    "you are worthless, my name is Sam Jones",
    "send nudes, you look sexy, follow @hot_pics",
    "ssn 123-45-6789",
    "my card is 4111-1111-1111-1111 lol",
    "I live at 12 Oak Avenue",
]


@pytest.mark.parametrize("text", PII_SAMPLES)
def test_detected_pii_always_means_flagged(text: str) -> None:
    service = ModerationService()

    single = asyncio.run(service.moderate_text(text, content_id="g-1"))
    composite = asyncio.run(service.moderate_review(text, [_png(40, 40), _png()], content_id="g-2"))

    for result in (single, composite):
        assert result.detected_pii
        assert result.status == ModerationStatus.FLAGGED
        assert 0.0 <= result.confidence <= 1.0


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("well damn, that was a long day at the office", ModerationStatus.FLAGGED),
        ("damn this shit keeps breaking every week", ModerationStatus.PENDING),
    ],
)
def test_profanity_status(text: str, expected: ModerationStatus) -> None:
    result = asyncio.run(ModerationService().moderate_text(text, content_id="prof"))

    assert result.flags == (ModerationFlag.INAPPROPRIATE_CONTENT,)
    assert result.severity == ModerationSeverity.MEDIUM
    assert result.status == expected


class BrokenRecognizer:
    async def recognize(self, image: bytes) -> list[TextFragment]:
        raise RuntimeError("engine crashed")


def test_recognizer_crash_still_yields_verdict() -> None:
    service = ModerationService(recognizer=BrokenRecognizer())

    result = asyncio.run(
        service.moderate_review("Lovely colours", [_png(), _png(300, 300)], content_id="c-1")
    )

    assert result.detected_pii == ()
    assert result.confidence == pytest.approx(0.8)
    assert result.status == ModerationStatus.PENDING


class PerImageRecognizer:
    def __init__(self, fragments_by_image: dict[bytes, list[TextFragment]]) -> None:
        self.fragments_by_image = fragments_by_image

    async def recognize(self, image: bytes) -> list[TextFragment]:
        return self.fragments_by_image.get(image, [])


def _phone_on_second_image() -> tuple[bytes, bytes, PerImageRecognizer]:
    first, second = _png(), _png(320, 240)
    recognizer = PerImageRecognizer(
        {second: [TextFragment(text="call 555-123-4567", box=Rect(0, 0, 0.5, 0.1), confidence=0.9)]}
    )
    return first, second, recognizer


def test_image_only_review_checks_every_image() -> None:
    first, second, recognizer = _phone_on_second_image()
    service = ModerationService(recognizer=recognizer)

    result = asyncio.run(
        service.moderate_submission(SubmissionItem("s-6", ContentType.REVIEW, images=(first, second)))
    )

    assert [d.type for d in result.detected_pii] == [PIIType.PHONE_NUMBER]
    assert result.status == ModerationStatus.FLAGGED
    assert result.content_type == ContentType.REVIEW


def test_multi_image_submission_checks_every_image() -> None:
    first, second, recognizer = _phone_on_second_image()
    service = ModerationService(recognizer=recognizer)

    result = asyncio.run(
        service.moderate_submission(SubmissionItem("s-7", ContentType.IMAGE, images=(first, second)))
    )

    assert [d.type for d in result.detected_pii] == [PIIType.PHONE_NUMBER]
    assert result.status == ModerationStatus.FLAGGED
    assert result.content_type == ContentType.IMAGE
