"""Tests for PII detection in text and recognised image text."""
import asyncio
import io

import pytest
from PIL import Image

from ..core.errors import RulePatternError
from ..models import EMPTY_RECT, PIIType, Rect, TextFragment
from ..policies.pii import PIIDetector
from ..policies.rules import _compile, is_valid_ssn


def _types(detections) -> list[PIIType]:
    return [detection.type for detection in detections]


def _png(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


class StubRecognizer:
    def __init__(self, fragments: list[TextFragment]) -> None:
        self.fragments = fragments

    async def recognize(self, image: bytes) -> list[TextFragment]:
        return self.fragments


def test_phone_number_detected_once_with_fixed_confidence() -> None:
    detections = PIIDetector().detect_in_text("Call me at 555-123-4567")

    assert _types(detections) == [PIIType.PHONE_NUMBER]
    assert detections[0].confidence == pytest.approx(0.90)
    assert detections[0].text == "555-123-4567"
    assert detections[0].location == EMPTY_RECT


@pytest.mark.parametrize(
    "text",
    ["555.123.4567", "(555) 123-4567", "+1 555 123 4567"],
)
def test_phone_number_variants(text: str) -> None:
    detections = PIIDetector().detect_in_text(f"reach me on {text} tonight")

    assert _types(detections) == [PIIType.PHONE_NUMBER]


def test_email_and_handle_are_separate_detections() -> None:
    detections = PIIDetector().detect_in_text("write to buyer@example.com or follow @sunny_day")

    assert PIIType.EMAIL in _types(detections)
    assert _types(detections).count(PIIType.SOCIAL_MEDIA) == 1
    email = next(d for d in detections if d.type == PIIType.EMAIL)
    assert email.text == "buyer@example.com"
    assert email.confidence == pytest.approx(0.95)


def test_social_media_profile_url() -> None:
    detections = PIIDetector().detect_in_text("see instagram.com/sunny.day for pics")

    assert _types(detections) == [PIIType.SOCIAL_MEDIA]
    assert detections[0].confidence == pytest.approx(0.85)


def test_name_introductions() -> None:
    detector = PIIDetector()

    assert _types(detector.detect_in_text("Hi, my name is Alice Smith")) == [PIIType.NAME]
    assert _types(detector.detect_in_text("call me Bob later")) == [PIIType.NAME]
    assert detector.detect_in_text("my name is not important") == []


def test_street_address() -> None:
    detections = PIIDetector().detect_in_text("I live at 42 Maple Street near the park")

    assert _types(detections) == [PIIType.ADDRESS]
    assert detections[0].confidence == pytest.approx(0.80)


def test_credit_card_number() -> None:
    detections = PIIDetector().detect_in_text("card 4111 1111 1111 1111 thanks")

    assert _types(detections) == [PIIType.CREDIT_CARD]


def test_ssn_requires_valid_structure() -> None:
    detector = PIIDetector()

    assert _types(detector.detect_in_text("ssn 123-45-6789")) == [PIIType.SSN]
    assert detector.detect_in_text("ssn 000-45-6789") == []
    assert detector.detect_in_text("ssn 666-45-6789") == []
    assert detector.detect_in_text("ssn 912-45-6789") == []
    assert detector.detect_in_text("ssn 123-00-6789") == []
    assert detector.detect_in_text("ssn 123-45-0000") == []


def test_ssn_separators_must_match() -> None:
    detector = PIIDetector()

    assert _types(detector.detect_in_text("id 123456789")) == [PIIType.SSN]
    assert detector.detect_in_text("id 123-456789") == []


def test_is_valid_ssn() -> None:
    assert is_valid_ssn("123", "45", "6789")
    assert not is_valid_ssn("999", "45", "6789")


def test_empty_and_clean_text_have_no_detections() -> None:
    detector = PIIDetector()

    assert detector.detect_in_text("") == []
    assert detector.detect_in_text("What a lovely drawing of a cat") == []


def test_invalid_pattern_fails_at_compile_time() -> None:
    with pytest.raises(RulePatternError) as excinfo:
        _compile("broken", [r"(unclosed"])

    assert excinfo.value.family == "broken"
    assert excinfo.value.pattern == "(unclosed"


def test_fragments_are_placed_on_the_image() -> None:
    fragment = TextFragment(
        text="text me 555-123-4567",
        box=Rect(x=0.1, y=0.5, width=0.5, height=0.1),
        confidence=0.6,
    )

    detections = PIIDetector().detect_in_fragments([fragment], image_width=200, image_height=100)

    assert len(detections) == 1
    detection = detections[0]
    assert detection.type == PIIType.PHONE_NUMBER
    assert detection.text == "555-123-4567"
    assert detection.confidence == pytest.approx(0.6)
    assert detection.location.x == pytest.approx(20)
    assert detection.location.y == pytest.approx(50)
    assert detection.location.width == pytest.approx(100)
    assert detection.location.height == pytest.approx(10)


def test_fragments_only_use_image_families() -> None:
    fragment = TextFragment(text="my name is Alice Smith", box=Rect(0, 0, 1, 1), confidence=0.9)

    assert PIIDetector().detect_in_fragments([fragment], image_width=10, image_height=10) == []


def test_detect_in_image_uses_recognizer() -> None:
    asyncio.run(_detect_in_image())


async def _detect_in_image() -> None:
    recognizer = StubRecognizer(
        [TextFragment(text="mail buyer@example.com", box=Rect(0, 0, 0.5, 0.5), confidence=0.8)]
    )
    detections = await PIIDetector().detect_in_image(_png(300, 200), recognizer, timeout=1.0)

    assert _types(detections) == [PIIType.EMAIL]
    assert detections[0].location == Rect(0, 0, 150, 100)


def test_detect_in_image_without_recognizer_or_pixels() -> None:
    detector = PIIDetector()

    assert asyncio.run(detector.detect_in_image(_png(300, 200), None, timeout=1.0)) == []
    assert asyncio.run(detector.detect_in_image(b"not an image", StubRecognizer([]), timeout=1.0)) == []


INVALID_SSN_PARTS = (
    [(area, "45", "6789") for area in ["000", "666", *(f"9{n:02d}" for n in range(100))]]
    + [("123", "00", "6789"), ("123", "45", "0000"), ("555", "00", "0000")]
)


@pytest.mark.parametrize("separator", ["-", ""])
def test_no_ssn_for_structurally_invalid_numbers(separator: str) -> None:
    detector = PIIDetector()

    for area, group, serial in INVALID_SSN_PARTS:
        value = separator.join((area, group, serial))
        assert not is_valid_ssn(area, group, serial)
        assert PIIType.SSN not in _types(detector.detect_in_text(f"number {value} here")), value
