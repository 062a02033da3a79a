"""Moderation entry points combining PII detection, classification and policy."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..core.config import get_settings
from ..models import (
    ContentType,
    ModerationFlag,
    ModerationResult,
    PIIDetection,
    canonical_flags,
)
from ..policies.classifier import KeywordTextClassifier, TextClassifier
from ..policies.pii import PIIDetector
from .decision import decide, determine_severity, generate_reason
from .images import ImageAnalyzer
from .ocr import TextRecognizer
from .redaction import RedactionEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SubmissionItem:
    content_id: str
    content_type: ContentType
    text: str | None = None
    images: tuple[bytes, ...] = ()


def build_result(
    *,
    content_id: str,
    content_type: ContentType,
    flags: Iterable[ModerationFlag],
    confidence: float,
    detected_pii: Sequence[PIIDetection],
) -> ModerationResult:
    ordered = canonical_flags(flags)
    confidence = min(1.0, max(0.0, confidence))
    severity = determine_severity(ordered)
    return ModerationResult(
        content_id=content_id,
        content_type=content_type,
        status=decide(confidence, severity, len(detected_pii)),
        flags=ordered,
        confidence=confidence,
        severity=severity,
        reason=generate_reason(ordered),
        detected_pii=tuple(detected_pii),
    )


def combine_results(
    *,
    content_id: str,
    content_type: ContentType,
    results: Sequence[ModerationResult],
) -> ModerationResult:
    """Fold channel verdicts: union of flags, concatenated PII, weakest confidence."""
    if not results:
        return build_result(
            content_id=content_id,
            content_type=content_type,
            flags=(),
            confidence=1.0,
            detected_pii=(),
        )
    return build_result(
        content_id=content_id,
        content_type=content_type,
        flags=[flag for result in results for flag in result.flags],
        confidence=min(result.confidence for result in results),
        detected_pii=[detection for result in results for detection in result.detected_pii],
    )


class ModerationService:
    """Stateless moderation pipeline; safe to share between concurrent requests."""

    def __init__(
        self,
        *,
        recognizer: TextRecognizer | None = None,
        pii_detector: PIIDetector | None = None,
        text_classifier: TextClassifier | None = None,
        image_analyzer: ImageAnalyzer | None = None,
        redaction_engine: RedactionEngine | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        settings = get_settings()
        self._pii = pii_detector or PIIDetector()
        self._classifier = text_classifier or KeywordTextClassifier()
        self._images = image_analyzer or ImageAnalyzer(
            recognizer=recognizer,
            pii_detector=self._pii,
            text_classifier=self._classifier,
        )
        self._redaction = redaction_engine or RedactionEngine()
        self._max_concurrency = max_concurrency or settings.max_concurrency

    async def moderate_text(
        self,
        text: str,
        *,
        content_id: str,
        content_type: ContentType = ContentType.POST,
    ) -> ModerationResult:
        result = self._text_channel(text, content_id=content_id, content_type=content_type)
        self._log_verdict(result)
        return result

    async def moderate_image(
        self,
        image: bytes,
        *,
        content_id: str,
        content_type: ContentType = ContentType.IMAGE,
    ) -> ModerationResult:
        result = await self._image_channel(image, content_id=content_id, content_type=content_type)
        self._log_verdict(result)
        return result

    async def moderate_review(
        self,
        text: str,
        images: Sequence[bytes],
        *,
        content_id: str,
        content_type: ContentType = ContentType.REVIEW,
    ) -> ModerationResult:
        """Moderate a text and its images as one submission.

        Channels run concurrently; cancelling the call cancels every channel
        and no partial verdict is produced.
        """
        text_result = self._text_channel(text, content_id=content_id, content_type=content_type)
        image_results = await self._image_channels(images, content_id=content_id, content_type=content_type)
        result = self._fold([text_result, *image_results], content_id=content_id, content_type=content_type)
        self._log_verdict(result)
        return result

    moderate_composite = moderate_review

    async def moderate_images(
        self,
        images: Sequence[bytes],
        *,
        content_id: str,
        content_type: ContentType = ContentType.IMAGE,
    ) -> ModerationResult:
        """Moderate several images of one submission as a single verdict."""
        image_results = await self._image_channels(images, content_id=content_id, content_type=content_type)
        result = self._fold(image_results, content_id=content_id, content_type=content_type)
        self._log_verdict(result)
        return result

    def redact(self, image: bytes, detections: Sequence[PIIDetection]) -> bytes:
        return self._redaction.redact(image, detections)

    async def moderate_submission(self, item: SubmissionItem) -> ModerationResult:
        """Route a submission to the moderation call matching its content type."""
        text = item.text if item.text and item.text.strip() else None
        images = tuple(item.images)

        if item.content_type == ContentType.REVIEW:
            if text is not None or images:
                return await self.moderate_review(text or "", images, content_id=item.content_id)
        elif item.content_type in (ContentType.POST, ContentType.COMMENT):
            if text is not None:
                return await self.moderate_text(
                    text, content_id=item.content_id, content_type=item.content_type
                )
        elif images:
            return await self.moderate_images(
                images, content_id=item.content_id, content_type=item.content_type
            )

        return combine_results(content_id=item.content_id, content_type=item.content_type, results=())

    async def moderate_batch(self, items: Sequence[SubmissionItem]) -> list[ModerationResult]:
        """Moderate many submissions concurrently, preserving input order."""
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def run(item: SubmissionItem) -> ModerationResult:
            async with semaphore:
                return await self.moderate_submission(item)

        return list(await asyncio.gather(*(run(item) for item in items)))

    @staticmethod
    def _log_verdict(result: ModerationResult) -> None:
        logger.info("moderation verdict %s", result.summary())

    def _text_channel(self, text: str, *, content_id: str, content_type: ContentType) -> ModerationResult:
        text = text or ""
        classification = self._classifier.classify(text)
        return build_result(
            content_id=content_id,
            content_type=content_type,
            flags=classification.flags,
            confidence=classification.confidence,
            detected_pii=self._pii.detect_in_text(text),
        )

    async def _image_channel(
        self, image: bytes, *, content_id: str, content_type: ContentType
    ) -> ModerationResult:
        analysis = await self._images.analyze(image)
        return build_result(
            content_id=content_id,
            content_type=content_type,
            flags=analysis.flags,
            confidence=analysis.confidence,
            detected_pii=analysis.detected_pii,
        )

    async def _image_channels(
        self, images: Sequence[bytes], *, content_id: str, content_type: ContentType
    ) -> list[ModerationResult]:
        return list(
            await asyncio.gather(
                *(
                    self._image_channel(image, content_id=content_id, content_type=content_type)
                    for image in images
                )
            )
        )

    @staticmethod
    def _fold(
        channels: Sequence[ModerationResult], *, content_id: str, content_type: ContentType
    ) -> ModerationResult:
        for channel in channels:
            logger.debug("channel verdict %s", channel.summary())
        return combine_results(content_id=content_id, content_type=content_type, results=channels)
