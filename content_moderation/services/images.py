"""Image-level moderation heuristics and OCR integration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..core.config import get_settings
from ..models import Classification, ModerationFlag, PIIDetection, TextFragment, canonical_flags
from ..policies.classifier import KeywordTextClassifier, TextClassifier
from ..policies.pii import PIIDetector
from ..policies.rules import (
    IMAGE_BASELINE_CONFIDENCE,
    IMAGE_SMALL_CONFIDENCE,
    IMAGE_SMALL_DIMENSION,
)
from .ocr import TextRecognizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImageAnalysis:
    """Everything learned from one image: pixels, embedded text and PII."""

    flags: tuple[ModerationFlag, ...]
    confidence: float
    detected_pii: tuple[PIIDetection, ...] = ()
    recognized_text: str = ""
    width: int = 0
    height: int = 0

    @property
    def classification(self) -> Classification:
        return Classification(flags=self.flags, confidence=self.confidence)


def analyze_dimensions(width: float, height: float) -> Classification:
    """Pixel-level stub: images small in both dimensions look like spam."""
    if width < IMAGE_SMALL_DIMENSION and height < IMAGE_SMALL_DIMENSION:
        return Classification(flags=(ModerationFlag.SPAM,), confidence=IMAGE_SMALL_CONFIDENCE)
    return Classification(confidence=IMAGE_BASELINE_CONFIDENCE)


class ImageAnalyzer:
    """Classify an image and route its recognised text through PII and text checks."""

    def __init__(
        self,
        *,
        recognizer: TextRecognizer | None = None,
        pii_detector: PIIDetector | None = None,
        text_classifier: TextClassifier | None = None,
        ocr_timeout: float | None = None,
        ocr_min_confidence: float | None = None,
    ) -> None:
        settings = get_settings()
        self._recognizer = recognizer
        self._pii = pii_detector or PIIDetector()
        self._classifier = text_classifier or KeywordTextClassifier()
        self._ocr_timeout = ocr_timeout if ocr_timeout is not None else settings.ocr_timeout_seconds
        self._ocr_min_confidence = (
            ocr_min_confidence if ocr_min_confidence is not None else settings.ocr_min_confidence
        )

    async def analyze(self, image: bytes) -> ImageAnalysis:
        reading = await self._pii.read_image(
            image,
            self._recognizer,
            timeout=self._ocr_timeout,
            min_confidence=self._ocr_min_confidence,
        )
        if reading is None:
            return ImageAnalysis(flags=(), confidence=IMAGE_BASELINE_CONFIDENCE)

        width, height = reading.width, reading.height
        pixel_result = analyze_dimensions(width, height)
        fragments = reading.fragments
        detections = reading.detections
        recognized_text = _join_fragments(fragments)

        flags = list(pixel_result.flags)
        confidence = pixel_result.confidence
        if recognized_text.strip():
            text_result = self._classifier.classify(recognized_text)
            flags.extend(text_result.flags)
            confidence = min(confidence, text_result.confidence)

        logger.debug(
            "image %dx%d: %d OCR fragments, %d PII detections, flags=%s",
            width,
            height,
            len(fragments),
            len(detections),
            [str(flag) for flag in flags],
        )
        return ImageAnalysis(
            flags=canonical_flags(flags),
            confidence=confidence,
            detected_pii=tuple(detections),
            recognized_text=recognized_text,
            width=width,
            height=height,
        )


def _join_fragments(fragments: Sequence[TextFragment]) -> str:
    return "\n".join(fragment.text for fragment in fragments if fragment.text.strip())
