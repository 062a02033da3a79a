"""Pattern-based detection of personal information in text and OCR output."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..models import EMPTY_RECT, PIIDetection, PIIType, TextFragment
from ..services.imaging import load_image
from ..services.ocr import TextRecognizer, recognize_text
from .rules import IMAGE_PII_FAMILIES, SSN_PATTERN, TEXT_PII_FAMILIES, PIIFamily, is_valid_ssn

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImageReading:
    """Decoded size, kept OCR fragments and the PII found in them."""

    width: int
    height: int
    fragments: tuple[TextFragment, ...] = ()
    detections: tuple[PIIDetection, ...] = ()


def _family_matches(family: PIIFamily, text: str) -> list[tuple[int, int, str]]:
    if family.type == PIIType.SSN:
        return [
            (match.start(), match.end(), match.group(0))
            for match in SSN_PATTERN.finditer(text)
            if is_valid_ssn(match.group(1), match.group(3), match.group(4))
        ]

    spans = [
        (match.start(), match.end(), match.group(0))
        for pattern in family.patterns
        for match in pattern.finditer(text)
    ]
    if not family.dedupe_spans:
        return spans

    # Variants of one family may match the same number; keep the earliest, longest span.
    spans.sort(key=lambda span: (span[0], -(span[1] - span[0])))
    kept: list[tuple[int, int, str]] = []
    last_end = -1
    for start, end, matched in spans:
        if start >= last_end:
            kept.append((start, end, matched))
            last_end = end
    return kept


class PIIDetector:
    """Find personal information with fixed-confidence pattern families.

    Matches from different families are all kept even when they overlap:
    the number of detections is a risk signal downstream.
    """

    def __init__(
        self,
        *,
        text_families: Sequence[PIIFamily] = TEXT_PII_FAMILIES,
        image_families: Sequence[PIIFamily] = IMAGE_PII_FAMILIES,
    ) -> None:
        self._text_families = tuple(text_families)
        self._image_families = tuple(image_families)

    def detect_in_text(self, text: str) -> list[PIIDetection]:
        if not text:
            return []
        detections: list[PIIDetection] = []
        for family in self._text_families:
            for _, _, matched in _family_matches(family, text):
                detections.append(
                    PIIDetection(
                        type=family.type,
                        confidence=family.confidence,
                        text=matched,
                        location=EMPTY_RECT,
                    )
                )
        return detections

    def detect_in_fragments(
        self,
        fragments: Iterable[TextFragment],
        *,
        image_width: float,
        image_height: float,
    ) -> list[PIIDetection]:
        """Check recognised text fragments and place each hit on the image.

        Confidence comes from the OCR engine rather than the family constant.
        """
        detections: list[PIIDetection] = []
        for fragment in fragments:
            if not fragment.text.strip():
                continue
            location = fragment.box.scaled(image_width, image_height)
            confidence = min(1.0, max(0.0, fragment.confidence))
            for family in self._image_families:
                for _, _, matched in _family_matches(family, fragment.text):
                    detections.append(
                        PIIDetection(
                            type=family.type,
                            confidence=confidence,
                            text=matched,
                            location=location,
                        )
                    )
        if detections:
            logger.debug("found %d PII detections in OCR output", len(detections))
        return detections

    async def read_image(
        self,
        image: bytes,
        recognizer: TextRecognizer | None,
        *,
        timeout: float,
        min_confidence: float = 0.0,
    ) -> ImageReading | None:
        """Decode ``image``, run OCR and detect PII in the recognised text.

        Returns ``None`` for bytes that are not an image. Fragments below
        ``min_confidence`` are dropped; OCR failure yields no fragments.
        """
        decoded = load_image(image)
        if decoded is None:
            return None
        width, height = decoded.size
        fragments = tuple(
            fragment
            for fragment in await recognize_text(recognizer, image, timeout=timeout)
            if fragment.confidence >= min_confidence
        )
        detections = self.detect_in_fragments(fragments, image_width=width, image_height=height)
        return ImageReading(
            width=width,
            height=height,
            fragments=fragments,
            detections=tuple(detections),
        )

    async def detect_in_image(
        self,
        image: bytes,
        recognizer: TextRecognizer | None,
        *,
        timeout: float,
        min_confidence: float = 0.0,
    ) -> list[PIIDetection]:
        reading = await self.read_image(
            image, recognizer, timeout=timeout, min_confidence=min_confidence
        )
        if reading is None:
            return []
        return list(reading.detections)
