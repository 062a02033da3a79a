"""Blackout redaction of PII regions on submitted images."""
from __future__ import annotations

import logging
from typing import Sequence

from PIL import Image, ImageDraw, ImageFont

from ..core.config import get_settings
from ..models import PIIDetection
from .imaging import encode_image, load_image

logger = logging.getLogger(__name__)

LABEL_HEIGHT_RATIO = 0.3


class RedactionEngine:
    """Paint an opaque box and a centred label over every located detection."""

    def __init__(
        self,
        *,
        fill_opacity: float | None = None,
        max_font_size: int | None = None,
        label: str | None = None,
    ) -> None:
        settings = get_settings()
        self.fill_opacity = fill_opacity if fill_opacity is not None else settings.redaction_fill_opacity
        if not 0.8 <= self.fill_opacity <= 1.0:
            raise ValueError("fill_opacity must be between 0.8 and 1.0")
        self.max_font_size = max_font_size or settings.redaction_max_font_size
        self.label = label if label is not None else settings.redaction_label

    def redact(self, image: bytes, detections: Sequence[PIIDetection]) -> bytes:
        """Return a redacted copy of ``image``.

        Detections without a visual region are skipped; when nothing is left to
        paint, or the bytes are not a decodable image, the input is returned as is.
        """
        regions = [detection for detection in detections if not detection.location.is_empty]
        if not regions:
            return image

        source = load_image(image)
        if source is None:
            return image

        canvas = self.redact_image(source, regions)
        return encode_image(canvas, fmt=source.format)

    def redact_image(self, image: Image.Image, detections: Sequence[PIIDetection]) -> Image.Image:
        canvas = image.convert("RGBA")
        alpha = round(255 * self.fill_opacity)
        for detection in detections:
            box = detection.location
            if box.is_empty:
                continue
            # Each region is composited on its own so later boxes cover earlier labels.
            layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
            draw = ImageDraw.Draw(layer)
            bounds = (box.x, box.y, box.x + box.width, box.y + box.height)
            draw.rectangle(bounds, fill=(0, 0, 0, alpha))
            self._draw_label(draw, bounds, box.height)
            canvas = Image.alpha_composite(canvas, layer)
        logger.debug("redacted %d regions", len(detections))
        return canvas

    def _draw_label(self, draw: ImageDraw.ImageDraw, bounds: tuple[float, float, float, float], box_height: float) -> None:
        if not self.label:
            return
        font_size = max(1, min(int(box_height * LABEL_HEIGHT_RATIO), self.max_font_size))
        font = ImageFont.load_default(size=font_size)
        left, top, right, bottom = draw.textbbox((0, 0), self.label, font=font)
        x = (bounds[0] + bounds[2]) / 2 - (right - left) / 2 - left
        y = (bounds[1] + bounds[3]) / 2 - (bottom - top) / 2 - top
        draw.text((x, y), self.label, fill=(255, 255, 255, 255), font=font)
