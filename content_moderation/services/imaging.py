"""Decoding and encoding helpers for submitted image bytes."""
from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

Image.MAX_IMAGE_PIXELS = 64_000_000


def load_image(data: bytes) -> Image.Image | None:
    """Decode ``data`` into a fully loaded image, or ``None`` when it is not an image."""
    if not data:
        return None
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("could not decode image payload (%d bytes): %s", len(data), exc)
        return None
    return image


def encode_image(image: Image.Image, *, fmt: str | None = None) -> bytes:
    """Serialise ``image``; JPEG sources stay JPEG, everything else becomes PNG."""
    target = (fmt or "PNG").upper()
    if target in ("JPEG", "JPG"):
        target = "JPEG"
        image = image.convert("RGB")
    elif target != "PNG":
        target = "PNG"
    buffer = io.BytesIO()
    image.save(buffer, format=target)
    return buffer.getvalue()
