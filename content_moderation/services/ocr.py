"""Text recognition back-ends used to read text embedded in images."""
from __future__ import annotations

import asyncio
import io
import logging
from collections import defaultdict
from typing import Any, Protocol, runtime_checkable

import httpx
import pytesseract
from PIL import Image

from ..core.config import get_settings
from ..core.errors import RecognitionError
from ..models import Rect, TextFragment

logger = logging.getLogger(__name__)


@runtime_checkable
class TextRecognizer(Protocol):
    """Anything that turns image bytes into positioned text fragments."""

    async def recognize(self, image: bytes) -> list[TextFragment]:
        ...


async def recognize_text(
    recognizer: TextRecognizer | None,
    image: bytes,
    *,
    timeout: float,
) -> list[TextFragment]:
    """Run ``recognizer`` with a timeout, degrading to no text on failure."""
    if recognizer is None or not image:
        return []
    try:
        return await asyncio.wait_for(recognizer.recognize(image), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("text recognition timed out after %.1fs; continuing without OCR", timeout)
    except RecognitionError as exc:
        logger.warning("text recognition failed; continuing without OCR: %s", exc)
    except Exception:
        logger.warning("text recognizer raised unexpectedly; continuing without OCR", exc_info=True)
    return []


class TesseractTextRecognizer:
    """Local OCR through the tesseract binary, grouped into text lines."""

    def __init__(self, *, tesseract_cmd: str | None = None, config: str = "--oem 3 --psm 11") -> None:
        cmd = tesseract_cmd or get_settings().tesseract_cmd
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd
        self._config = config

    async def recognize(self, image: bytes) -> list[TextFragment]:
        return await asyncio.to_thread(self._recognize_sync, image)

    def _recognize_sync(self, image: bytes) -> list[TextFragment]:
        try:
            with Image.open(io.BytesIO(image)) as pil_image:
                width, height = pil_image.size
                data = pytesseract.image_to_data(
                    pil_image.convert("RGB"),
                    config=self._config,
                    output_type=pytesseract.Output.DICT,
                )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError, RuntimeError) as exc:
            raise RecognitionError(str(exc)) from exc
        return _group_lines(data, width, height)


def _group_lines(data: dict[str, list[Any]], width: int, height: int) -> list[TextFragment]:
    lines: defaultdict[tuple[int, int, int], list[int]] = defaultdict(list)
    for index, word in enumerate(data.get("text", [])):
        if not str(word).strip() or float(data["conf"][index]) < 0:
            continue
        key = (data["block_num"][index], data["par_num"][index], data["line_num"][index])
        lines[key].append(index)

    fragments: list[TextFragment] = []
    for indices in lines.values():
        left = min(data["left"][i] for i in indices)
        top = min(data["top"][i] for i in indices)
        right = max(data["left"][i] + data["width"][i] for i in indices)
        bottom = max(data["top"][i] + data["height"][i] for i in indices)
        confidence = sum(float(data["conf"][i]) for i in indices) / len(indices) / 100.0
        fragments.append(
            TextFragment(
                text=" ".join(str(data["text"][i]) for i in indices),
                box=Rect(
                    x=left / width,
                    y=top / height,
                    width=(right - left) / width,
                    height=(bottom - top) / height,
                ),
                confidence=min(1.0, max(0.0, confidence)),
            )
        )
    return fragments


class HttpTextRecognizer:
    """Client for a remote OCR service.

    The service receives raw image bytes on ``POST /recognize`` and answers
    ``{"fragments": [{"text": ..., "box": {...}, "confidence": ...}]}`` with
    boxes normalised to the image size, origin top-left.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        url = base_url or settings.ocr_service_url
        if client is None and not url:
            raise ValueError("an OCR service URL or client is required")
        self._client = client or httpx.AsyncClient(
            base_url=url.rstrip("/"), timeout=timeout or settings.ocr_timeout_seconds
        )
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def recognize(self, image: bytes) -> list[TextFragment]:
        try:
            response = await self._client.post(
                "/recognize",
                content=image,
                headers={"Content-Type": "application/octet-stream"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RecognitionError(f"OCR service request failed: {exc}") from exc

        try:
            return [_fragment_from_payload(item) for item in payload.get("fragments", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise RecognitionError(f"malformed OCR response: {exc}") from exc


def _fragment_from_payload(item: dict[str, Any]) -> TextFragment:
    box = item.get("box") or {}
    return TextFragment(
        text=str(item["text"]),
        box=Rect(
            x=float(box.get("x", 0.0)),
            y=float(box.get("y", 0.0)),
            width=float(box.get("width", 0.0)),
            height=float(box.get("height", 0.0)),
        ),
        confidence=float(item.get("confidence", 0.0)),
    )
