"""Image preparation: bound an uploaded image to a transport-ready PNG payload.

Resizing exists only to cap upload size: images wider than the maximum are
downsampled with aspect preserved, narrower ones pass through at original
size. Decoding runs off the event loop and is bounded by a timeout so a
malformed input fails fast with ImageDecodeError instead of hanging.
"""

from __future__ import annotations

import asyncio
import io
import logging

from PIL import Image, UnidentifiedImageError

from phiscan.errors import ImageDecodeError
from phiscan.models.analysis import EncodedPayload

logger = logging.getLogger(__name__)

MAX_WIDTH = 1024
OUTPUT_FORMAT = "PNG"
OUTPUT_MIME_TYPE = "image/png"
DEFAULT_DECODE_TIMEOUT = 10.0

_DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, SyntaxError, EOFError, Image.DecompressionBombError)


def target_size(width: int, height: int, max_width: int = MAX_WIDTH) -> tuple[int, int]:
    """Output size for a (width, height) source. Never upscales."""
    scale = min(1.0, max_width / width)
    if scale == 1.0:
        return width, height
    return max(1, round(width * scale)), max(1, round(height * scale))


def _measure_sync(source: bytes) -> tuple[int, int]:
    try:
        with Image.open(io.BytesIO(source)) as img:
            return img.size
    except _DECODE_ERRORS as e:
        raise ImageDecodeError(f"Unreadable image: {e}") from e


def _encode_sync(source: bytes, max_width: int) -> EncodedPayload:
    try:
        with Image.open(io.BytesIO(source)) as img:
            img.load()
            width, height = img.size
            size = target_size(width, height, max_width)

            frame = img
            if frame.mode not in ("RGB", "RGBA"):
                has_alpha = "A" in frame.getbands() or "transparency" in frame.info
                frame = frame.convert("RGBA" if has_alpha else "RGB")
            if size != (width, height):
                frame = frame.resize(size, Image.Resampling.LANCZOS)
                logger.debug("Resized image %dx%d -> %dx%d", width, height, size[0], size[1])

            buf = io.BytesIO()
            frame.save(buf, format=OUTPUT_FORMAT)
    except _DECODE_ERRORS as e:
        raise ImageDecodeError(f"Unreadable image: {e}") from e

    return EncodedPayload(data=buf.getvalue(), mime_type=OUTPUT_MIME_TYPE, width=size[0], height=size[1])


async def _bounded(fn, *args, timeout: float):
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout)
    except asyncio.TimeoutError as e:
        raise ImageDecodeError(f"Image decoding did not complete within {timeout:.1f}s") from e


async def measure(source: bytes, *, timeout: float = DEFAULT_DECODE_TIMEOUT) -> tuple[int, int]:
    """Pixel extents (width, height) of an encoded image, read from its header."""
    return await _bounded(_measure_sync, source, timeout=timeout)


async def prepare(
    source: bytes,
    *,
    max_width: int = MAX_WIDTH,
    timeout: float = DEFAULT_DECODE_TIMEOUT,
) -> EncodedPayload:
    """Decode, downsample to max_width and re-encode as PNG.

    Raises:
        ImageDecodeError: if the source cannot be decoded, or decoding
            outlasts the timeout.
    """
    return await _bounded(_encode_sync, source, max_width, timeout=timeout)
