"""QR code decoding with OpenCV, off the event loop."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)


def _cv2():
    try:
        import cv2
    except ImportError:
        raise ImportError(
            "opencv-python is required: pip install opencv-python"
        ) from None
    return cv2


def decode_pixels(width: int, height: int, data: bytes | bytearray | memoryview) -> str | None:
    """Decode a QR code from a raw pixel buffer.

    The buffer holds ``width * height`` pixels with 1 (gray), 3 (RGB) or
    4 (RGBA) bytes each, row-major, as delivered by a canvas or a camera.

    Returns:
        The decoded text, or None if no code was found.

    Raises:
        ValueError: If the buffer does not match the dimensions.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid image size: {width}x{height}")

    buf = np.frombuffer(bytes(data), dtype=np.uint8)
    pixels = width * height
    if buf.size == 0 or buf.size % pixels:
        raise ValueError(
            f"buffer of {buf.size} bytes does not match a {width}x{height} image"
        )
    channels = buf.size // pixels
    if channels not in (1, 3, 4):
        raise ValueError(f"unsupported pixel format: {channels} bytes per pixel")

    cv2 = _cv2()
    if channels == 1:
        gray = buf.reshape((height, width))
    else:
        image = buf.reshape((height, width, channels))
        code = cv2.COLOR_RGBA2GRAY if channels == 4 else cv2.COLOR_RGB2GRAY
        gray = cv2.cvtColor(image, code)
    return _detect(cv2, gray)


def decode_frame(frame) -> str | None:
    """Decode a QR code from a BGR frame as returned by OpenCV."""
    cv2 = _cv2()
    gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    return _detect(cv2, gray)


def decode_image_file(path: str | Path) -> str | None:
    """Decode a QR code from an image file (PNG, JPEG, ...).

    Raises:
        FileNotFoundError: If the file cannot be read as an image.
    """
    cv2 = _cv2()
    frame = cv2.imread(str(path))
    if frame is None:
        raise FileNotFoundError(f"Could not read image: {path}")
    return decode_frame(frame)


def _detect(cv2, gray) -> str | None:
    # Try the image as-is, then inverted (light code on dark background)
    detector = cv2.QRCodeDetector()
    for candidate in (gray, cv2.bitwise_not(gray)):
        text, _points, _straight = detector.detectAndDecode(candidate)
        if text:
            return text
    return None


class ScanWorker:
    """Runs QR decoding in a worker thread, one request at a time."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    async def decode(self, width: int, height: int, data: bytes) -> str | None:
        async with self._lock:
            return await asyncio.to_thread(decode_pixels, width, height, data)

    async def decode_frame(self, frame) -> str | None:
        async with self._lock:
            return await asyncio.to_thread(decode_frame, frame)

    async def decode_file(self, path: str | Path) -> str | None:
        async with self._lock:
            logger.debug("Decoding QR code from %s", path)
            return await asyncio.to_thread(decode_image_file, path)
