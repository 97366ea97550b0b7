"""Tests for QR decoding (mocked OpenCV)."""

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from stockscan.scanner import ScanWorker, decode_frame, decode_image_file, decode_pixels

PAYLOAD = '{"qrId": "abc"}'


@pytest.fixture
def mock_cv2():
    """Inject a mock cv2 whose detector finds PAYLOAD on the first try."""
    mock = MagicMock()
    mock.cvtColor.side_effect = lambda image, code: image[..., 0]
    mock.bitwise_not.side_effect = lambda image: 255 - image
    mock.QRCodeDetector.return_value.detectAndDecode.return_value = (PAYLOAD, None, None)
    with patch.dict(sys.modules, {"cv2": mock}):
        yield mock


def _detector(mock_cv2):
    return mock_cv2.QRCodeDetector.return_value


class TestDecodePixels:
    def test_rgba_buffer(self, mock_cv2):
        assert decode_pixels(2, 3, bytes(2 * 3 * 4)) == PAYLOAD
        mock_cv2.cvtColor.assert_called_once()
        assert mock_cv2.cvtColor.call_args.args[1] is mock_cv2.COLOR_RGBA2GRAY

    def test_rgb_buffer(self, mock_cv2):
        decode_pixels(2, 2, bytes(2 * 2 * 3))
        assert mock_cv2.cvtColor.call_args.args[1] is mock_cv2.COLOR_RGB2GRAY

    def test_gray_buffer_is_not_converted(self, mock_cv2):
        assert decode_pixels(4, 4, bytearray(16)) == PAYLOAD
        mock_cv2.cvtColor.assert_not_called()
        gray = _detector(mock_cv2).detectAndDecode.call_args.args[0]
        assert gray.shape == (4, 4)

    def test_tries_inverted_image(self, mock_cv2):
        _detector(mock_cv2).detectAndDecode.side_effect = [
            ("", None, None),
            (PAYLOAD, None, None),
        ]
        assert decode_pixels(2, 2, bytes(4)) == PAYLOAD
        inverted = _detector(mock_cv2).detectAndDecode.call_args.args[0]
        assert (inverted == 255).all()

    def test_no_code(self, mock_cv2):
        _detector(mock_cv2).detectAndDecode.return_value = ("", None, None)
        assert decode_pixels(2, 2, bytes(16)) is None
        assert _detector(mock_cv2).detectAndDecode.call_count == 2

    @pytest.mark.parametrize(
        "width, height, size",
        [(0, 2, 4), (2, -1, 4), (2, 2, 0), (2, 2, 7), (2, 2, 8)],
    )
    def test_bad_buffer(self, mock_cv2, width, height, size):
        with pytest.raises(ValueError):
            decode_pixels(width, height, bytes(size))


def test_decode_frame(mock_cv2):
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    assert decode_frame(frame) == PAYLOAD
    assert mock_cv2.cvtColor.call_args.args[1] is mock_cv2.COLOR_BGR2GRAY


def test_decode_image_file(mock_cv2, tmp_path):
    mock_cv2.imread.return_value = np.zeros((4, 4, 3), dtype=np.uint8)
    assert decode_image_file(tmp_path / "label.png") == PAYLOAD
    mock_cv2.imread.assert_called_once_with(str(tmp_path / "label.png"))


def test_decode_image_file_unreadable(mock_cv2, tmp_path):
    mock_cv2.imread.return_value = None
    with pytest.raises(FileNotFoundError, match="Could not read image"):
        decode_image_file(tmp_path / "missing.png")


class TestScanWorker:
    @pytest.mark.asyncio
    async def test_decode(self, mock_cv2):
        worker = ScanWorker()
        assert await worker.decode(2, 2, bytes(16)) == PAYLOAD

    @pytest.mark.asyncio
    async def test_decode_file_propagates_errors(self, mock_cv2, tmp_path):
        mock_cv2.imread.return_value = None
        worker = ScanWorker()
        with pytest.raises(FileNotFoundError):
            await worker.decode_file(tmp_path / "missing.png")

    @pytest.mark.asyncio
    async def test_decode_frame(self, mock_cv2):
        worker = ScanWorker()
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        assert await worker.decode_frame(frame) == PAYLOAD
