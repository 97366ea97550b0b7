"""Tests for the scan camera module (mocked OpenCV)."""

import sys
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from stockscan.camera import FrameCapture, ScanCamera


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def mock_cv2():
    """Inject a mock cv2 module into sys.modules."""
    mock = MagicMock()
    with patch.dict(sys.modules, {"cv2": mock}):
        yield mock


def _open_camera(mock_cv2, ok=True):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    frame = np.zeros((480, 640, 3), dtype=np.uint8) if ok else None
    mock_cap.read.return_value = (ok, frame)
    mock_cv2.VideoCapture.return_value = mock_cap
    return mock_cap


class TestScanCamera:
    def test_capture_frame(self, mock_cv2):
        mock_cap = _open_camera(mock_cv2)

        frame = ScanCamera(camera_index=1).capture_frame()

        assert frame.shape == (480, 640, 3)
        mock_cv2.VideoCapture.assert_called_once_with(1)
        mock_cap.release.assert_called_once()

    def test_save_frame(self, mock_cv2, tmp_dir):
        """A captured frame is written as a JPEG and described by FrameCapture."""
        mock_cv2.imwrite.return_value = True
        save_dir = Path(tmp_dir) / "sub"
        frame = np.zeros((480, 640, 3), dtype=np.uint8)

        result = ScanCamera(camera_index=0, save_dir=str(save_dir)).save_frame(frame)

        assert isinstance(result, FrameCapture)
        assert result.camera_index == 0
        assert result.image_path.startswith(str(save_dir))
        assert result.captured_at  # ISO8601 string
        assert save_dir.exists()
        mock_cv2.imwrite.assert_called_once_with(result.image_path, frame)

    def test_camera_not_found(self, mock_cv2):
        """RuntimeError when camera cannot be opened."""
        mock_cap = MagicMock()
        mock_cap.isOpened.return_value = False
        mock_cv2.VideoCapture.return_value = mock_cap

        with pytest.raises(RuntimeError, match="Could not open camera 0"):
            ScanCamera().capture_frame()

    def test_read_failure(self, mock_cv2):
        """RuntimeError when frame read fails."""
        mock_cap = _open_camera(mock_cv2, ok=False)

        with pytest.raises(RuntimeError, match="Could not read a frame"):
            ScanCamera().capture_frame()
        mock_cap.release.assert_called_once()

    def test_list_cameras(self, mock_cv2):
        """list_cameras probes indices and returns available ones."""
        caps = {}
        for i in range(10):
            m = MagicMock()
            m.isOpened.return_value = i in (0, 2)
            caps[i] = m

        mock_cv2.VideoCapture.side_effect = lambda i: caps[i]

        assert ScanCamera.list_cameras() == [0, 2]
