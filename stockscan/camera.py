"""USB camera frame capture using OpenCV."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path


@dataclass
class FrameCapture:
    camera_index: int
    image_path: str
    captured_at: str  # ISO8601


class ScanCamera:
    """Grab single frames from a camera pointed at a product label."""

    def __init__(self, camera_index: int = 0, save_dir: str = "/tmp/stockscan") -> None:
        self._camera_index = camera_index
        self._save_dir = Path(save_dir)

    def capture_frame(self):
        """Capture one BGR frame from the configured camera."""
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        cap = cv2.VideoCapture(self._camera_index)
        if not cap.isOpened():
            raise RuntimeError(
                f"Could not open camera {self._camera_index}. "
                "Check that it is connected and not in use."
            )

        try:
            ret, frame = cap.read()
            if not ret or frame is None:
                raise RuntimeError(
                    f"Could not read a frame from camera {self._camera_index}."
                )
            return frame
        finally:
            cap.release()

    def save_frame(self, frame) -> FrameCapture:
        """Save a captured frame as a JPEG in the save directory."""
        import cv2

        self._save_dir.mkdir(parents=True, exist_ok=True)

        now = datetime.now(timezone.utc)
        filename = f"scan{self._camera_index}_{now.strftime('%Y%m%d_%H%M%S')}.jpg"
        filepath = self._save_dir / filename
        cv2.imwrite(str(filepath), frame)

        return FrameCapture(
            camera_index=self._camera_index,
            image_path=str(filepath),
            captured_at=now.isoformat(),
        )

    @staticmethod
    def list_cameras(max_check: int = 10) -> list[int]:
        """List available USB camera indices by probing."""
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        available: list[int] = []
        for i in range(max_check):
            cap = cv2.VideoCapture(i)
            if cap.isOpened():
                available.append(i)
                cap.release()
        return available
