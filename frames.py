# =============================================================================
# frames.py
# Frame sources: seek to a timestamp, then read that frame as an RGB array.
# =============================================================================

import os
from typing import Optional

import numpy as np
import cv2

from constants import SEEK_END_GUARD


class FrameSource:
    """
    Interface the pipeline reads frames through.

    Implementations expose `name`, `duration` (seconds), `width`, `height`,
    `seek(time)` which blocks until the frame at `time` is ready, and
    `current_bitmap()` returning that frame as an (H, W, 3) uint8 RGB array.
    """
    name: str = ""
    duration: float = 0.0
    width: int = 0
    height: int = 0

    def seek(self, time: float) -> None:
        raise NotImplementedError

    def current_bitmap(self) -> np.ndarray:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class VideoFileSource(FrameSource):
    """OpenCV-backed source for a video file on disk."""

    def __init__(self, path: str):
        self.path = path
        self.name = os.path.basename(path)
        self._cap = cv2.VideoCapture(path)
        if not self._cap.isOpened():
            self._cap.release()
            raise ValueError(f"Could not open video: {path}")

        self.fps          = self._cap.get(cv2.CAP_PROP_FPS) or 0.0
        self.width        = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height       = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.total_frames = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        if self.fps == 0:
            self._cap.release()
            raise ValueError("Could not read FPS from video.")
        self.duration = self.total_frames / self.fps
        self._frame: Optional[np.ndarray] = None

    def seek(self, time: float) -> None:
        # Seeking to the very end yields no frame on most containers.
        target = max(0.0, min(time, self.duration - SEEK_END_GUARD))
        self._cap.set(cv2.CAP_PROP_POS_MSEC, target * 1000)
        ret, frame = self._cap.read()
        if not ret:
            self._frame = None
            raise ValueError(f"No frame decoded at {target:.2f}s")
        self._frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def current_bitmap(self) -> np.ndarray:
        if self._frame is None:
            raise ValueError("No frame loaded; call seek() first.")
        return self._frame

    def close(self) -> None:
        self._cap.release()
