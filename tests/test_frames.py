"""
Tests for the OpenCV-backed frame source.
"""

import cv2
import numpy as np
import pytest

from frames import VideoFileSource


@pytest.fixture
def clip(tmp_path):
    """Two-second 10 fps MJPG clip whose brightness rises frame by frame."""
    path = str(tmp_path / "clip.avi")
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG")
    for i in range(20):
        writer.write(np.full((48, 64, 3), i * 10, dtype=np.uint8))
    writer.release()
    return path


class TestVideoFileSource:

    def test_missing_file_is_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            VideoFileSource(str(tmp_path / "missing.mp4"))

    def test_reads_metadata(self, clip):
        with VideoFileSource(clip) as src:
            assert src.name == "clip.avi"
            assert (src.width, src.height) == (64, 48)
            assert src.duration == pytest.approx(2.0, abs=0.11)

    def test_seek_returns_rgb_frame(self, clip):
        with VideoFileSource(clip) as src:
            src.seek(0)
            frame = src.current_bitmap()
            assert frame.shape == (48, 64, 3)
            assert frame.dtype == np.uint8
            assert frame.mean() < 20

    def test_seek_past_end_is_clamped(self, clip):
        with VideoFileSource(clip) as src:
            src.seek(src.duration + 5)
            assert src.current_bitmap().mean() > 100

    def test_bitmap_before_seek_raises(self, clip):
        with VideoFileSource(clip) as src:
            with pytest.raises(ValueError):
                src.current_bitmap()
