"""
Pytest configuration and shared fixtures: a scriptable detector and an
in-memory frame source.
"""

import threading

import numpy as np
import pytest

from ai import ModelCache
from frames import FrameSource
from models import Detection


class FakeDetector:
    """Detector whose output is produced by `respond(frame, min_score)`."""

    def __init__(self, respond=None):
        self.respond = respond or (lambda frame, min_score: [])
        self.calls = []
        self.lock = threading.Lock()

    def load(self):
        pass

    def detect(self, frame, max_results=None, min_score=None):
        with self.lock:
            self.calls.append(min_score)
        return list(self.respond(frame, min_score))


class ArraySource(FrameSource):
    """Frame source backed by a function of time."""

    def __init__(self, duration, frame_at, name="synthetic.mp4", fail_at=()):
        self.name = name
        self.duration = duration
        self._frame_at = frame_at
        self._fail_at = set(fail_at)
        self._frame = None
        self.seeks = []
        first = frame_at(0.0)
        self.height, self.width = first.shape[:2]

    def seek(self, time):
        self.seeks.append(time)
        if time in self._fail_at:
            raise IOError(f"decode error at {time}")
        self._frame = self._frame_at(time)

    def current_bitmap(self):
        return self._frame


def make_cache(detector):
    return ModelCache(factory=lambda model_type: detector)


@pytest.fixture
def box_frame():
    """320x240 dark frame with a bright rectangle at (100, 80, 60, 50)."""
    frame = np.full((240, 320, 3), 30, dtype=np.uint8)
    frame[80:130, 100:160] = (220, 180, 40)
    return frame


@pytest.fixture
def noise_frame():
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(240, 320, 3), dtype=np.uint8)


@pytest.fixture
def box_detection():
    return Detection(label="box", score=0.8, bbox=(100.0, 80.0, 60.0, 50.0))


@pytest.fixture
def rgb_image():
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8)
