"""
Unit tests for the detection policy and the shared model cache.
"""

import threading
import time

import numpy as np
import pytest

from ai import (ModelCache, YOLODetector, detect_frame, detect_low_threshold,
                effective_threshold, retry_points)
from errors import ModelLoadError
from models import Detection, DetectionSettings, ModelType

from conftest import FakeDetector


FRAME = np.zeros((10, 10, 3), dtype=np.uint8)


class TestEffectiveThreshold:

    def test_scales_configured_value(self):
        assert effective_threshold(0.6) == pytest.approx(0.42)

    def test_has_floor(self):
        assert effective_threshold(0.2) == 0.25
        assert effective_threshold(0.0) == 0.25


class TestDetectFrame:

    def test_filters_sorts_caps_and_stamps(self):
        raw = [
            Detection("cat", 0.5, (0, 0, 5, 5)),
            Detection("dog", 0.9, (1, 1, 5, 5)),
            Detection("low", 0.3, (2, 2, 5, 5)),
            Detection("cup", 0.5, (3, 3, 5, 5)),
            Detection("car", 0.7, (4, 4, 5, 5)),
        ]
        detector = FakeDetector(lambda f, s: raw)
        settings = DetectionSettings(confidence_threshold=0.6, max_detections=3)

        out = detect_frame(detector, FRAME, 2.5, settings)

        assert detector.calls == [pytest.approx(0.42)]
        assert [d.label for d in out] == ["dog", "car", "cat"]
        assert all(d.frame_time == 2.5 for d in out)

    def test_equal_scores_keep_detector_order(self):
        raw = [Detection("a", 0.5, (0, 0, 1, 1)), Detection("b", 0.5, (0, 0, 1, 1))]
        out = detect_frame(FakeDetector(lambda f, s: raw), FRAME, 0, DetectionSettings())
        assert [d.label for d in out] == ["a", "b"]

    def test_detector_error_counts_as_empty_frame(self):
        def boom(frame, min_score):
            raise RuntimeError("inference failed")
        assert detect_frame(FakeDetector(boom), FRAME, 1.0, DetectionSettings()) == []

    def test_model_load_error_propagates(self):
        def boom(frame, min_score):
            raise ModelLoadError("weights missing")
        with pytest.raises(ModelLoadError):
            detect_frame(FakeDetector(boom), FRAME, 1.0, DetectionSettings())


class TestRetry:

    def test_retry_points(self):
        assert retry_points(10) == [0.0, 5.0, 9.0]
        assert retry_points(0.5) == [0.0, 0.25, 0.0]

    def test_low_threshold_is_uncapped(self):
        raw = [Detection(str(i), 0.1 + i * 0.01, (0, 0, 1, 1)) for i in range(30)]
        raw.append(Detection("noise", 0.05, (0, 0, 1, 1)))
        detector = FakeDetector(lambda f, s: raw)

        out = detect_low_threshold(detector, FRAME, 3.0)

        assert detector.calls == [0.1]
        assert len(out) == 30
        assert out[0].label == "29"


class TestModelCache:

    def test_reuses_loaded_detector(self):
        built = []

        def factory(model_type):
            built.append(model_type)
            return FakeDetector()

        cache = ModelCache(factory=factory)
        assert cache.get("lite") is cache.get(ModelType.LITE)
        assert built == [ModelType.LITE]

    def test_concurrent_requests_share_one_load(self):
        built = []

        class SlowDetector(FakeDetector):
            def load(self):
                time.sleep(0.1)

        def factory(model_type):
            built.append(model_type)
            return SlowDetector()

        cache = ModelCache(factory=factory)
        got = []
        threads = [threading.Thread(target=lambda: got.append(cache.get("standard")))
                   for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(built) == 1
        assert len(got) == 4 and all(g is got[0] for g in got)

    def test_falls_back_to_default_model(self):
        default = FakeDetector()

        def factory(model_type):
            if model_type is ModelType.ACCURATE:
                raise RuntimeError("download failed")
            return default

        cache = ModelCache(factory=factory)
        assert cache.get("accurate") is default
        assert cache.get("standard") is default

    def test_default_model_failure_is_fatal(self):
        def factory(model_type):
            raise ModelLoadError("no weights")

        with pytest.raises(ModelLoadError):
            ModelCache(factory=factory).get("lite")


class TestYOLODetector:

    def test_model_type_selects_weights(self):
        assert YOLODetector("lite").model_size == "yolov8n.pt"
        assert YOLODetector(ModelType.ACCURATE).model_size == "yolov8m.pt"
        assert not YOLODetector().loaded
