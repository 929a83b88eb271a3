"""
Tests for detection settings parsing and validation.
"""

import pytest

from models import DetectionSettings, EnhancementLevel, ModelType


class TestDetectionSettings:

    def test_defaults(self):
        s = DetectionSettings()
        assert s.confidence_threshold == 0.6
        assert s.max_detections == 20
        assert s.image_enhancement is EnhancementLevel.ADVANCED
        assert s.model_type is ModelType.STANDARD
        assert s.bounding_box_padding == 10
        assert s.sampling_interval is None

    def test_from_dict_accepts_camel_case(self):
        s = DetectionSettings.from_dict({
            "confidenceThreshold": 0.4,
            "maxDetections":       5,
            "imageEnhancement":    "ultra",
            "modelType":           "accurate",
            "samplingOverride":    2.5,
            "retryOnFailure":      False,
            "somethingElse":       1,
        })
        assert s.confidence_threshold == 0.4
        assert s.max_detections == 5
        assert s.image_enhancement is EnhancementLevel.ULTRA
        assert s.model_type is ModelType.ACCURATE
        assert s.sampling_interval == 2.5
        assert s.retry_on_failure is False

    def test_from_dict_accepts_field_names(self):
        assert DetectionSettings.from_dict({"frame_skip": 3}).frame_skip == 3

    @pytest.mark.parametrize("kwargs", [
        {"confidence_threshold": 1.5},
        {"max_detections": 0},
        {"frame_skip": 0},
        {"sampling_interval": -1},
        {"bounding_box_padding": -2},
        {"image_enhancement": "extreme"},
        {"model_type": "huge"},
    ])
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            DetectionSettings(**kwargs)

    def test_to_dict_round_trips(self):
        s = DetectionSettings(image_enhancement="basic", frame_skip=2)
        d = s.to_dict()
        assert d["image_enhancement"] == "basic"
        assert DetectionSettings.from_dict(d) == s

    def test_model_weights(self):
        assert ModelType.STANDARD.weights == "yolov8s.pt"
