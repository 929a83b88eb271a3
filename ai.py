# =============================================================================
# ai.py
# YOLO object detection wrapper, shared model cache, and the per-frame
# detection policy (effective threshold, cap, low-threshold retry pass).
# =============================================================================

import logging
import threading
from typing import Callable, Dict, List, Optional

import numpy as np
import cv2

from constants import (THRESHOLD_FLOOR, THRESHOLD_SCALE, RETRY_THRESHOLD,
                       DEFAULT_MODEL_TYPE, END_MARGIN)
from errors import ModelLoadError
from models import Detection, DetectionSettings, ModelType

logger = logging.getLogger(__name__)


# =============================================================================
# YOLO DETECTOR
# =============================================================================

class YOLODetector:
    """Ultralytics YOLOv8 behind the Detector interface. Weights load on first use."""

    def __init__(self, model_type: ModelType = ModelType.STANDARD):
        self.model_type = ModelType(model_type)
        self.model_size = self.model_type.weights
        self._model = None

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def load(self):
        if self._model is not None:
            return
        try:
            from ultralytics import YOLO
        except ImportError as e:
            raise ModelLoadError(
                "ultralytics is not installed. Run: pip install ultralytics"
            ) from e
        try:
            self._model = YOLO(self.model_size)
        except Exception as e:
            raise ModelLoadError(f"Could not load {self.model_size}: {e}") from e

    def detect(self, frame: np.ndarray,
               max_results: Optional[int] = None,
               min_score: Optional[float] = None) -> List[Detection]:
        """
        Run detection on an RGB numpy array.
        Returns Detections with (x, y, w, h) boxes in frame pixels.
        """
        self.load()
        bgr  = cv2.cvtColor(np.ascontiguousarray(frame[..., :3]), cv2.COLOR_RGB2BGR)
        opts = {"verbose": False}
        if min_score is not None:
            opts["conf"] = min_score
        if max_results is not None:
            opts["max_det"] = max_results
        results = self._model(bgr, **opts)[0]

        out = []
        for box in results.boxes:
            x1, y1, x2, y2 = (float(v) for v in box.xyxy[0])
            out.append(Detection(
                label=results.names[int(box.cls[0])],
                score=float(box.conf[0]),
                bbox=(x1, y1, x2 - x1, y2 - y1),
            ))
        return out


# =============================================================================
# MODEL CACHE
# =============================================================================

class ModelCache:
    """
    Lazily loads one detector per model type and hands the same instance to
    every run. Loads are serialised: a caller arriving while a load is in
    flight waits for it and then reuses the result.
    """

    def __init__(self, factory: Callable[[ModelType], object] = YOLODetector):
        self._factory = factory
        self._models: Dict[ModelType, object] = {}
        self._lock = threading.Lock()

    def get(self, model_type=DEFAULT_MODEL_TYPE):
        model_type = ModelType(model_type)
        with self._lock:
            if model_type in self._models:
                return self._models[model_type]
            try:
                detector = self._load(model_type)
            except ModelLoadError as e:
                default = ModelType(DEFAULT_MODEL_TYPE)
                if model_type == default:
                    logger.error("Model load failed: %s", e)
                    raise
                logger.warning("Loading %s model failed (%s), falling back to %s",
                               model_type.value, e, default.value)
                detector = self._models.get(default)
                if detector is None:
                    try:
                        detector = self._load(default)
                    except ModelLoadError as inner:
                        logger.error("Default model load failed: %s", inner)
                        raise
                    self._models[default] = detector
            self._models[model_type] = detector
            return detector

    def _load(self, model_type: ModelType):
        logger.info("Loading %s detector...", model_type.value)
        try:
            detector = self._factory(model_type)
            detector.load()
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(f"{model_type.value} detector failed to load: {e}") from e
        logger.info("   Model loaded and ready.")
        return detector

    def clear(self):
        with self._lock:
            self._models.clear()


MODEL_CACHE = ModelCache()


# =============================================================================
# DETECTION POLICY
# =============================================================================

def effective_threshold(configured: float) -> float:
    """Looser than the configured value; deduplication removes the noise later."""
    return max(THRESHOLD_FLOOR, configured * THRESHOLD_SCALE)


def _stamp(detections, frame_time: float) -> List[Detection]:
    return [Detection(d.label, float(d.score), tuple(d.bbox), frame_time)
            for d in detections]


def detect_frame(detector, frame: np.ndarray, frame_time: float,
                 settings: DetectionSettings) -> List[Detection]:
    """
    Primary-pass detection for one frame. Errors other than a model load
    failure are logged and count as an empty frame.
    """
    threshold = effective_threshold(settings.confidence_threshold)
    try:
        raw = detector.detect(frame, min_score=threshold)
    except ModelLoadError:
        raise
    except Exception as e:
        logger.warning("Detection failed at %.2fs: %s", frame_time, e)
        return []

    kept = [d for d in raw if d.score >= threshold]
    kept.sort(key=lambda d: -d.score)
    return _stamp(kept[:settings.max_detections], frame_time)


def retry_points(duration: float) -> List[float]:
    """Representative timestamps for the low-threshold retry pass."""
    return [0.0, duration / 2, max(0.0, duration - END_MARGIN)]


def detect_low_threshold(detector, frame: np.ndarray,
                         frame_time: float) -> List[Detection]:
    """Retry-pass detection at the fixed low threshold, uncapped."""
    try:
        raw = detector.detect(frame, min_score=RETRY_THRESHOLD)
    except ModelLoadError:
        raise
    except Exception as e:
        logger.warning("Retry detection failed at %.2fs: %s", frame_time, e)
        return []
    kept = [d for d in raw if d.score >= RETRY_THRESHOLD]
    kept.sort(key=lambda d: -d.score)
    return _stamp(kept, frame_time)
