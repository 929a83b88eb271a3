# =============================================================================
# models.py
# Dataclasses and enums for detections, crops, unique objects, run results,
# and detection settings.
# =============================================================================

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional, Tuple

from constants import (DEFAULT_MODEL_TYPE, ENHANCEMENT_TIMEOUT, MAX_DETECTIONS,
                       MIN_MARGIN, MODEL_FILES)

BBox = Tuple[float, float, float, float]   # (x, y, width, height)


class EnhancementLevel(str, Enum):
    NONE     = "none"
    BASIC    = "basic"
    ADVANCED = "advanced"
    ULTRA    = "ultra"


class ModelType(str, Enum):
    LITE     = "lite"
    STANDARD = "standard"
    ACCURATE = "accurate"

    @property
    def weights(self) -> str:
        return MODEL_FILES[self.value]


class RunState(str, Enum):
    SAMPLING        = "sampling"
    DETECTING       = "detecting"
    RETRY_DETECTING = "retry_detecting"
    DEDUPLICATING   = "deduplicating"
    DONE            = "done"
    ABORTED         = "aborted"
    FAILED          = "failed"


@dataclass(frozen=True)
class Detection:
    """One raw detector output for one frame."""
    label: str
    score: float
    bbox: BBox
    frame_time: float = 0.0


@dataclass
class ObjectCrop:
    """Padded, enhanced and JPEG-encoded crop around one detection."""
    source: Detection
    image: Optional[bytes] = None
    enhancement_level: EnhancementLevel = EnhancementLevel.NONE
    width: int = 0
    height: int = 0


@dataclass
class UniqueObject:
    label: str
    confidence: float
    frame_time: float
    bbox: BBox
    image: Optional[bytes] = None

    @classmethod
    def from_crop(cls, crop: ObjectCrop) -> "UniqueObject":
        d = crop.source
        return cls(label=d.label, confidence=d.score, frame_time=d.frame_time,
                   bbox=d.bbox, image=crop.image)


@dataclass
class TrackResult:
    bbox: BBox
    confidence: float


@dataclass
class RunResult:
    file_name: str
    duration: float
    thumbnail: Optional[bytes] = None
    objects: List[UniqueObject] = field(default_factory=list)
    aborted: bool = False
    state: RunState = RunState.DONE

    @property
    def object_count(self) -> int:
        return len(self.objects)


# =============================================================================
# SETTINGS
# =============================================================================

# camelCase keys used by the browser settings object -> field names
_SETTINGS_ALIASES = {
    "confidenceThreshold": "confidence_threshold",
    "maxDetections":       "max_detections",
    "frameSkip":           "frame_skip",
    "samplingOverride":    "sampling_interval",
    "boundingBoxPadding":  "bounding_box_padding",
    "imageEnhancement":    "image_enhancement",
    "modelType":           "model_type",
    "retryOnFailure":      "retry_on_failure",
    "enhancementTimeout":  "enhancement_timeout",
}


@dataclass
class DetectionSettings:
    confidence_threshold: float = 0.6
    max_detections: int = MAX_DETECTIONS
    frame_skip: int = 1
    sampling_interval: Optional[float] = None
    bounding_box_padding: int = MIN_MARGIN
    image_enhancement: EnhancementLevel = EnhancementLevel.ADVANCED
    model_type: ModelType = ModelType(DEFAULT_MODEL_TYPE)
    retry_on_failure: bool = True
    enhancement_timeout: float = ENHANCEMENT_TIMEOUT

    def __post_init__(self):
        self.image_enhancement = EnhancementLevel(self.image_enhancement)
        self.model_type        = ModelType(self.model_type)
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(
                f"confidence_threshold must be in [0, 1], got {self.confidence_threshold}")
        if self.max_detections < 1:
            raise ValueError(f"max_detections must be >= 1, got {self.max_detections}")
        if self.frame_skip < 1:
            raise ValueError(f"frame_skip must be >= 1, got {self.frame_skip}")
        if self.sampling_interval is not None and self.sampling_interval <= 0:
            raise ValueError(
                f"sampling_interval must be positive, got {self.sampling_interval}")
        if self.bounding_box_padding < 0:
            raise ValueError(
                f"bounding_box_padding must be >= 0, got {self.bounding_box_padding}")
        if self.enhancement_timeout <= 0:
            raise ValueError(
                f"enhancement_timeout must be positive, got {self.enhancement_timeout}")

    @classmethod
    def from_dict(cls, data: dict) -> "DetectionSettings":
        """
        Build settings from a plain dict. Accepts snake_case field names or
        the camelCase keys of the browser settings object; unknown keys are
        ignored.
        """
        known = set(cls.__dataclass_fields__)
        kwargs = {}
        for key, value in data.items():
            name = _SETTINGS_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["image_enhancement"] = self.image_enhancement.value
        d["model_type"]        = self.model_type.value
        return d
