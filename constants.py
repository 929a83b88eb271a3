# =============================================================================
# constants.py
# Shared constants: sampling table, detection thresholds, enhancement
# coefficients, model files, and output/export defaults.
# =============================================================================

# -- Frame sampling -----------------------------------------------------------
# (upper duration bound in seconds, sampling interval in seconds)
SAMPLING_TABLE = [
    (10.0,  0.5),
    (30.0,  1.0),
    (60.0,  2.0),
    (300.0, 5.0),
]
SAMPLING_INTERVAL_MAX = 10.0   # videos of 300s and longer
END_MARGIN            = 1.0    # last sample must be within this of the end

# -- Detection ----------------------------------------------------------------
THRESHOLD_FLOOR      = 0.25    # effective threshold never drops below this
THRESHOLD_SCALE      = 0.7     # looser than configured to favour recall
RETRY_THRESHOLD      = 0.1
MAX_DETECTIONS       = 20
MIN_TRACK_CONFIDENCE = 0.6     # tracked boxes below this are dropped

# -- Model configurations -----------------------------------------------------
MODEL_FILES = {
    "lite":     "yolov8n.pt",
    "standard": "yolov8s.pt",
    "accurate": "yolov8m.pt",
}
DEFAULT_MODEL_TYPE = "standard"

# -- Object extraction --------------------------------------------------------
MARGIN_RATIO = 0.15
MIN_MARGIN   = 10

# -- Enhancement --------------------------------------------------------------
LUMA_WEIGHTS  = (0.3, 0.59, 0.11)
MIDPOINT      = 128.0

BASIC_CONTRAST      = 1.15
BASIC_SATURATION    = 1.2
ADVANCED_CONTRAST   = 1.15
ADVANCED_SATURATION = 1.3
ULTRA_CONTRAST      = 1.25
ULTRA_SATURATION    = 1.35
ULTRA_SHARPEN       = 1.25

SHARPEN_CENTER   = 2.0
SHARPEN_EDGE     = -0.15
SHARPEN_DIAGONAL = -0.1

BILATERAL_RADIUS      = 2
BILATERAL_SIGMA_SPACE = 2.0
BILATERAL_SIGMA_COLOR = 25.0
GAUSSIAN_SIGMA        = 1.5

ENHANCEMENT_TIMEOUT = 3.0      # seconds before falling back to in-thread work

# -- Deduplication ------------------------------------------------------------
GRID_SIZE = 30

# -- Tracking -----------------------------------------------------------------
TRACK_MIN_MARGIN   = 10
TRACK_MARGIN_RATIO = 0.2
TRACK_STRIDE       = 2

# -- Video / output -----------------------------------------------------------
VID_EXTS = frozenset({".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv", ".webm", ".m4v"})
SEEK_END_GUARD     = 0.1       # never seek closer than this to the end
CROP_JPEG_QUALITY  = 90
THUMB_JPEG_QUALITY = 70

PROGRESS_INTERVAL = 0.2        # seconds between progress callbacks
PROGRESS_SAMPLING_CAP = 95
PROGRESS_DEDUPE       = 97

HISTORY_LIMIT = 20

SOFTWARE_NAME    = "Video Object Extractor"
SOFTWARE_VERSION = "1.0"
