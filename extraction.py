# =============================================================================
# extraction.py
# Padded object crops out of a decoded frame, and JPEG encoding helpers.
# =============================================================================

import io
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import cv2
from PIL import Image

from constants import MARGIN_RATIO, MIN_MARGIN, CROP_JPEG_QUALITY
from models import BBox, Detection, EnhancementLevel, ObjectCrop


@dataclass
class CropRegion:
    """Source rectangle to read and the size of the crop it is scaled to."""
    src_x: int
    src_y: int
    src_w: int
    src_h: int
    out_w: int
    out_h: int


def padded_region(bbox: BBox, frame_w: int, frame_h: int,
                  min_margin: float = MIN_MARGIN) -> CropRegion:
    """
    Grow `bbox` by max(min_margin, 15%) on every side. The output keeps the
    full padded size; the source read is clamped to the frame.
    """
    x, y, w, h = bbox
    margin_x = max(min_margin, w * MARGIN_RATIO)
    margin_y = max(min_margin, h * MARGIN_RATIO)

    out_w = max(1, int(round(w + 2 * margin_x)))
    out_h = max(1, int(round(h + 2 * margin_y)))

    src_x = max(0.0, x - margin_x)
    src_y = max(0.0, y - margin_y)
    x0 = int(round(src_x))
    y0 = int(round(src_y))
    x1 = int(round(min(frame_w, src_x + w + 2 * margin_x)))
    y1 = int(round(min(frame_h, src_y + h + 2 * margin_y)))
    if x1 <= x0 or y1 <= y0:
        raise ValueError(f"Bounding box {bbox} lies outside the {frame_w}x{frame_h} frame")
    return CropRegion(x0, y0, x1 - x0, y1 - y0, out_w, out_h)


def crop_object(frame: np.ndarray, bbox: BBox,
                min_margin: float = MIN_MARGIN) -> np.ndarray:
    frame_h, frame_w = frame.shape[:2]
    r = padded_region(bbox, frame_w, frame_h, min_margin)
    region = frame[r.src_y:r.src_y + r.src_h, r.src_x:r.src_x + r.src_w]
    if region.shape[:2] != (r.out_h, r.out_w):
        region = cv2.resize(region, (r.out_w, r.out_h), interpolation=cv2.INTER_LINEAR)
    return np.ascontiguousarray(region)


def encode_jpeg(pixels: np.ndarray, quality: int = CROP_JPEG_QUALITY) -> bytes:
    """JPEG-encode an RGB(A) array. Alpha is dropped."""
    img = Image.fromarray(np.ascontiguousarray(pixels[..., :3]).astype(np.uint8), "RGB")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def decode_image(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as im:
        return np.array(im.convert("RGB"))


def extract(frame: np.ndarray, detection: Detection,
            level: EnhancementLevel = EnhancementLevel.NONE,
            enhancer: Optional[Callable[[np.ndarray, EnhancementLevel], np.ndarray]] = None,
            min_margin: float = MIN_MARGIN) -> ObjectCrop:
    """Crop, optionally enhance, and encode the object behind `detection`."""
    level  = EnhancementLevel(level)
    pixels = crop_object(frame, detection.bbox, min_margin)
    if enhancer is not None and level is not EnhancementLevel.NONE:
        pixels = enhancer(pixels, level)
    else:
        level = EnhancementLevel.NONE
    h, w = pixels.shape[:2]
    return ObjectCrop(source=detection, image=encode_jpeg(pixels),
                      enhancement_level=level, width=w, height=h)
