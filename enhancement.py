# =============================================================================
# enhancement.py
# Deterministic pixel-level enhancement of object crops: contrast/saturation,
# 3x3 sharpening, bilateral denoise, Gaussian blur, unsharp mask, auto-levels.
# Worker-thread offload with timeout fallback.
# =============================================================================

import logging
import math
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Callable

import numpy as np
import cv2

from constants import (LUMA_WEIGHTS, MIDPOINT,
                       BASIC_CONTRAST, BASIC_SATURATION,
                       ADVANCED_CONTRAST, ADVANCED_SATURATION,
                       ULTRA_CONTRAST, ULTRA_SATURATION, ULTRA_SHARPEN,
                       SHARPEN_CENTER, SHARPEN_EDGE, SHARPEN_DIAGONAL,
                       BILATERAL_RADIUS, BILATERAL_SIGMA_SPACE, BILATERAL_SIGMA_COLOR,
                       GAUSSIAN_SIGMA, ENHANCEMENT_TIMEOUT)
from errors import EnhancementError
from models import EnhancementLevel

logger = logging.getLogger(__name__)


# =============================================================================
# PIXEL HELPERS
# =============================================================================

def _to_u8(values: np.ndarray) -> np.ndarray:
    """Clamp to [0, 255] and round half to even, like a clamped byte buffer."""
    return np.rint(np.clip(values, 0.0, 255.0)).astype(np.uint8)


def _contrast(rgb: np.ndarray, factor: float) -> np.ndarray:
    return _to_u8((rgb.astype(np.float64) - MIDPOINT) * factor + MIDPOINT)


def _saturation(rgb: np.ndarray, factor: float) -> np.ndarray:
    f    = rgb.astype(np.float64)
    wr, wg, wb = LUMA_WEIGHTS
    luma = (wr * f[..., 0] + wg * f[..., 1] + wb * f[..., 2])[..., None]
    return _to_u8(luma + factor * (f - luma))


def _contrast_saturation(rgb: np.ndarray, contrast: float, saturation: float) -> np.ndarray:
    return _saturation(_contrast(rgb, contrast), saturation)


def gaussian_kernel_size(sigma: float) -> int:
    return max(3, math.ceil(sigma * 3) | 1)


def gaussian_blur(rgb: np.ndarray, sigma: float = GAUSSIAN_SIGMA) -> np.ndarray:
    """Normalised square Gaussian kernel, edges replicated."""
    size = gaussian_kernel_size(sigma)
    half = size // 2
    ax   = np.arange(-half, half + 1, dtype=np.float64)
    xx, yy = np.meshgrid(ax, ax)
    kernel = np.exp(-(xx ** 2 + yy ** 2) / (2 * sigma * sigma))
    kernel /= kernel.sum()
    blurred = cv2.filter2D(rgb.astype(np.float64), -1, kernel,
                           borderType=cv2.BORDER_REPLICATE)
    return _to_u8(blurred)


def bilateral_filter(rgb: np.ndarray,
                     radius: int = BILATERAL_RADIUS,
                     sigma_space: float = BILATERAL_SIGMA_SPACE,
                     sigma_color: float = BILATERAL_SIGMA_COLOR) -> np.ndarray:
    """
    Simplified bilateral filter over a (2r+1)^2 window. Each neighbour is
    weighted by exp(-d_space^2 / 2σs^2) * exp(-d_color^2 / 2σc^2), where
    d_color is the RGB distance to the centre pixel.
    """
    h, w   = rgb.shape[:2]
    src    = rgb.astype(np.float64)
    padded = np.pad(src, ((radius, radius), (radius, radius), (0, 0)), mode="edge")

    acc   = np.zeros_like(src)
    total = np.zeros((h, w, 1), dtype=np.float64)
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            nb = padded[radius + dy:radius + dy + h, radius + dx:radius + dx + w]
            spatial = math.exp(-(dx * dx + dy * dy) / (2 * sigma_space ** 2))
            color   = np.sum((nb - src) ** 2, axis=2, keepdims=True)
            weight  = spatial * np.exp(-color / (2 * sigma_color ** 2))
            acc   += nb * weight
            total += weight
    return np.clip(np.floor(acc / total + 0.5), 0, 255).astype(np.uint8)


def sharpen(rgb: np.ndarray) -> np.ndarray:
    """3x3 sharpening kernel applied to interior pixels; the 1px border is kept."""
    kernel = np.array([
        [SHARPEN_DIAGONAL, SHARPEN_EDGE,   SHARPEN_DIAGONAL],
        [SHARPEN_EDGE,     SHARPEN_CENTER, SHARPEN_EDGE],
        [SHARPEN_DIAGONAL, SHARPEN_EDGE,   SHARPEN_DIAGONAL],
    ], dtype=np.float64)
    out = rgb.copy()
    if rgb.shape[0] < 3 or rgb.shape[1] < 3:
        return out
    filtered = cv2.filter2D(rgb.astype(np.float64), -1, kernel,
                            borderType=cv2.BORDER_REPLICATE)
    out[1:-1, 1:-1] = _to_u8(filtered[1:-1, 1:-1])
    return out


def auto_levels(rgb: np.ndarray) -> np.ndarray:
    """Per-channel linear stretch of observed [min, max] to [0, 255]."""
    out = np.empty_like(rgb)
    for c in range(rgb.shape[2]):
        ch = rgb[..., c].astype(np.float64)
        lo, hi = float(ch.min()), float(ch.max())
        if lo == hi:
            lo = 0.0
        if hi == lo:
            out[..., c] = rgb[..., c]
            continue
        out[..., c] = _to_u8(255.0 * (ch - lo) / (hi - lo))
    return out


# =============================================================================
# ENHANCEMENT LEVELS
# =============================================================================

def _basic(rgb: np.ndarray) -> np.ndarray:
    return _contrast_saturation(rgb, BASIC_CONTRAST, BASIC_SATURATION)


def _advanced(rgb: np.ndarray) -> np.ndarray:
    return _contrast_saturation(sharpen(rgb), ADVANCED_CONTRAST, ADVANCED_SATURATION)


def _ultra(rgb: np.ndarray) -> np.ndarray:
    denoised = bilateral_filter(rgb)
    blurred  = gaussian_blur(denoised, GAUSSIAN_SIGMA)
    d = denoised.astype(np.float64)
    b = blurred.astype(np.float64)
    sharpened = d + (d - b) * ULTRA_SHARPEN
    stretched = _to_u8((sharpened - MIDPOINT) * ULTRA_CONTRAST + MIDPOINT)
    return auto_levels(_saturation(stretched, ULTRA_SATURATION))


_LEVELS = {
    EnhancementLevel.BASIC:    _basic,
    EnhancementLevel.ADVANCED: _advanced,
    EnhancementLevel.ULTRA:    _ultra,
}


def _validate(pixels) -> None:
    if not isinstance(pixels, np.ndarray):
        raise EnhancementError(f"Expected a numpy array, got {type(pixels).__name__}")
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise EnhancementError(f"Expected an (H, W, 3|4) buffer, got shape {pixels.shape}")
    if pixels.size == 0:
        raise EnhancementError("Empty pixel buffer")
    if pixels.dtype != np.uint8:
        raise EnhancementError(f"Expected uint8 pixels, got {pixels.dtype}")


def apply_enhancement(pixels: np.ndarray, level) -> np.ndarray:
    """
    Enhance an RGB or RGBA uint8 buffer at `level` and return a new buffer.
    Alpha is copied through untouched. Raises EnhancementError on a
    malformed buffer.
    """
    level = EnhancementLevel(level)
    _validate(pixels)
    if level is EnhancementLevel.NONE:
        return pixels.copy()

    out = pixels.copy()
    out[..., :3] = _LEVELS[level](np.ascontiguousarray(pixels[..., :3]))
    return out


def enhance(pixels: np.ndarray, level) -> np.ndarray:
    """apply_enhancement that never raises: failures pass the crop through."""
    try:
        return apply_enhancement(pixels, level)
    except Exception as e:
        logger.warning("Enhancement (%s) failed, keeping original crop: %s", level, e)
        return pixels


# =============================================================================
# OFFLOADED ENHANCEMENT
# =============================================================================

class EnhancementRunner:
    """
    Runs the heavy levels (advanced, ultra) on a worker thread with a bounded
    wait. If the worker does not answer in time the enhancement is redone
    synchronously in the caller's thread so the crop is never lost.
    """

    OFFLOADED = (EnhancementLevel.ADVANCED, EnhancementLevel.ULTRA)

    def __init__(self, timeout: float = ENHANCEMENT_TIMEOUT,
                 func: Callable[[np.ndarray, EnhancementLevel], np.ndarray] = apply_enhancement):
        self.timeout = timeout
        self._func = func
        self._executor = self._new_executor()

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="enhancement")

    def _sync(self, pixels: np.ndarray, level: EnhancementLevel) -> np.ndarray:
        try:
            return self._func(pixels, level)
        except Exception as e:
            logger.warning("Enhancement (%s) failed, keeping original crop: %s",
                           level.value, e)
            return pixels

    def __call__(self, pixels: np.ndarray, level) -> np.ndarray:
        level = EnhancementLevel(level)
        if level not in self.OFFLOADED:
            return self._sync(pixels, level)

        future = self._executor.submit(self._func, pixels, level)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout:
            # A hung worker cannot be cancelled; later crops get a fresh one.
            future.cancel()
            self._executor.shutdown(wait=False)
            self._executor = self._new_executor()
            logger.warning("Enhancement worker timed out after %.1fs, "
                           "enhancing in caller thread", self.timeout)
            return self._sync(pixels, level)
        except Exception as e:
            logger.warning("Enhancement (%s) failed, keeping original crop: %s",
                           level.value, e)
            return pixels

    def shutdown(self):
        self._executor.shutdown(wait=False)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
