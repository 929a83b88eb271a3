# =============================================================================
# tracking.py
# Block-matching tracker: estimates where a box from the previous frame sits
# in the current frame without running the detector again.
# =============================================================================

from typing import Optional

import numpy as np

from constants import TRACK_MIN_MARGIN, TRACK_MARGIN_RATIO, TRACK_STRIDE
from models import BBox, TrackResult


def track(prev_frame: np.ndarray, current_frame: np.ndarray, prev_bbox: BBox,
          frame_width: Optional[int] = None,
          frame_height: Optional[int] = None) -> TrackResult:
    """
    Exhaustive template search around `prev_bbox`.

    The search window is the previous box grown by max(10, 20% of its larger
    side), clipped to the frame. Every candidate top-left in the window is
    scored by the mean of 255 - |prev - curr| over RGB, sampling every 2nd
    row and column of the box. The first best candidate wins; confidence is
    that score / 255.

    Cost is O(window area * box area / 4). Keep windows small.
    """
    if frame_height is None or frame_width is None:
        frame_height, frame_width = prev_frame.shape[:2]

    x, y, w, h = (int(round(v)) for v in prev_bbox)
    x = min(max(x, 0), frame_width - 1)
    y = min(max(y, 0), frame_height - 1)
    w = max(1, min(w, frame_width - x))
    h = max(1, min(h, frame_height - y))

    margin   = max(TRACK_MIN_MARGIN, int(max(w, h) * TRACK_MARGIN_RATIO))
    search_x = max(0, x - margin)
    search_y = max(0, y - margin)
    search_w = min(frame_width - search_x, w + 2 * margin)
    search_h = min(frame_height - search_y, h + 2 * margin)

    template = prev_frame[y:y + h:TRACK_STRIDE, x:x + w:TRACK_STRIDE, :3].astype(np.int16)

    best_x, best_y, best_sim = x, y, 0.0
    for ty in range(search_y, search_y + search_h - h + 1):
        for tx in range(search_x, search_x + search_w - w + 1):
            cand = current_frame[ty:ty + h:TRACK_STRIDE, tx:tx + w:TRACK_STRIDE, :3]
            sim  = float(np.mean(255 - np.abs(template - cand.astype(np.int16))))
            if sim > best_sim:
                best_x, best_y, best_sim = tx, ty, sim

    return TrackResult(bbox=(float(best_x), float(best_y), float(w), float(h)),
                       confidence=best_sim / 255.0)
