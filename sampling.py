# =============================================================================
# sampling.py
# Frame sampling plan: which timestamps of a video get examined.
# =============================================================================

from typing import List, Optional

from constants import SAMPLING_TABLE, SAMPLING_INTERVAL_MAX, END_MARGIN


def sampling_interval(duration: float) -> float:
    """Seconds between samples: finer for short clips, coarser for long ones."""
    for upper, interval in SAMPLING_TABLE:
        if duration < upper:
            return interval
    return SAMPLING_INTERVAL_MAX


def plan(duration: float, interval: Optional[float] = None) -> List[float]:
    """
    Ordered timestamps to examine for a video of `duration` seconds.

    Always starts at 0, steps by the sampling interval while strictly below
    `duration`, and adds `duration - 1` when the last step would otherwise
    leave more than a second of the end unsampled.
    """
    if duration <= 0:
        return [0.0]
    if interval is None:
        interval = sampling_interval(duration)
    elif interval <= 0:
        raise ValueError(f"Sampling interval must be positive, got {interval}")

    points = [0.0]
    k = 1
    while k * interval < duration:
        points.append(k * interval)
        k += 1

    if duration > END_MARGIN and points[-1] < duration - END_MARGIN:
        points.append(duration - END_MARGIN)
    return points
