# =============================================================================
# dedupe.py
# Collapses per-frame detections into unique objects, keyed by label and a
# coarse spatial grid, keeping the highest-confidence instance per bucket.
# =============================================================================

import logging
import math
from collections import defaultdict
from typing import Iterable, List, Tuple, Union

from constants import GRID_SIZE
from models import Detection, ObjectCrop, UniqueObject

logger = logging.getLogger(__name__)

Candidate = Union[Detection, ObjectCrop]


def _as_crop(item: Candidate) -> ObjectCrop:
    if isinstance(item, ObjectCrop):
        return item
    return ObjectCrop(source=item)


def grid_key(crop: ObjectCrop, grid: int = GRID_SIZE) -> Tuple[int, int, int]:
    # Height is not part of the key: same position and width share a bucket.
    x, y, w, _h = crop.source.bbox
    return (math.floor(x / grid), math.floor(y / grid), math.floor(w / grid))


def _unique_in_label(crops: List[ObjectCrop], grid: int) -> List[ObjectCrop]:
    if len(crops) <= 1:
        return list(crops)

    kept: List[ObjectCrop] = []
    slot_of: dict = {}
    for crop in crops:
        key = grid_key(crop, grid)
        if key not in slot_of:
            slot_of[key] = len(kept)
            kept.append(crop)
        elif crop.source.score > kept[slot_of[key]].source.score:
            kept[slot_of[key]] = crop
    return kept


def dedupe(candidates: Iterable[Candidate], grid: int = GRID_SIZE) -> List[UniqueObject]:
    """
    Group detections by case-insensitive label, bucket each group by
    (x // grid, y // grid, w // grid), keep the best-scoring instance per
    bucket and return all survivors sorted by descending confidence.

    Falls back to returning every candidate unfiltered if anything goes wrong.
    """
    crops = [_as_crop(c) for c in candidates]
    if not crops:
        return []

    try:
        ordered = sorted(crops, key=lambda c: -c.source.score)

        by_label: dict = defaultdict(list)
        for crop in ordered:
            by_label[crop.source.label.lower()].append(crop)

        survivors: List[ObjectCrop] = []
        for group in by_label.values():
            survivors.extend(_unique_in_label(group, grid))

        survivors.sort(key=lambda c: -c.source.score)
        return [UniqueObject.from_crop(c) for c in survivors]
    except Exception as e:
        logger.warning("Deduplication failed, returning unfiltered detections: %s", e)
        return [UniqueObject.from_crop(c) for c in crops]
