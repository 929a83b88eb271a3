"""
Unit tests for padded object crops.
"""

import numpy as np
import pytest

from extraction import crop_object, decode_image, encode_jpeg, extract, padded_region
from models import Detection, EnhancementLevel


class TestPaddedRegion:

    def test_minimum_margin_applies_to_small_boxes(self):
        r = padded_region((100, 100, 40, 20), 640, 480)
        assert (r.src_x, r.src_y, r.src_w, r.src_h) == (90, 90, 60, 40)
        assert (r.out_w, r.out_h) == (60, 40)

    def test_relative_margin_applies_to_large_boxes(self):
        r = padded_region((200, 100, 100, 200), 640, 480)
        assert (r.out_w, r.out_h) == (130, 260)
        assert (r.src_x, r.src_y) == (185, 70)

    def test_left_top_edge_truncates_at_zero(self):
        r = padded_region((5, 5, 40, 40), 640, 480)
        assert (r.src_x, r.src_y) == (0, 0)
        assert (r.src_w, r.src_h) == (60, 60)

    def test_right_bottom_edge_clamps_source_only(self):
        r = padded_region((80, 80, 20, 20), 100, 100)
        assert (r.src_x, r.src_y, r.src_w, r.src_h) == (70, 70, 30, 30)
        assert (r.out_w, r.out_h) == (40, 40)

    def test_custom_minimum_margin(self):
        r = padded_region((100, 100, 40, 20), 640, 480, min_margin=15)
        assert (r.out_w, r.out_h) == (70, 50)

    def test_box_outside_frame_is_rejected(self):
        with pytest.raises(ValueError):
            padded_region((700, 10, 20, 20), 640, 480)


class TestCrop:

    def test_crop_matches_source_pixels(self, box_frame):
        crop = crop_object(box_frame, (100, 80, 60, 50))
        assert crop.shape == (70, 80, 3)
        assert np.array_equal(crop[10:60, 10:70], box_frame[80:130, 100:160])

    def test_clamped_crop_is_resized_to_full_size(self, box_frame):
        crop = crop_object(box_frame, (300, 220, 20, 20))
        assert crop.shape == (40, 40, 3)

    def test_encode_roundtrip_keeps_size(self, box_frame):
        img = decode_image(encode_jpeg(box_frame))
        assert img.shape == box_frame.shape


class TestExtract:

    def test_extract_without_enhancement(self, box_frame, box_detection):
        crop = extract(box_frame, box_detection)
        assert crop.source is box_detection
        assert crop.enhancement_level is EnhancementLevel.NONE
        assert (crop.width, crop.height) == (80, 70)
        assert crop.image[:2] == b"\xff\xd8"

    def test_extract_runs_enhancer(self, box_frame, box_detection):
        seen = []

        def enhancer(pixels, level):
            seen.append((pixels.shape, level))
            return pixels

        crop = extract(box_frame, box_detection, level="ultra", enhancer=enhancer)
        assert seen == [((70, 80, 3), EnhancementLevel.ULTRA)]
        assert crop.enhancement_level is EnhancementLevel.ULTRA

    def test_extract_rejects_box_outside_frame(self, box_frame):
        with pytest.raises(ValueError):
            extract(box_frame, Detection("ghost", 0.9, (1000, 1000, 10, 10)))
