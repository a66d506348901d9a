# tests/unit/test_detection_geometry.py
"""
Unit tests for detection geometry: bounding boxes, coverage and axis errors.
"""

import pytest

from telloseek.detection_geometry import (
    AxisErrors,
    BoundingBox,
    Detection,
    compute_errors,
    coverage_percent,
    detection_errors,
    frame_center,
    round_half_up,
)


pytestmark = [pytest.mark.unit]


class TestRoundHalfUp:

    @pytest.mark.parametrize("value,expected", [
        (0.4, 0), (0.5, 1), (1.5, 2), (2.5, 3), (-0.5, 0), (-2.5, -2), (-2.6, -3), (5.787, 6),
    ])
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected


# =============================================================================
# Test: BoundingBox
# =============================================================================

class TestBoundingBox:

    def test_dimensions(self):
        box = BoundingBox(380, 260, 580, 460)
        assert box.width == 200
        assert box.height == 200
        assert box.area == 40000
        assert box.center == (480.0, 360.0)

    def test_degenerate_box_allowed(self):
        box = BoundingBox(10, 10, 10, 10)
        assert box.area == 0

    def test_inverted_box_rejected(self):
        with pytest.raises(ValueError, match="invalid_bounding_box"):
            BoundingBox(100, 0, 50, 10)

    def test_from_normalized_scales_to_pixels(self):
        box = BoundingBox.from_normalized((0.25, 0.5, 0.75, 1.0), 960, 720)
        assert box.as_tuple() == (240, 360, 720, 720)

    def test_from_normalized_roundtrips_pixel_coordinates(self):
        coords = (380 / 960, 260 / 720, 580 / 960, 460 / 720)
        assert BoundingBox.from_normalized(coords, 960, 720).as_tuple() == (380, 260, 580, 460)

    def test_to_dict(self):
        assert BoundingBox(1, 2, 3, 4).to_dict() == {'x_min': 1, 'y_min': 2, 'x_max': 3, 'y_max': 4}


# =============================================================================
# Test: Coverage
# =============================================================================

class TestCoverage:

    def test_small_centered_box(self):
        # round(100 * 200 * 200 / 691200) = round(5.787)
        assert coverage_percent(BoundingBox(380, 260, 580, 460), 960, 720) == 6

    def test_large_box(self):
        # round(100 * 912 * 684 / 691200) = round(90.25)
        assert coverage_percent(BoundingBox(0, 0, 912, 684), 960, 720) == 90

    def test_full_frame(self):
        assert coverage_percent(BoundingBox(0, 0, 960, 720), 960, 720) == 100

    def test_box_larger_than_frame_clamped(self):
        assert coverage_percent(BoundingBox(-100, -100, 1200, 900), 960, 720) == 100

    def test_zero_frame_area(self):
        assert coverage_percent(BoundingBox(0, 0, 10, 10), 0, 720) == 0

    @pytest.mark.parametrize("box", [
        (0, 0, 1, 1), (100, 100, 300, 250), (0, 0, 959, 719), (479, 359, 481, 361), (10, 0, 950, 720),
    ])
    def test_coverage_in_range_and_rounded(self, box):
        bbox = BoundingBox(*box)
        value = coverage_percent(bbox, 960, 720)
        assert 0 <= value <= 100
        assert value == round_half_up(100 * bbox.area / (960 * 720))


# =============================================================================
# Test: Detection
# =============================================================================

class TestDetection:

    def test_from_box_computes_coverage(self):
        detection = Detection.from_box(960, 720, BoundingBox(0, 0, 912, 684))
        assert detection.found
        assert detection.coverage_percent == 90

    def test_missing_box(self):
        detection = Detection.from_box(960, 720, None)
        assert not detection.found
        assert detection.object_box is None

    def test_payload_with_box(self):
        payload = Detection.from_box(960, 720, BoundingBox(380, 260, 580, 460)).to_payload()
        assert payload == {
            'frame_width': 960,
            'frame_height': 720,
            'object_box': {'x_min': 380, 'y_min': 260, 'x_max': 580, 'y_max': 460},
            'coverage_percent': 6,
        }

    def test_payload_without_box_has_no_coverage(self):
        payload = Detection(960, 720).to_payload()
        assert payload['object_box'] is None
        assert payload['coverage_percent'] is None


# =============================================================================
# Test: Axis Errors
# =============================================================================

class TestAxisErrors:

    def test_frame_center(self):
        assert frame_center(960, 720) == (480.0, 360.0)

    def test_centered_box_zero_error(self):
        assert compute_errors(BoundingBox(380, 260, 580, 460), 960, 720) == AxisErrors(0.0, 0.0)

    def test_object_right_is_positive_horizontal(self):
        errors = compute_errors(BoundingBox(700, 260, 900, 460), 960, 720)
        assert errors.horizontal == 320.0

    def test_object_left_is_negative_horizontal(self):
        errors = compute_errors(BoundingBox(0, 260, 100, 460), 960, 720)
        assert errors.horizontal == -430.0

    def test_object_above_is_positive_vertical(self):
        errors = compute_errors(BoundingBox(380, 0, 580, 100), 960, 720)
        assert errors.vertical == 310.0

    def test_object_below_is_negative_vertical(self):
        errors = compute_errors(BoundingBox(380, 620, 580, 720), 960, 720)
        assert errors.vertical == -310.0

    def test_detection_errors_none_when_missing(self):
        assert detection_errors(Detection(960, 720)) is None

    def test_detection_errors_for_found_object(self):
        detection = Detection.from_box(960, 720, BoundingBox(480, 360, 480, 360))
        assert detection_errors(detection) == AxisErrors(0.0, 0.0)
