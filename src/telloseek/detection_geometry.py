"""
Detection geometry helpers.

Turns a pixel bounding box and the frame size into the quantities the
navigation policy works with: object center, per-axis pixel error and the
coverage percentage. All functions are pure.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple


Point2D = Tuple[float, float]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +inf (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class BoundingBox:
    """Pixel-space box (x_min, y_min, x_max, y_max)."""

    x_min: int
    y_min: int
    x_max: int
    y_max: int

    def __post_init__(self):
        if self.x_min > self.x_max or self.y_min > self.y_max:
            raise ValueError(f"invalid_bounding_box: {self.as_tuple()}")

    @classmethod
    def from_normalized(cls, coords: Sequence[float], frame_width: int, frame_height: int) -> "BoundingBox":
        """Scale normalized [0, 1] (x_min, y_min, x_max, y_max) to pixels."""
        x_min, y_min, x_max, y_max = coords
        return cls(
            x_min=round_half_up(x_min * frame_width),
            y_min=round_half_up(y_min * frame_height),
            x_max=round_half_up(x_max * frame_width),
            y_max=round_half_up(y_max * frame_height),
        )

    @property
    def width(self) -> int:
        return self.x_max - self.x_min

    @property
    def height(self) -> int:
        return self.y_max - self.y_min

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Point2D:
        return ((self.x_min + self.x_max) / 2.0, (self.y_min + self.y_max) / 2.0)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x_min, self.y_min, self.x_max, self.y_max)

    def to_dict(self) -> Dict[str, int]:
        return {'x_min': self.x_min, 'y_min': self.y_min, 'x_max': self.x_max, 'y_max': self.y_max}


def coverage_percent(box: BoundingBox, frame_width: int, frame_height: int) -> int:
    """Percentage of the frame covered by the box, rounded and kept within [0, 100]."""
    frame_area = frame_width * frame_height
    if frame_area <= 0:
        return 0
    percentage = round_half_up(100.0 * box.area / frame_area)
    return max(0, min(100, percentage))


@dataclass(frozen=True)
class Detection:
    """
    One cycle's detection result.

    ``object_box`` is None when the target was not found; ``coverage_percent``
    is meaningless in that case and must not be treated as a navigable value.
    """

    frame_width: int
    frame_height: int
    object_box: Optional[BoundingBox] = None
    coverage_percent: int = 0

    @classmethod
    def from_box(cls, frame_width: int, frame_height: int,
                 box: Optional[BoundingBox]) -> "Detection":
        coverage = coverage_percent(box, frame_width, frame_height) if box is not None else 0
        return cls(frame_width, frame_height, box, coverage)

    @property
    def found(self) -> bool:
        return self.object_box is not None

    def to_payload(self) -> Dict[str, Any]:
        return {
            'frame_width': self.frame_width,
            'frame_height': self.frame_height,
            'object_box': self.object_box.to_dict() if self.object_box else None,
            'coverage_percent': self.coverage_percent if self.found else None,
        }


@dataclass(frozen=True)
class AxisErrors:
    """Pixel error of the object center relative to the frame center."""

    horizontal: float   # positive: object right of center
    vertical: float     # positive: object above center


def frame_center(frame_width: int, frame_height: int) -> Point2D:
    return (frame_width / 2.0, frame_height / 2.0)


def compute_errors(box: BoundingBox, frame_width: int, frame_height: int) -> AxisErrors:
    """
    Horizontal error grows to the right; vertical error is inverted relative to
    pixel rows so that a positive value means the object sits above center.
    """
    object_x, object_y = box.center
    center_x, center_y = frame_center(frame_width, frame_height)
    return AxisErrors(horizontal=object_x - center_x, vertical=center_y - object_y)


def detection_errors(detection: Detection) -> Optional[AxisErrors]:
    """Errors for a detection, or None when no object was found."""
    if detection.object_box is None:
        return None
    return compute_errors(detection.object_box, detection.frame_width, detection.frame_height)
