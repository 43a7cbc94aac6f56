"""
Detection result models.

Results are always expressed in the coordinate space of the frame the region
was cut from, never in the model's input-tensor space.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned rectangle in pixel coordinates.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        """True when the box has no positive width or height."""
        return self.width <= 0 or self.height <= 0

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple."""
        return (int(self.x1), int(self.y1), int(self.x2), int(self.y2))

    def as_xywh(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, width, height) tuple."""
        return (self.x1, self.y1, self.width, self.height)

    def translate(self, dx: float, dy: float) -> "BoundingBox":
        return BoundingBox(self.x1 + dx, self.y1 + dy, self.x2 + dx, self.y2 + dy)

    def intersect(self, other: "BoundingBox") -> "BoundingBox":
        """
        Intersection with another box.

        The result always lies within `other`. Disjoint boxes give a
        zero-size box at this box's corner clamped into `other`.
        """
        x1 = min(max(self.x1, other.x1), other.x2)
        y1 = min(max(self.y1, other.y1), other.y2)
        x2 = max(x1, min(self.x2, other.x2))
        y2 = max(y1, min(self.y2, other.y2))
        return BoundingBox(x1, y1, x2, y2)

    @classmethod
    def from_tuple(cls, t: Tuple[float, float, float, float]) -> "BoundingBox":
        """Create from (x1, y1, x2, y2) tuple."""
        return cls(x1=t[0], y1=t[1], x2=t[2], y2=t[3])

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BoundingBox":
        """Create from (x, y, width, height) format."""
        return cls(x1=x, y1=y, x2=x + w, y2=y + h)

    @classmethod
    def from_normalized(
        cls,
        x_min: float,
        y_min: float,
        x_max: float,
        y_max: float,
        width: float,
        height: float,
    ) -> "BoundingBox":
        """Scale a box normalized to [0, 1] into a width x height pixel space."""
        return cls(
            x1=x_min * width,
            y1=y_min * height,
            x2=x_max * width,
            y2=y_max * height,
        )


@dataclass(frozen=True)
class Result:
    """
    Common result capability: every inference result has a location.

    Attributes:
        location: Rectangle in original-frame coordinates.
    """
    location: BoundingBox


@dataclass(frozen=True)
class ObjectDetectionResult(Result):
    """
    A single filtered, frame-space detection.

    Attributes:
        label: Human-readable class label.
        confidence: Detection confidence score (0-1).
        class_id: Raw class id reported by the model.
        region: Index of the buffered region the detection came from.
    """
    label: str = ""
    confidence: float = -1.0
    class_id: Optional[int] = None
    region: int = 0

    @property
    def x1(self) -> float:
        return self.location.x1

    @property
    def y1(self) -> float:
        return self.location.y1

    @property
    def x2(self) -> float:
        return self.location.x2

    @property
    def y2(self) -> float:
        return self.location.y2
