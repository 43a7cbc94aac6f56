"""
Region entries buffered for a batched inference call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .detection import BoundingBox


@dataclass(frozen=True)
class Region:
    """
    An image region paired with where it sits in the original frame.

    Attributes:
        image: Pixel data of the region (H x W x C, BGR).
        offset: Rectangle of the region in original-frame coordinates.
    """
    image: np.ndarray
    offset: BoundingBox

    @property
    def width(self) -> int:
        return int(self.image.shape[1]) if self.image.ndim >= 2 else 0

    @property
    def height(self) -> int:
        return int(self.image.shape[0]) if self.image.ndim >= 2 else 0

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def is_degenerate(self) -> bool:
        """True when the region has no pixels or a zero-sized offset."""
        return (
            self.image is None
            or self.image.size == 0
            or self.width == 0
            or self.height == 0
            or self.offset.is_empty
        )

    @classmethod
    def whole_frame(cls, frame: np.ndarray) -> "Region":
        """The entire frame as one region anchored at (0, 0)."""
        h, w = frame.shape[:2]
        return cls(image=frame, offset=BoundingBox(0, 0, w, h))

    @classmethod
    def from_frame(
        cls,
        frame: np.ndarray,
        roi: BoundingBox,
        constrain: bool = True,
    ) -> Optional["Region"]:
        """
        Crop a region of interest out of a frame.

        With constrain=True the ROI is first clamped to the frame bounds.
        Returns None if nothing of the ROI lies inside the frame.
        """
        h, w = frame.shape[:2]
        if constrain:
            roi = roi.intersect(BoundingBox(0, 0, w, h))
        x1, y1, x2, y2 = roi.as_int_tuple()
        if x2 <= x1 or y2 <= y1 or x1 < 0 or y1 < 0 or x2 > w or y2 > h:
            return None
        return cls(image=frame[y1:y2, x1:x2], offset=BoundingBox(x1, y1, x2, y2))
