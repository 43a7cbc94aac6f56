"""
Region providers: turn a frame into the regions to run detection on.
"""

from __future__ import annotations

from typing import Callable, List, Sequence

import numpy as np

from ..models.detection import BoundingBox
from ..models.region import Region

RegionProvider = Callable[[np.ndarray], List[Region]]


def whole_frame(frame: np.ndarray) -> List[Region]:
    """The whole frame as a single region."""
    return [Region.whole_frame(frame)]


class FixedRoiProvider:
    """
    Crops the same regions of interest out of every frame.

    ROIs are (x, y, width, height). With constrain=True they are clamped to
    the frame; ROIs wholly outside the frame are skipped.
    """

    def __init__(self, rois: Sequence[Sequence[float]], constrain: bool = True):
        self.rois = [BoundingBox.from_xywh(*roi) for roi in rois]
        self.constrain = constrain

    def __call__(self, frame: np.ndarray) -> List[Region]:
        regions = []
        for roi in self.rois:
            region = Region.from_frame(frame, roi, constrain=self.constrain)
            if region is not None:
                regions.append(region)
        return regions
