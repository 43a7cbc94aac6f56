"""
Image window output: draws detections on the frame.
"""

from __future__ import annotations

from typing import Optional, Sequence

import cv2
import numpy as np

from ..models.detection import ObjectDetectionResult, Result
from .base import BaseOutput

# Colors (BGR)
COLOR_BOX = (0, 255, 0)  # Green
COLOR_TEXT = (255, 255, 255)  # White


class ImageWindowOutput(BaseOutput):
    """
    Annotates the current frame with every accepted result.

    With show=True the annotated frame is displayed in an OpenCV window and
    pressing 'q' asks the pipeline to stop.
    """

    def __init__(self, name: str = "ImageWindow", show: bool = True, window_title: str = "Results"):
        super().__init__(name)
        self.show = show
        self.window_title = window_title
        self.annotated: Optional[np.ndarray] = None

    def feed_frame(self, frame: np.ndarray) -> None:
        super().feed_frame(frame)
        self.annotated = frame.copy()

    def accept(self, results: Sequence[Result]) -> None:
        if self.annotated is None:
            return
        for result in results:
            self._draw(self.annotated, result)

    def handle_output(self) -> bool:
        if not self.show or self.annotated is None:
            return True
        cv2.imshow(self.window_title, self.annotated)
        key = cv2.waitKey(1) & 0xFF
        return key != ord('q')

    def close(self) -> None:
        if self.show:
            cv2.destroyAllWindows()

    @staticmethod
    def _draw(frame: np.ndarray, result: Result) -> None:
        x1, y1, x2, y2 = result.location.as_int_tuple()
        cv2.rectangle(frame, (x1, y1), (x2, y2), COLOR_BOX, 2)

        if not isinstance(result, ObjectDetectionResult):
            return
        label = f"{result.label}: {result.confidence:.2f}"

        # Label with background
        font = cv2.FONT_HERSHEY_SIMPLEX
        (tw, th), _ = cv2.getTextSize(label, font, 0.5, 1)
        cv2.rectangle(frame, (x1, y1 - th - 6), (x1 + tw + 4, y1), COLOR_BOX, -1)
        cv2.putText(frame, label, (x1 + 2, y1 - 4), font, 0.5, COLOR_TEXT, 1)
