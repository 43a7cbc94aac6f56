"""
Logging output: one log line per detection.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..models.detection import ObjectDetectionResult, Result
from .base import BaseOutput


class LoggingOutput(BaseOutput):
    def __init__(self, name: str = "Log", level: int = logging.INFO):
        super().__init__(name)
        self.level = level
        self.count = 0

    def accept(self, results: Sequence[Result]) -> None:
        for result in results:
            self.count += 1
            x1, y1, x2, y2 = result.location.as_int_tuple()
            if isinstance(result, ObjectDetectionResult):
                logging.log(
                    self.level,
                    f"[{self.name}] {result.label} conf={result.confidence:.3f} "
                    f"box=({x1},{y1})-({x2},{y2}) region={result.region}",
                )
            else:
                logging.log(self.level, f"[{self.name}] box=({x1},{y1})-({x2},{y2})")
