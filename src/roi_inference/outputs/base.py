"""
Output sink interface.

A sink receives the result set of an inference stage through
`stage.observe_output(sink)`. The set is a read-only tuple that is replaced
on the next fetch; sinks must not hold on to it past `handle_output()`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from ..models.detection import Result


class BaseOutput(ABC):
    def __init__(self, name: str):
        self.name = name
        self._frame: Optional[np.ndarray] = None

    def feed_frame(self, frame: np.ndarray) -> None:
        """Set the frame the next results refer to."""
        self._frame = frame

    @abstractmethod
    def accept(self, results: Sequence[Result]) -> None:
        """Consume one stage's result set for the current frame."""

    def handle_output(self) -> bool:
        """
        Flush everything accepted for the current frame.

        Returns False if the sink asks the pipeline to stop.
        """
        return True

    def close(self) -> None:
        pass
