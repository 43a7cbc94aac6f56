"""
Callable inference backend.

Wraps any function `(blob, batch) -> raw_output` as an engine. Used for
offline replays of recorded network output and for tests, where the function
returns a synthetic buffer.
"""

from __future__ import annotations

from typing import Callable, Optional, Tuple

import numpy as np

from .backend import ThreadedEngine

InferFn = Callable[[np.ndarray, int], np.ndarray]


class CallableEngine(ThreadedEngine):
    def __init__(
        self,
        fn: InferFn,
        input_shape: Optional[Tuple[int, ...]] = None,
        output_shape: Optional[Tuple[int, ...]] = None,
    ):
        super().__init__(name="callable")
        self._fn = fn
        self.input_shape = input_shape
        self.output_shape = output_shape
        self.calls = 0

    def _infer(self, blob: np.ndarray, batch: int) -> np.ndarray:
        self.calls += 1
        return self._fn(blob, batch)
