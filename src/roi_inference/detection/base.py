"""
Inference stage interface.

An inference stage buffers image regions, runs them through an engine as one
batch, and keeps the results of the last completed batch. One pipeline
driver calls it in strict order each cycle:

    stage.enqueue(region_image, offset)   # zero or more times
    stage.submit_request()                # one batched, asynchronous call
    stage.fetch_results()                 # join; rebuilds the result set

Stages are not thread-safe. Overlapping calls from several threads are
rejected with SequencingError instead of being serialized.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import InferenceError, SequencingError
from ..models.detection import BoundingBox, Result
from ..models.region import Region
from ..inference.backend import EngineRequest, InferenceEngine

# Frame offsets may be given as a BoundingBox or as (x, y, width, height)
Offset = Union[BoundingBox, Tuple[float, float, float, float]]


class BaseInference(ABC):
    def __init__(self, engine: InferenceEngine, name: str):
        self._engine = engine
        self._name = name
        self._regions: List[Region] = []
        self._request: Optional[EngineRequest] = None
        self._results: Tuple[Result, ...] = ()
        self._lock = threading.Lock()

    @property
    def engine(self) -> InferenceEngine:
        return self._engine

    @property
    def buffered_count(self) -> int:
        """Number of regions waiting in (or submitted from) the region buffer."""
        return len(self._regions)

    @property
    def in_flight(self) -> bool:
        """Whether a submitted batch has not been fetched yet."""
        return self._request is not None

    @property
    def results(self) -> Tuple[Result, ...]:
        """The result set of the last successful fetch."""
        return self._results

    @property
    @abstractmethod
    def max_batch_size(self) -> int:
        """How many regions fit in one batch."""

    @abstractmethod
    def _model(self) -> Any:
        """The bound model descriptor; raises ConfigurationError if unbound."""

    @abstractmethod
    def _decode(self, raw: np.ndarray, regions: Sequence[Region]) -> List[Result]:
        """Turn raw engine output for `regions` into frame-space results."""

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise SequencingError(f"{self._name}: {operation} called while another call is running")
        try:
            yield
        finally:
            self._lock.release()

    def enqueue(self, image: np.ndarray, frame_offset: Offset) -> bool:
        """
        Buffer a region for the next batch. No inference is started.

        Args:
            image: Pixel data of the region.
            frame_offset: Where the region sits in the original frame.

        Returns:
            False if the region is degenerate or the batch is full; the
            region is then skipped for this cycle.

        Raises:
            ConfigurationError: If no model is bound.
            SequencingError: If the previous batch has not been fetched.
        """
        if not isinstance(frame_offset, BoundingBox):
            frame_offset = BoundingBox.from_xywh(*frame_offset)

        with self._exclusive("enqueue"):
            self._model()
            if self._request is not None:
                raise SequencingError(f"{self._name}: cannot enqueue while a batch is in flight")

            region = Region(image=np.asarray(image), offset=frame_offset)
            if region.is_degenerate:
                logging.warning(
                    f"{self._name}: skipping degenerate region {frame_offset.as_xywh()}"
                )
                return False
            if len(self._regions) >= self.max_batch_size:
                logging.warning(
                    f"{self._name}: batch full ({self.max_batch_size}), "
                    f"skipping region {frame_offset.as_xywh()}"
                )
                return False

            self._regions.append(region)
            return True

    def submit_request(self) -> bool:
        """
        Start one asynchronous batched inference over all buffered regions.

        Raises:
            ConfigurationError: If no model is bound.
            SequencingError: If the buffer is empty or a batch is in flight.
        """
        with self._exclusive("submit_request"):
            model = self._model()
            if self._request is not None:
                raise SequencingError(f"{self._name}: an inference is already in flight")
            if not self._regions:
                raise SequencingError(f"{self._name}: nothing enqueued to submit")

            try:
                request = self._engine.configure(list(self._regions), model)
                self._engine.run_async(request)
            except InferenceError:
                raise
            except Exception as e:
                raise InferenceError(f"{self._name}: engine failed to start inference: {e}") from e

            self._request = request
            logging.debug(f"{self._name}: submitted batch of {len(self._regions)} regions")
            return True

    def fetch_results(self) -> bool:
        """
        Wait for the in-flight batch and rebuild the result set.

        The region buffer is consumed whatever happens. On failure the
        previous result set is kept.

        Returns:
            True if at least one result passed filtering.

        Raises:
            SequencingError: If nothing was submitted.
            DecodeError: If the raw output does not match the model.
        """
        with self._exclusive("fetch_results"):
            if self._request is None:
                raise SequencingError(f"{self._name}: no inference submitted to fetch")

            request, regions = self._request, self._regions
            self._request = None
            self._regions = []

            try:
                raw = self._engine.wait_and_read(request)
            except InferenceError:
                raise
            except Exception as e:
                raise InferenceError(f"{self._name}: engine failed during inference: {e}") from e

            results = self._decode(raw, regions)
            self._results = tuple(results)
            logging.debug(
                f"{self._name}: fetched {len(self._results)} results from {len(regions)} regions"
            )
            return bool(self._results)

    def reset(self) -> None:
        """Drop buffered regions that were never submitted."""
        with self._exclusive("reset"):
            if self._request is None:
                self._regions = []

    def get_results_length(self) -> int:
        return len(self._results)

    def get_location_result(self, idx: int) -> Result:
        """
        Result `idx` of the current set.

        Raises:
            IndexError: If idx is outside [0, get_results_length()).
        """
        if not 0 <= idx < len(self._results):
            raise IndexError(
                f"{self._name}: result index {idx} out of range [0, {len(self._results)})"
            )
        return self._results[idx]

    def observe_output(self, output: Any) -> None:
        """Hand the current result set to an output sink."""
        output.accept(self._results)

    def get_name(self) -> str:
        return self._name
