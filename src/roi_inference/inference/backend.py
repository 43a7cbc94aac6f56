"""
Inference engine interface.

An engine runs one batched network call off the caller's thread:

    request = engine.configure(regions, model)
    engine.run_async(request)
    raw = engine.wait_and_read(request)

`raw` is the flat output buffer, batch-major: `max_proposal_count` records of
`object_size` floats for each region, in the order the regions were given.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

import cv2
import numpy as np

from ..errors import SequencingError
from ..models.descriptor import ObjectDetectionModel
from ..models.region import Region


@dataclass
class EngineRequest:
    """Handle for one batched inference call."""
    blob: np.ndarray
    batch: int
    future: Optional[Future] = None

    @property
    def started(self) -> bool:
        return self.future is not None


class InferenceEngine(Protocol):
    # Shapes reported by the loaded network, or None when unknown until run
    input_shape: Optional[Tuple[int, ...]]
    output_shape: Optional[Tuple[int, ...]]

    def configure(self, regions: Sequence[Region], model: ObjectDetectionModel) -> EngineRequest:
        ...

    def run_async(self, request: EngineRequest) -> None:
        ...

    def wait_and_read(self, request: EngineRequest) -> np.ndarray:
        ...


def prepare_blob(
    regions: Sequence[Region],
    model: ObjectDetectionModel,
    scale: float = 1.0,
    mean: Sequence[float] = (0.0, 0.0, 0.0),
    swap_rb: bool = False,
) -> np.ndarray:
    """
    Resize every region to the network input and stack them as NCHW float32.

    Pixels become (pixel - mean) * scale, after the optional BGR -> RGB swap.
    The defaults pass raw BGR values through, which is what OpenVINO IR
    models expect; Caffe and ONNX SSDs usually need their own scale and mean.
    """
    width, height = model.input_size
    channels = model.input_channels
    images = []
    for region in regions:
        image = region.image
        if image.ndim == 3 and image.shape[2] == 1:
            image = image[:, :, 0]
        if channels == 1 and image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif channels == 3 and image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        images.append(image)
    return cv2.dnn.blobFromImages(
        images,
        scalefactor=scale,
        size=(width, height),
        mean=tuple(mean),
        swapRB=swap_rb,
        crop=False,
    )


class ThreadedEngine:
    """
    Shared engine plumbing: preprocessing plus a single background worker.

    Subclasses implement `_infer(blob, batch)` returning the raw output.
    """

    input_shape: Optional[Tuple[int, ...]] = None
    output_shape: Optional[Tuple[int, ...]] = None
    scale: float = 1.0
    mean: Tuple[float, ...] = (0.0, 0.0, 0.0)
    swap_rb: bool = False

    def __init__(self, name: str = "engine"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def configure(self, regions: Sequence[Region], model: ObjectDetectionModel) -> EngineRequest:
        blob = prepare_blob(regions, model, scale=self.scale, mean=self.mean, swap_rb=self.swap_rb)
        return EngineRequest(blob=blob, batch=len(regions))

    def run_async(self, request: EngineRequest) -> None:
        if request.started:
            raise SequencingError("Engine request was already started")
        request.future = self._executor.submit(self._infer, request.blob, request.batch)

    def wait_and_read(self, request: EngineRequest) -> np.ndarray:
        if not request.started:
            raise SequencingError("Engine request was never started")
        raw = request.future.result()
        return np.asarray(raw, dtype=np.float32)

    def close(self) -> None:
        """Wait for any running call and stop the worker thread."""
        self._executor.shutdown(wait=True)
        logging.debug(f"{type(self).__name__} worker stopped")

    def _infer(self, blob: np.ndarray, batch: int) -> np.ndarray:
        raise NotImplementedError
