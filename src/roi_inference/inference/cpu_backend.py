"""
OpenCV DNN inference backend.

Runs SSD-style detection networks through `cv2.dnn`. OpenVINO IR models
(.xml + .bin) go through the Inference Engine backend when OpenCV was built
with it; Caffe, TensorFlow and ONNX models use the default backend.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from ..errors import ConfigurationError, DecodeError
from .backend import ThreadedEngine

# Config engine names -> cv2.dnn targets
DNN_TARGETS = {
    "CPU": cv2.dnn.DNN_TARGET_CPU,
    "GPU": cv2.dnn.DNN_TARGET_OPENCL,
    "GPU_FP16": cv2.dnn.DNN_TARGET_OPENCL_FP16,
    "MYRIAD": cv2.dnn.DNN_TARGET_MYRIAD,
}


@dataclass(frozen=True)
class DnnConfig:
    model: str
    weights: Optional[str] = None
    engine: str = "CPU"
    max_proposal_count: int = 200
    object_size: int = 7
    # (batch, channels, height, width) the network is fed; enables shape checks
    input_shape: Optional[Tuple[int, int, int, int]] = None
    scale: float = 1.0
    mean: Tuple[float, ...] = (0.0, 0.0, 0.0)
    swap_rb: bool = False


def to_batch_major(
    raw: np.ndarray,
    batch: int,
    max_proposal_count: int,
    object_size: int,
) -> np.ndarray:
    """
    Regroup DetectionOutput records by image into fixed per-image blocks.

    The DetectionOutput layer emits one record list for the whole batch, with
    each record's first field naming the image it belongs to. Blocks are
    padded with image_id = -1 records.

    Raises:
        DecodeError: If the record stride is not `object_size`, a record names
            an image outside the batch, or one image has more than
            `max_proposal_count` records.
    """
    raw = np.asarray(raw, dtype=np.float32)
    if raw.ndim >= 2 and raw.shape[-1] != object_size:
        raise DecodeError(f"Output record stride {raw.shape[-1]} does not match object_size {object_size}")
    flat = raw.reshape(-1)
    if flat.size % object_size != 0:
        raise DecodeError(
            f"Output of {flat.size} floats is not a multiple of object_size {object_size}"
        )
    records = flat.reshape(-1, object_size)

    out = np.zeros((batch, max_proposal_count, object_size), dtype=np.float32)
    out[:, :, 0] = -1
    counts = [0] * batch
    for record in records:
        image_id = int(record[0])
        if image_id < 0:
            break
        if image_id >= batch:
            raise DecodeError(f"Output record for image {image_id} but batch has {batch} regions")
        if counts[image_id] >= max_proposal_count:
            raise DecodeError(
                f"Image {image_id} has more than max_proposal_count={max_proposal_count} records"
            )
        out[image_id, counts[image_id]] = record
        counts[image_id] += 1

    return out.reshape(1, 1, batch * max_proposal_count, object_size)


class OpenCVDnnEngine(ThreadedEngine):
    def __init__(self, cfg: DnnConfig):
        super().__init__(name="dnn")
        self.cfg = cfg
        self.scale = cfg.scale
        self.mean = tuple(cfg.mean)
        self.swap_rb = cfg.swap_rb
        if not os.path.exists(cfg.model):
            raise ConfigurationError(f"Model file not found: {cfg.model}")

        weights = cfg.weights
        if weights is None and cfg.model.endswith(".xml"):
            weights = os.path.splitext(cfg.model)[0] + ".bin"

        try:
            self._net = cv2.dnn.readNet(cfg.model, weights) if weights else cv2.dnn.readNet(cfg.model)
        except cv2.error as e:
            raise ConfigurationError(f"Failed to load network {cfg.model}: {e}") from e

        # IR models run on the Inference Engine backend, whose output block is fixed size
        self._fixed_output = cfg.model.endswith(".xml")
        if self._fixed_output:
            self._net.setPreferableBackend(cv2.dnn.DNN_BACKEND_INFERENCE_ENGINE)
        target = DNN_TARGETS.get(cfg.engine.upper())
        if target is None:
            raise ConfigurationError(
                f"Unknown engine '{cfg.engine}', expected one of: {', '.join(DNN_TARGETS)}"
            )
        self._net.setPreferableTarget(target)
        if cfg.input_shape is not None:
            self._read_shapes(tuple(int(d) for d in cfg.input_shape))
        logging.info(
            f"Loaded network {cfg.model} on {cfg.engine} "
            f"(input={self.input_shape}, output={self.output_shape})"
        )

    def _read_shapes(self, input_shape: Tuple[int, ...]) -> None:
        """Run one blank batch to learn the shapes the loaded network really has."""
        self._net.setInput(np.zeros(input_shape, dtype=np.float32))
        try:
            raw = self._net.forward()
        except cv2.error as e:
            raise ConfigurationError(
                f"Network {self.cfg.model} rejected input shape {input_shape}: {e}"
            ) from e

        self.input_shape = input_shape
        if self._fixed_output:
            self.output_shape = tuple(int(d) for d in raw.shape)
        else:
            # Record count varies per call; only the stride is a property of the net
            records = input_shape[0] * self.cfg.max_proposal_count
            self.output_shape = (1, 1, records, int(raw.shape[-1]))

    def _infer(self, blob: np.ndarray, batch: int) -> np.ndarray:
        self._net.setInput(blob)
        raw = self._net.forward()
        return to_batch_major(raw, batch, self.cfg.max_proposal_count, self.cfg.object_size)
