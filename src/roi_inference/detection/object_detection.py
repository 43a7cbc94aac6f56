"""
Object detection inference stage.

Batches regions cut from one or more frames through an SSD-style detection
network and maps each detection back onto the frame its region came from.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from ..errors import ConfigurationError, SequencingError
from ..inference.backend import InferenceEngine
from ..models.descriptor import ObjectDetectionModel
from ..models.detection import ObjectDetectionResult
from ..models.region import Region
from .base import BaseInference
from .decode import decode_batch


class ObjectDetection(BaseInference):
    """
    Example:
        stage = ObjectDetection(engine, show_output_thresh=0.5)
        stage.load_network(model)

        # Each cycle:
        for image, offset in regions:
            stage.enqueue(image, offset)
        stage.submit_request()
        if stage.fetch_results():
            stage.observe_output(output)
    """

    def __init__(
        self,
        engine: InferenceEngine,
        show_output_thresh: float = 0.0,
        name: str = "ObjectDetection",
        enable_roi_constraint: bool = True,
    ):
        super().__init__(engine, name)
        self.show_output_thresh = float(show_output_thresh)
        self.enable_roi_constraint = enable_roi_constraint
        self._valid_model: Optional[ObjectDetectionModel] = None

    @property
    def model(self) -> Optional[ObjectDetectionModel]:
        return self._valid_model

    @property
    def max_batch_size(self) -> int:
        return self._model().max_batch_size

    def load_network(self, model: ObjectDetectionModel) -> None:
        """
        Bind a model descriptor, discarding any regions buffered so far.

        Raises:
            ConfigurationError: If the descriptor is missing, incomplete, or
                does not match the engine's input or output shape.
            SequencingError: If a batch is in flight.
        """
        if model is None:
            raise ConfigurationError(f"{self.get_name()}: cannot load a null model descriptor")

        with self._exclusive("load_network"):
            if self._request is not None:
                raise SequencingError(
                    f"{self.get_name()}: cannot swap model while a batch is in flight"
                )
            model.validate()

            engine_input = getattr(self._engine, "input_shape", None)
            if engine_input is not None:
                model.check_input_shape(engine_input)
            engine_output = getattr(self._engine, "output_shape", None)
            if engine_output is not None:
                model.check_output_shape(engine_output)

            if self._regions:
                logging.info(
                    f"{self.get_name()}: model swap discarded {len(self._regions)} buffered regions"
                )
            self._regions = []
            self._valid_model = model
            logging.info(
                f"{self.get_name()}: loaded model {model.model_path or '<unnamed>'} "
                f"(batch={model.max_batch_size}, proposals={model.max_proposal_count}, "
                f"object_size={model.object_size})"
            )

    def _model(self) -> ObjectDetectionModel:
        if self._valid_model is None:
            raise ConfigurationError(f"{self.get_name()}: no model descriptor loaded")
        return self._valid_model

    def _decode(self, raw: np.ndarray, regions: Sequence[Region]) -> List[ObjectDetectionResult]:
        return decode_batch(
            raw,
            self._model(),
            regions,
            threshold=self.show_output_thresh,
            constrain=self.enable_roi_constraint,
        )
