"""
Build engines and model descriptors from inference config.
"""

from __future__ import annotations

import logging

from ..models.config import InferConfig
from ..models.descriptor import ObjectDetectionModel, load_labels
from .cpu_backend import DnnConfig, OpenCVDnnEngine


def create_model_from_config(cfg: InferConfig) -> ObjectDetectionModel:
    """Create the model descriptor for one inference stage."""
    labels = load_labels(cfg.label) if cfg.label else []
    model = ObjectDetectionModel.from_dict(cfg.to_dict(), labels=labels)
    model.validate()
    logging.info(
        f"Model descriptor for {cfg.name}: input={model.input_shape}, "
        f"proposals={model.max_proposal_count}, labels={len(labels)}"
    )
    return model


def create_engine_from_config(cfg: InferConfig) -> OpenCVDnnEngine:
    """
    Create the OpenCV DNN engine for one inference stage.

    The engine is fed the configured input shape once at load so the stage
    can check its descriptor against what the network really produces.
    """
    return OpenCVDnnEngine(
        DnnConfig(
            model=cfg.model,
            weights=cfg.weights,
            engine=cfg.engine,
            max_proposal_count=int(cfg.max_proposal_count),
            object_size=int(cfg.object_size),
            input_shape=(int(cfg.batch), 3, int(cfg.input_height), int(cfg.input_width)),
            scale=float(cfg.scale),
            mean=tuple(float(m) for m in cfg.mean),
            swap_rb=bool(cfg.swap_rb),
        )
    )
