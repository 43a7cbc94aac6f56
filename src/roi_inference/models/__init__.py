"""
Typed models for the ROI inference stage.
"""

from .detection import BoundingBox, Result, ObjectDetectionResult
from .region import Region
from .descriptor import ObjectDetectionModel, load_labels
from .config import Config, InferConfig, PipelineSpec

__all__ = [
    # Geometry / results
    "BoundingBox",
    "Result",
    "ObjectDetectionResult",
    # Regions
    "Region",
    # Model
    "ObjectDetectionModel",
    "load_labels",
    # Config
    "Config",
    "InferConfig",
    "PipelineSpec",
]
