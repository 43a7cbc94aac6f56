"""
ROI inference: batched, asynchronous object detection over image regions.
"""

from .detection import ObjectDetection
from .errors import ConfigurationError, DecodeError, InferenceError, SequencingError
from .models import BoundingBox, ObjectDetectionModel, ObjectDetectionResult, Region, Result

__version__ = "0.1.0"

__all__ = [
    "ObjectDetection",
    "ObjectDetectionModel",
    "ObjectDetectionResult",
    "Result",
    "Region",
    "BoundingBox",
    "InferenceError",
    "ConfigurationError",
    "SequencingError",
    "DecodeError",
]
