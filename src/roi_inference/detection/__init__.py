"""
Inference stages.

This module handles batched, asynchronous object detection over image
regions and the mapping of results back to frame coordinates.
"""

from .base import BaseInference
from .decode import RawDetection, correlate, decode_batch, decode_slot, split_records
from .object_detection import ObjectDetection

__all__ = [
    "BaseInference",
    "ObjectDetection",
    "RawDetection",
    "correlate",
    "decode_batch",
    "decode_slot",
    "split_records",
]
