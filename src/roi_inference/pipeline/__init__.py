"""
Pipeline module for ROI inference.

The pipeline orchestrates the full processing flow:
- Region selection per frame
- Batched detection per stage (enqueue, submit, fetch)
- Dispatch of results to connected outputs
"""

from .engine import (
    PipelineConfig,
    PipelineEngine,
    PipelineStats,
    StageBinding,
    create_output,
    create_pipeline_from_config,
)
from .regions import FixedRoiProvider, RegionProvider, whole_frame

__all__ = [
    "PipelineConfig",
    "PipelineEngine",
    "PipelineStats",
    "StageBinding",
    "create_output",
    "create_pipeline_from_config",
    "FixedRoiProvider",
    "RegionProvider",
    "whole_frame",
]
