"""
Typed configuration models matching the YAML pipeline config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class InferConfig:
    """One object detection stage within a pipeline."""
    name: str = "ObjectDetection"
    model: str = ""
    weights: Optional[str] = None
    engine: str = "CPU"
    label: Optional[str] = None
    batch: int = 1
    confidence_threshold: float = 0.0
    enable_roi_constraint: bool = True
    input_width: int = 300
    input_height: int = 300
    max_proposal_count: int = 200
    object_size: int = 7
    # Input normalisation: (pixel - mean) * scale, optional BGR -> RGB swap
    scale: float = 1.0
    mean: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    swap_rb: bool = False
    # Fixed regions of interest as [x, y, width, height]; empty = whole frame
    rois: List[List[int]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InferConfig":
        return cls(
            name=d.get("name", "ObjectDetection"),
            model=d.get("model", ""),
            weights=d.get("weights"),
            engine=d.get("engine", "CPU"),
            label=d.get("label"),
            batch=d.get("batch", 1),
            confidence_threshold=d.get("confidence_threshold", 0.0),
            enable_roi_constraint=d.get("enable_roi_constraint", True),
            input_width=d.get("input_width", 300),
            input_height=d.get("input_height", 300),
            max_proposal_count=d.get("max_proposal_count", 200),
            object_size=d.get("object_size", 7),
            scale=d.get("scale", 1.0),
            mean=list(d.get("mean") or [0.0, 0.0, 0.0]),
            swap_rb=d.get("swap_rb", False),
            rois=d.get("rois") or [],
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "model": self.model,
            "engine": self.engine,
            "batch": self.batch,
            "confidence_threshold": self.confidence_threshold,
            "enable_roi_constraint": self.enable_roi_constraint,
            "input_width": self.input_width,
            "input_height": self.input_height,
            "max_proposal_count": self.max_proposal_count,
            "object_size": self.object_size,
            "scale": self.scale,
            "mean": list(self.mean),
            "swap_rb": self.swap_rb,
        }
        if self.weights is not None:
            d["weights"] = self.weights
        if self.label is not None:
            d["label"] = self.label
        if self.rois:
            d["rois"] = self.rois
        return d


@dataclass
class PipelineSpec:
    """
    A named pipeline: one video input, detection stages and outputs.

    `connects` maps an inference stage name to the output names that
    receive its results.
    """
    name: str = "object"
    input_path: str = ""
    infers: List[InferConfig] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    connects: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSpec":
        infers = [InferConfig.from_dict(i) for i in d.get("infers") or []]
        outputs = list(d.get("outputs") or [])
        connects = d.get("connects")
        if connects is None:
            # Unconnected pipelines send every stage to every output
            connects = {i.name: list(outputs) for i in infers}
        return cls(
            name=d.get("name", "object"),
            input_path=d.get("input_path", ""),
            infers=infers,
            outputs=outputs,
            connects={k: list(v) for k, v in connects.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "input_path": self.input_path,
            "infers": [i.to_dict() for i in self.infers],
            "outputs": list(self.outputs),
            "connects": {k: list(v) for k, v in self.connects.items()},
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    pipelines: List[PipelineSpec] = field(default_factory=list)
    log_path: str = "logs/roi_inference.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            pipelines=[PipelineSpec.from_dict(p) for p in d.get("pipelines") or []],
            log_path=d.get("log_path", "logs/roi_inference.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipelines": [p.to_dict() for p in self.pipelines],
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
