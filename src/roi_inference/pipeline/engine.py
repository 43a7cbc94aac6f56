"""
Pipeline engine driving inference stages frame by frame.

Each frame goes through every stage in strict enqueue -> submit -> fetch
order. All stages are submitted before any is fetched so that stages on
different engines run concurrently. Results are handed to the outputs
connected to each stage's name.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np

from ..detection.object_detection import ObjectDetection
from ..errors import InferenceError
from ..inference.factory import create_engine_from_config, create_model_from_config
from ..models.config import PipelineSpec
from ..outputs.base import BaseOutput
from ..outputs.image_window import ImageWindowOutput
from ..outputs.log_output import LoggingOutput
from .regions import FixedRoiProvider, RegionProvider, whole_frame


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        name: Pipeline name used in log messages.
        stats_log_interval: Seconds between status log messages.
    """
    name: str = "pipeline"
    stats_log_interval: float = 60.0


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    batches_submitted: int = 0
    regions_skipped: int = 0
    detection_count: int = 0
    stage_failures: int = 0
    detections_by_stage: Dict[str, int] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


@dataclass
class StageBinding:
    """An inference stage and where its regions come from."""
    stage: ObjectDetection
    region_provider: RegionProvider = whole_frame

    @property
    def name(self) -> str:
        return self.stage.get_name()


class PipelineEngine:
    """
    Example:
        stage = ObjectDetection(engine, show_output_thresh=0.5)
        stage.load_network(model)
        engine = PipelineEngine(
            [StageBinding(stage)],
            outputs={"Log": LoggingOutput()},
            connects={"ObjectDetection": ["Log"]},
        )
        engine.run(frames)
    """

    def __init__(
        self,
        stages: List[StageBinding],
        outputs: Optional[Dict[str, BaseOutput]] = None,
        connects: Optional[Dict[str, List[str]]] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.stages = stages
        self.outputs = outputs or {}
        self.connects = connects or {}
        self.config = config or PipelineConfig()
        self.stats = PipelineStats()
        self._running = False

        for stage_name, output_names in self.connects.items():
            for output_name in output_names:
                if output_name not in self.outputs:
                    raise ValueError(
                        f"Stage {stage_name} is connected to unknown output {output_name}"
                    )

    def run(self, frames: Iterable[np.ndarray]) -> None:
        """
        Run every frame through the pipeline until exhausted or stopped.
        """
        self._running = True
        self.stats = PipelineStats()
        logging.info(f"Pipeline started: {self.config.name} stages={[b.name for b in self.stages]}")

        try:
            for frame in frames:
                if not self._running:
                    break
                self.process_frame(frame)
                if not self._flush_outputs():
                    break  # User pressed 'q'
                self._handle_periodic_tasks()
        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the pipeline to stop after the current frame."""
        self._running = False

    def process_frame(self, frame: np.ndarray) -> Dict[str, tuple]:
        """
        Run one frame through every stage and dispatch the results.

        Returns the result set of each stage that completed a cycle. A stage
        that fails is logged and skips this frame.
        """
        self.stats.frame_count += 1
        for output in self.outputs.values():
            output.feed_frame(frame)

        submitted: List[StageBinding] = []
        for binding in self.stages:
            if self._submit_stage(binding, frame):
                submitted.append(binding)

        results: Dict[str, tuple] = {}
        for binding in submitted:
            try:
                binding.stage.fetch_results()
            except InferenceError as e:
                self.stats.stage_failures += 1
                logging.error(f"Stage {binding.name} fetch failed: {e}")
                continue

            stage_results = binding.stage.results
            results[binding.name] = stage_results
            self._accumulate(binding.name, stage_results)
            self._dispatch(binding)

        return results

    def _submit_stage(self, binding: StageBinding, frame: np.ndarray) -> bool:
        stage = binding.stage
        try:
            enqueued = 0
            for region in binding.region_provider(frame):
                if stage.enqueue(region.image, region.offset):
                    enqueued += 1
                else:
                    self.stats.regions_skipped += 1
            if enqueued == 0:
                return False
            stage.submit_request()
        except InferenceError as e:
            self.stats.stage_failures += 1
            logging.error(f"Stage {binding.name} submit failed: {e}")
            stage.reset()
            return False

        self.stats.batches_submitted += 1
        return True

    def _accumulate(self, stage_name: str, results: tuple) -> None:
        self.stats.detection_count += len(results)
        self.stats.detections_by_stage[stage_name] = (
            self.stats.detections_by_stage.get(stage_name, 0) + len(results)
        )

    def _dispatch(self, binding: StageBinding) -> None:
        for output_name in self.connects.get(binding.name, []):
            try:
                binding.stage.observe_output(self.outputs[output_name])
            except Exception as e:
                logging.warning(f"Output {output_name} error: {e}")

    def _flush_outputs(self) -> bool:
        keep_running = True
        for output in self.outputs.values():
            try:
                if not output.handle_output():
                    keep_running = False
            except Exception as e:
                logging.warning(f"Output {output.name} error: {e}")
        return keep_running

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Pipeline stats: frames={self.stats.frame_count}, "
                f"batches={self.stats.batches_submitted}, "
                f"detections={self.stats.detection_count}, "
                f"skipped_regions={self.stats.regions_skipped}, "
                f"failures={self.stats.stage_failures}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        self._running = False
        for output in self.outputs.values():
            try:
                output.close()
            except Exception as e:
                logging.warning(f"Error closing output {output.name}: {e}")
        for binding in self.stages:
            close = getattr(binding.stage.engine, "close", None)
            if close is not None:
                close()
        logging.info(
            f"Pipeline stopped: frames={self.stats.frame_count}, "
            f"detections={self.stats.detection_count}"
        )


def create_output(name: str, display: bool = False) -> BaseOutput:
    """Create an output sink by its config name."""
    if name == "ImageWindow":
        return ImageWindowOutput(name=name, show=display)
    if name == "Log":
        return LoggingOutput(name=name)
    raise ValueError(f"Unknown output type: {name}")


def create_pipeline_from_config(spec: PipelineSpec, display: bool = False) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from a pipeline config.

    Loads each stage's descriptor and engine, then wires outputs by name.
    """
    bindings: List[StageBinding] = []
    for infer_cfg in spec.infers:
        model = create_model_from_config(infer_cfg)
        stage = ObjectDetection(
            create_engine_from_config(infer_cfg),
            show_output_thresh=float(infer_cfg.confidence_threshold),
            name=infer_cfg.name,
            enable_roi_constraint=bool(infer_cfg.enable_roi_constraint),
        )
        stage.load_network(model)
        provider: RegionProvider = whole_frame
        if infer_cfg.rois:
            provider = FixedRoiProvider(infer_cfg.rois, constrain=bool(infer_cfg.enable_roi_constraint))
        bindings.append(StageBinding(stage=stage, region_provider=provider))

    outputs = {name: create_output(name, display=display) for name in spec.outputs}
    return PipelineEngine(
        bindings,
        outputs=outputs,
        connects=spec.connects,
        config=PipelineConfig(name=spec.name),
    )
