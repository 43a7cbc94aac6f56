"""
Command line entry point: run object detection pipelines from a YAML config.

Usage:
    roi-inference --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show annotated frames for ImageWindow outputs
    --pipeline: Run only the named pipeline
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, Iterator, Optional, Tuple

import cv2
import numpy as np
import yaml

from .models.config import Config, PipelineSpec
from .ops.logging import setup_logging
from .pipeline.engine import create_pipeline_from_config

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
VALID_ENGINES = ['CPU', 'GPU', 'GPU_FP16', 'MYRIAD']
VALID_OUTPUTS = ['ImageWindow', 'Log']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `default.yaml` next to the config file (checked in)
    - `config.yaml` next to the config file (local overrides)
    - the explicitly provided path, if it is neither of those

    Raises:
        FileNotFoundError: If none of the layers exist.
        yaml.YAMLError: If a layer is not valid YAML.
    """
    config_dir = os.path.dirname(config_path)
    base_path = os.path.join(config_dir, "default.yaml")
    local_path = os.path.join(config_dir, "config.yaml")

    layers = [p for p in (base_path, local_path) if os.path.exists(p)]
    explicit = os.path.abspath(config_path)
    if os.path.exists(config_path) and explicit not in (os.path.abspath(p) for p in layers):
        layers.append(config_path)
    if not layers:
        raise FileNotFoundError(f"No configuration found at {config_path}")

    merged: Dict[str, Any] = {}
    for path in layers:
        merged = _deep_merge(merged, _read_yaml(path))
    return merged


def _validate_infer(infer: Dict[str, Any], where: str) -> Optional[str]:
    if not isinstance(infer, dict):
        return f"{where} must be a mapping"
    if not isinstance(infer.get('name'), str) or not infer.get('name'):
        return f"{where}.name is required"
    if not isinstance(infer.get('model'), str) or not infer.get('model'):
        return f"{where}.model is required"

    engine = infer.get('engine', 'CPU')
    if not isinstance(engine, str) or engine.upper() not in VALID_ENGINES:
        return f"{where}.engine must be one of: {', '.join(VALID_ENGINES)}"

    for key in ('batch', 'input_width', 'input_height', 'max_proposal_count'):
        if key in infer and (not isinstance(infer[key], int) or infer[key] <= 0):
            return f"{where}.{key} must be a positive integer"
    if 'object_size' in infer and (not isinstance(infer['object_size'], int) or infer['object_size'] < 7):
        return f"{where}.object_size must be an integer of at least 7"

    scale = infer.get('scale', 1.0)
    if not isinstance(scale, (int, float)) or scale <= 0:
        return f"{where}.scale must be a positive number"
    mean = infer.get('mean', [0.0, 0.0, 0.0])
    if not isinstance(mean, list) or not 1 <= len(mean) <= 3 or \
            not all(isinstance(m, (int, float)) for m in mean):
        return f"{where}.mean must be a list of up to three numbers"

    thresh = infer.get('confidence_threshold', 0.0)
    if not isinstance(thresh, (int, float)) or not (0 <= thresh <= 1):
        return f"{where}.confidence_threshold must be between 0 and 1"

    rois = infer.get('rois') or []
    if not isinstance(rois, list):
        return f"{where}.rois must be a list of [x, y, width, height]"
    for roi in rois:
        if not isinstance(roi, list) or len(roi) != 4:
            return f"{where}.rois entries must be [x, y, width, height]"
        if roi[2] <= 0 or roi[3] <= 0:
            return f"{where}.rois width and height must be positive"
    return None


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    for section in ('pipelines', 'log_path', 'log_level'):
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    pipelines = config['pipelines']
    if not isinstance(pipelines, list) or not pipelines:
        return False, "pipelines must be a non-empty list"

    for p_idx, pipeline in enumerate(pipelines):
        where = f"pipelines[{p_idx}]"
        if not isinstance(pipeline, dict):
            return False, f"{where} must be a mapping"
        if not pipeline.get('input_path'):
            return False, f"Missing {where}.input_path"

        infers = pipeline.get('infers')
        if not isinstance(infers, list) or not infers:
            return False, f"{where}.infers must be a non-empty list"
        names = []
        for i_idx, infer in enumerate(infers):
            error = _validate_infer(infer, f"{where}.infers[{i_idx}]")
            if error:
                return False, error
            names.append(infer['name'])
        if len(set(names)) != len(names):
            return False, f"{where}.infers names must be unique"

        outputs = pipeline.get('outputs') or []
        for output in outputs:
            if output not in VALID_OUTPUTS:
                return False, f"{where}.outputs must be among: {', '.join(VALID_OUTPUTS)}"

        connects = pipeline.get('connects') or {}
        if not isinstance(connects, dict):
            return False, f"{where}.connects must map stage names to output lists"
        for stage_name, targets in connects.items():
            if stage_name not in names:
                return False, f"{where}.connects references unknown stage: {stage_name}"
            for target in targets or []:
                if target not in outputs:
                    return False, f"{where}.connects references unknown output: {target}"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def iter_video_frames(path: str) -> Iterator[np.ndarray]:
    """Yield frames from a video file or camera index until exhausted."""
    source = int(path) if str(path).isdigit() else path
    cap = cv2.VideoCapture(source)
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open video input: {path}")
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            yield frame
    finally:
        cap.release()


def run_pipeline(spec: PipelineSpec, display: bool = False) -> None:
    engine = create_pipeline_from_config(spec, display=display)
    engine.run(iter_video_frames(spec.input_path))


def main(argv=None):
    """Main application function."""
    parser = argparse.ArgumentParser(description='ROI object detection pipeline')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show annotated frames')
    parser.add_argument('--pipeline', type=str, default=None,
                        help='Run only the named pipeline')
    args = parser.parse_args(argv)

    try:
        raw_config = load_config(args.config)
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        return 1

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    config = Config.from_dict(raw_config)
    setup_logging(config.log_path, config.log_level)

    pipelines = config.pipelines
    if args.pipeline:
        pipelines = [p for p in pipelines if p.name == args.pipeline]
        if not pipelines:
            logging.error(f"No pipeline named {args.pipeline}")
            return 1

    for spec in pipelines:
        logging.info(f"Starting pipeline {spec.name} on {spec.input_path}")
        try:
            run_pipeline(spec, display=args.display)
        except RuntimeError as e:
            logging.error(f"Pipeline {spec.name} failed: {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
