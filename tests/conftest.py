"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from roi_inference.inference.callable_backend import CallableEngine  # noqa: E402
from roi_inference.models.descriptor import ObjectDetectionModel  # noqa: E402


def make_raw(records_per_slot, max_proposal_count=4, object_size=7):
    """
    Build a batch-major raw output buffer.

    records_per_slot is a list (one entry per region) of lists of
    (class_id, confidence, x_min, y_min, x_max, y_max) tuples. Unused
    records are padded with image_id = -1.
    """
    batch = len(records_per_slot)
    raw = np.zeros((batch, max_proposal_count, object_size), dtype=np.float32)
    raw[:, :, 0] = -1
    for slot, records in enumerate(records_per_slot):
        for i, (class_id, conf, x1, y1, x2, y2) in enumerate(records):
            raw[slot, i, :7] = [slot, class_id, conf, x1, y1, x2, y2]
    return raw.reshape(1, 1, batch * max_proposal_count, object_size)


class ScriptedNetwork:
    """Network stand-in returning queued raw buffers, one per call."""

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.blobs = []

    def __call__(self, blob, batch):
        self.blobs.append(blob)
        return self.outputs.pop(0)


@pytest.fixture
def raw_output():
    """Factory for batch-major raw buffers (see make_raw)."""
    return make_raw


@pytest.fixture
def model():
    """Descriptor: batch of 4 regions, 4 proposals each, 3 labels."""
    return ObjectDetectionModel(
        input_shape=(4, 3, 32, 32),
        max_proposal_count=4,
        object_size=7,
        labels=("background", "person", "car"),
        model_path="models/test-ssd.xml",
    )


@pytest.fixture
def network():
    return ScriptedNetwork()


@pytest.fixture
def engine(network):
    eng = CallableEngine(network)
    yield eng
    eng.close()


@pytest.fixture
def frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "pipelines": [
            {
                "name": "object",
                "input_path": "data/video.mp4",
                "infers": [
                    {
                        "name": "ObjectDetection",
                        "model": "models/mobilenet-ssd.xml",
                        "engine": "CPU",
                        "batch": 1,
                        "confidence_threshold": 0.5,
                        "enable_roi_constraint": True,
                    }
                ],
                "outputs": ["ImageWindow", "Log"],
                "connects": {"ObjectDetection": ["ImageWindow", "Log"]},
            }
        ],
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
pipelines:
  - name: object
    input_path: data/video.mp4
    infers:
      - name: ObjectDetection
        model: models/mobilenet-ssd.xml
        engine: CPU
        confidence_threshold: 0.5
    outputs: [Log]

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir
