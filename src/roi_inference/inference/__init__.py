"""
Inference engines.

Engines are the one asynchronous seam: they run a batched network call on a
worker thread and hand back the raw, batch-major output buffer.
"""

from .backend import EngineRequest, InferenceEngine, ThreadedEngine, prepare_blob
from .callable_backend import CallableEngine
from .cpu_backend import DnnConfig, OpenCVDnnEngine, to_batch_major
from .factory import create_engine_from_config, create_model_from_config

__all__ = [
    "EngineRequest",
    "InferenceEngine",
    "ThreadedEngine",
    "prepare_blob",
    "CallableEngine",
    "DnnConfig",
    "OpenCVDnnEngine",
    "to_batch_major",
    "create_engine_from_config",
    "create_model_from_config",
]
