"""
Object detection model descriptor.

Static description of a detection network: what it expects as input and how
its flat output buffer is laid out. Descriptors are shared by reference
between inference stages and never mutated by them.

Raw output records are laid out as
    [image_id, class_id, confidence, x_min, y_min, x_max, y_max, ...]
with `object_size` floats per record and `max_proposal_count` records per
batch item.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError

# Minimum record stride: image_id, class_id, confidence and four box corners
MIN_OBJECT_SIZE = 7


def load_labels(path: str) -> List[str]:
    """
    Read a label table, one label per line.

    Blank lines are kept as empty labels so that line numbers stay aligned
    with class ids.
    """
    if not os.path.exists(path):
        raise ConfigurationError(f"Label file not found: {path}")
    with open(path, "r") as f:
        labels = [line.rstrip("\r\n").strip() for line in f]
    # Drop the trailing empty line left by a final newline
    while labels and not labels[-1]:
        labels.pop()
    return labels


@dataclass(frozen=True)
class ObjectDetectionModel:
    """
    Descriptor for an SSD-style detection network.

    Attributes:
        input_shape: (batch, channels, height, width); batch is the maximum
            number of regions per inference call.
        max_proposal_count: Output records reserved per batch item.
        object_size: Floats per output record.
        labels: Label table indexed by class id.
        model_path: Where the network was loaded from (informational).
    """
    input_shape: Tuple[int, int, int, int]
    max_proposal_count: int
    object_size: int = MIN_OBJECT_SIZE
    labels: Tuple[str, ...] = field(default_factory=tuple)
    model_path: Optional[str] = None

    @property
    def max_batch_size(self) -> int:
        return self.input_shape[0]

    @property
    def input_channels(self) -> int:
        return self.input_shape[1]

    @property
    def input_height(self) -> int:
        return self.input_shape[2]

    @property
    def input_width(self) -> int:
        return self.input_shape[3]

    @property
    def input_size(self) -> Tuple[int, int]:
        """Return (width, height) of the network input."""
        return (self.input_width, self.input_height)

    def output_shape(self, batch: Optional[int] = None) -> Tuple[int, int, int, int]:
        """Expected raw output shape for `batch` regions (default: capacity)."""
        n = self.max_batch_size if batch is None else batch
        return (1, 1, n * self.max_proposal_count, self.object_size)

    def label_for(self, class_id: int) -> str:
        """Resolve a class id to its label, falling back to 'label #<id>'."""
        if 0 <= class_id < len(self.labels):
            return self.labels[class_id]
        return f"label #{class_id}"

    def validate(self) -> None:
        """
        Check the descriptor is fully initialized.

        Raises:
            ConfigurationError: If any field is missing or out of range.
        """
        if self.input_shape is None or len(self.input_shape) != 4:
            raise ConfigurationError(
                f"input_shape must be (batch, channels, height, width), got {self.input_shape}"
            )
        if any(int(d) <= 0 for d in self.input_shape):
            raise ConfigurationError(f"input_shape values must be positive, got {self.input_shape}")
        if self.max_proposal_count <= 0:
            raise ConfigurationError(
                f"max_proposal_count must be positive, got {self.max_proposal_count}"
            )
        if self.object_size < MIN_OBJECT_SIZE:
            raise ConfigurationError(
                f"object_size must be at least {MIN_OBJECT_SIZE}, got {self.object_size}"
            )

    def check_input_shape(self, shape: Sequence[int]) -> None:
        """
        Fail fast if an engine's input shape disagrees with this descriptor.

        Batch capacity, channels and spatial dimensions must all match.
        """
        if tuple(int(d) for d in shape) != tuple(self.input_shape):
            raise ConfigurationError(
                f"Descriptor input shape {tuple(self.input_shape)} does not match "
                f"engine input shape {tuple(shape)}"
            )

    def check_output_shape(self, shape: Sequence[int]) -> None:
        """
        Fail fast if an engine's output shape disagrees with this descriptor.

        Only the innermost two dimensions are compared: records per call and
        the record stride.
        """
        dims = tuple(int(d) for d in shape)
        if len(dims) < 2:
            raise ConfigurationError(f"Engine output shape {dims} has too few dimensions")
        records, stride = dims[-2], dims[-1]
        if stride != self.object_size:
            raise ConfigurationError(
                f"Descriptor object_size {self.object_size} does not match "
                f"engine output stride {stride}"
            )
        if records != self.max_batch_size * self.max_proposal_count:
            raise ConfigurationError(
                f"Descriptor expects {self.max_batch_size * self.max_proposal_count} "
                f"output records, engine produces {records}"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any], labels: Optional[Sequence[str]] = None) -> "ObjectDetectionModel":
        """Adapter: Create from an inference config dictionary."""
        return cls(
            input_shape=(
                int(d.get("batch", 1)),
                int(d.get("input_channels", 3)),
                int(d.get("input_height", 300)),
                int(d.get("input_width", 300)),
            ),
            max_proposal_count=int(d.get("max_proposal_count", 200)),
            object_size=int(d.get("object_size", MIN_OBJECT_SIZE)),
            labels=tuple(labels if labels is not None else d.get("labels") or ()),
            model_path=d.get("model"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model_path,
            "batch": self.max_batch_size,
            "input_channels": self.input_channels,
            "input_height": self.input_height,
            "input_width": self.input_width,
            "max_proposal_count": self.max_proposal_count,
            "object_size": self.object_size,
            "labels": list(self.labels),
        }
