"""
Error types raised by inference stages.

Capacity problems (a degenerate region, a full batch) are not errors: enqueue
reports them by returning False and the region is skipped for the cycle.
"""

from __future__ import annotations


class InferenceError(RuntimeError):
    """Base class for inference stage failures."""


class ConfigurationError(InferenceError, ValueError):
    """Missing or incompatible model descriptor or engine configuration."""


class SequencingError(InferenceError):
    """An operation was called out of enqueue -> submit -> fetch order."""


class DecodeError(InferenceError, ValueError):
    """Raw engine output does not match the bound model descriptor."""
