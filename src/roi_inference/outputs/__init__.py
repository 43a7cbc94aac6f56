"""
Output sinks for inference results.
"""

from .base import BaseOutput
from .image_window import ImageWindowOutput
from .log_output import LoggingOutput

__all__ = ["BaseOutput", "ImageWindowOutput", "LoggingOutput"]
