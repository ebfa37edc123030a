"""Core functionality for the archgraph service."""

from .decorators import track_request
from .exceptions import ArchGraphError, MCPToolError
from .logging import configure_logging, logger
from .progress import ProgressBus, ProgressEvent

__all__ = [
    "ArchGraphError",
    "MCPToolError",
    "ProgressBus",
    "ProgressEvent",
    "configure_logging",
    "logger",
    "track_request",
]
