"""Upstream repository API access."""

from .auth import TokenManager
from .call_log import CallLog, CallRecord
from .client import OBJECTS, RELATIONS, Page, UpstreamClient, extract_items
from .retry import backoff_delay_ms, with_retry

__all__ = [
    "OBJECTS",
    "RELATIONS",
    "CallLog",
    "CallRecord",
    "Page",
    "TokenManager",
    "UpstreamClient",
    "backoff_delay_ms",
    "extract_items",
    "with_retry",
]
