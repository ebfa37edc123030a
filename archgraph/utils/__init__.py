"""Utility helpers for the archgraph service."""

from .batching import chunk, iter_batches
from .names import (
    extract_object_name,
    parse_stored_name,
    resolve_display_name,
    split_type,
)
from .validation import parse_repository_id, clamp_int

__all__ = [
    "chunk",
    "clamp_int",
    "extract_object_name",
    "iter_batches",
    "parse_repository_id",
    "parse_stored_name",
    "resolve_display_name",
    "split_type",
]
