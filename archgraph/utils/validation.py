"""Validation utilities for the archgraph service."""

from typing import Any

from archgraph.core.exceptions import InputValidationError


def parse_repository_id(repository_id: Any) -> int:
    """Validate an upstream repository id and return it as an integer.

    Upstream ids are numeric; anything else is rejected before a network call.
    """
    if repository_id is None or isinstance(repository_id, bool):
        msg = f"Invalid repository id: {repository_id!r}"
        raise InputValidationError(msg)

    text = str(repository_id).strip()
    if not (text.isascii() and text.isdigit()):
        msg = f"Invalid repository id: {repository_id!r}"
        raise InputValidationError(msg)
    return int(text)


def clamp_int(value: Any, default: int, minimum: int, maximum: int) -> int:
    """Parse a query parameter into an int bounded by ``[minimum, maximum]``."""
    try:
        parsed = int(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        parsed = default
    return max(minimum, min(maximum, parsed))
