"""Name resolution helpers for multi-language upstream records."""

import json
from typing import Any

DEFAULT_LANGUAGE = "en"


def extract_object_name(
    object_name: dict[str, str] | str | None,
    preferred_language: str = DEFAULT_LANGUAGE,
) -> str:
    """Pick a single name out of a ``{"en": ..., "fr": ...}`` structure.

    Plain strings are returned unchanged. Otherwise the preferred language wins,
    then the first language present. Missing or empty input yields "".
    """
    if not object_name:
        return ""

    if isinstance(object_name, str):
        return object_name

    if isinstance(object_name, dict):
        preferred = object_name.get(preferred_language)
        if preferred:
            return str(preferred)
        for value in object_name.values():
            if value:
                return str(value)

    return ""


def resolve_display_name(
    object_name: dict[str, str] | str | None,
    name: str | None = None,
    external_id: str | None = None,
    object_id: str | None = None,
) -> str:
    """Display name fallback chain: multi-language name, simple name, external id, id."""
    return extract_object_name(object_name) or name or external_id or object_id or ""


def parse_stored_name(raw: Any) -> str:
    """Decode a name persisted as JSON text (or left as a plain string) in the store."""
    if not raw:
        return ""
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return raw
        if isinstance(decoded, (dict, str)):
            return extract_object_name(decoded)
        return raw
    return extract_object_name(raw)


def split_type(type_name: str | None) -> tuple[str, str]:
    """Split ``"Namespace:Kind"`` into category and sub-category."""
    if not type_name or ":" not in type_name:
        return (type_name or "Other", "Unknown")
    category, _, rest = type_name.partition(":")
    return (category or "Other", rest or "Unknown")
