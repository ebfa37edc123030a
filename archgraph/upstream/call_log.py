"""Bounded, replayable log of upstream API calls."""

import json
import shlex
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode

TOKEN_PLACEHOLDER = "<TOKEN>"


@dataclass
class CallRecord:
    """One upstream request and how it ended."""

    method: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    status: int | None = None
    outcome: str = "pending"
    error: str | None = None
    duration_ms: float | None = None
    curl: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_curl(
    method: str,
    url: str,
    params: dict[str, Any] | None = None,
    body: Any = None,
    token: str | None = None,
) -> str:
    """Render an equivalent ``curl`` command for replaying a call by hand."""
    full_url = f"{url}?{urlencode(params)}" if params else url
    parts = ["curl", "-X", method.upper(), shlex.quote(full_url)]
    parts += ["-H", shlex.quote(f"Authorization: Bearer {token or TOKEN_PLACEHOLDER}")]
    parts += ["-H", shlex.quote("Accept: application/json")]
    if body is not None:
        parts += ["-H", shlex.quote("Content-Type: application/json")]
        parts += ["-d", shlex.quote(json.dumps(body))]
    return " ".join(parts)


class CallLog:
    """Ring buffer of the most recent ``size`` call records."""

    def __init__(self, size: int = 100):
        self._records: deque[CallRecord] = deque(maxlen=size)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def start(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        token: str | None = None,
    ) -> CallRecord:
        record = CallRecord(
            method=method.upper(),
            url=url,
            params=dict(params or {}),
            body=body,
            curl=build_curl(method, url, params, body, token),
        )
        with self._lock:
            self._records.append(record)
        return record

    @staticmethod
    def update_curl(record: CallRecord, token: str) -> None:
        """Fill in the bearer token once it is known."""
        record.curl = build_curl(record.method, record.url, record.params, record.body, token)

    @staticmethod
    def finish(
        record: CallRecord,
        status: int | None,
        duration_ms: float,
        error: str | None = None,
    ) -> None:
        record.status = status
        record.duration_ms = round(duration_ms, 1)
        record.error = error
        record.outcome = "error" if error else "success"

    def recent(self, limit: int = 50) -> list[dict[str, Any]]:
        """Most recent records first."""
        with self._lock:
            records = list(self._records)
        return [r.to_dict() for r in reversed(records[-limit:])] if limit > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
