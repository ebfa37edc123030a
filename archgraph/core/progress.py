"""Progress publish/subscribe channel for extraction runs.

One ``ProgressBus`` is constructed at process start and handed to whatever
needs to publish (the extractor) or observe (SSE stream, logs). Subscribers
are plain callables taking a ``ProgressEvent``; coroutine functions are
scheduled on the running loop instead of awaited, so a slow observer never
holds up the pipeline. A subscriber that raises is logged and skipped.
"""

import asyncio
import inspect
import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

EVENT_START = "start"
EVENT_PROGRESS = "progress"
EVENT_COMPLETE = "complete"
EVENT_ERROR = "error"

Subscriber = Callable[["ProgressEvent"], Any]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class ProgressEvent:
    """One start/progress/complete/error signal."""

    type: str
    message: str | None = None
    phase: str | None = None
    current: int | None = None
    total: int | None = None
    offset: int | None = None
    data: Any = None
    error: str | None = None
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Serializable form with unset fields dropped."""
        return {k: v for k, v in asdict(self).items() if v is not None}


class ProgressBus:
    """Process-wide progress channel with explicit subscribe/unsubscribe."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()
        # Strong references keep scheduled deliveries alive until they finish
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a function that detaches it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, event: ProgressEvent) -> None:
        """Deliver ``event`` to every current subscriber."""
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    self._schedule(result)
            except Exception:
                logger.exception("Progress subscriber %r failed on %s event", callback, event.type)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _schedule(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Dropping async progress subscriber result: no running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(self._delivery_done)

    def _delivery_done(self, task: "asyncio.Future[Any]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Async progress subscriber failed: %s",
                error,
                exc_info=(type(error), error, error.__traceback__),
            )

    def emit_start(self, message: str) -> None:
        self.publish(ProgressEvent(type=EVENT_START, message=message))

    def emit_progress(
        self,
        phase: str,
        current: int,
        total: int | None = None,
        offset: int | None = None,
    ) -> None:
        self.publish(
            ProgressEvent(
                type=EVENT_PROGRESS,
                phase=phase,
                current=current,
                total=total,
                offset=offset,
            ),
        )

    def emit_complete(self, message: str, data: Any = None) -> None:
        self.publish(ProgressEvent(type=EVENT_COMPLETE, message=message, data=data))

    def emit_error(self, message: str, error: BaseException | str | None = None) -> None:
        self.publish(
            ProgressEvent(
                type=EVENT_ERROR,
                message=message,
                error=str(error) if error is not None else None,
            ),
        )
