"""Decorators for the archgraph service."""

import functools
import logging
import time
import traceback
import uuid
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from .logging import logger, request_id_ctx

P = ParamSpec("P")
R = TypeVar("R")


def track_request(
    name: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Give each MCP tool call or HTTP request a short id and log its outcome.

    The id is attached to every log line emitted while the call runs. When the
    call is made with a ``repository_id`` keyword it is included in the start line.

    Args:
        name: Tool or route name used in log lines
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            token = request_id_ctx.set(uuid.uuid4().hex[:8])
            started = time.perf_counter()

            repository_id = kwargs.get("repository_id")
            if repository_id:
                logger.info("%s started (repository %s)", name, repository_id)
            else:
                logger.info("%s started", name)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("%s arguments: %s", name, kwargs)

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error("%s failed after %.2fs: %s", name, time.perf_counter() - started, e)
                logger.debug("Traceback: %s", traceback.format_exc())
                raise
            else:
                logger.info("%s completed in %.2fs", name, time.perf_counter() - started)
                return result
            finally:
                request_id_ctx.reset(token)

        return wrapper

    return decorator
