"""Shared plumbing for MCP tools: context lookup and the JSON envelope."""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from archgraph.core.context import AppContext, get_app_context
from archgraph.core.exceptions import ArchGraphError, MCPToolError

logger = logging.getLogger(__name__)


def envelope(data: Any = None, error: str | None = None, **extra: Any) -> str:
    if error is not None:
        return json.dumps({"success": False, "error": error}, indent=2)
    return json.dumps({"success": True, "data": data, **extra}, indent=2, default=str)


async def run_tool(name: str, operation: Callable[[AppContext], Awaitable[Any]]) -> str:
    """Run ``operation`` against the app context and wrap its result.

    Domain errors come back in the envelope; anything unexpected is raised
    as ``MCPToolError`` so the client sees a JSON-RPC error.
    """
    app_ctx = get_app_context()
    if app_ctx is None:
        return envelope(error="Application context is not initialized")

    try:
        data = await operation(app_ctx)
    except ArchGraphError as e:
        logger.error("%s failed: %s", name, e)
        return envelope(error=str(e))
    except Exception as e:
        logger.exception("Unexpected error in %s tool", name)
        msg = f"{name} failed: {e!s}"
        raise MCPToolError(msg) from e
    return envelope(data)
