"""Logging setup: one ``archgraph`` logger on stderr, lines tagged with the request id."""

import logging
import os
import sys
from contextvars import ContextVar

from dotenv import load_dotenv

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Third-party loggers that repeat what the call log and loader already report
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "neo4j": logging.WARNING,
    "neo4j.notifications": logging.ERROR,
}


class RequestIdFilter(logging.Filter):
    def filter(self, record):
        request_id = request_id_ctx.get()
        record.request_id = f"[{request_id}] " if request_id else ""
        return True


def configure_logging() -> logging.Logger:
    """Configure root handlers and return the application logger.

    stdout is left alone so the stdio MCP transport stays clean.
    """
    # ARCHGRAPH_DEBUG may only be set in .env, which Settings has not read yet
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] [%(name)s] %(request_id)s%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    for handler in logging.root.handlers:
        handler.addFilter(RequestIdFilter())

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    app_logger = logging.getLogger("archgraph")
    if os.getenv("ARCHGRAPH_DEBUG", "").lower() in ("true", "1", "yes"):
        app_logger.setLevel(logging.DEBUG)
        app_logger.debug("Debug mode enabled")

    return app_logger


logger = configure_logging()
