"""Application context and lifecycle management for the archgraph service."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

from archgraph.config import Settings, get_settings
from archgraph.core.exceptions import ConfigurationError, DatabaseError
from archgraph.core.progress import ProgressBus
from archgraph.extraction import RepositoryExtractor, SnapshotCache
from archgraph.graph import GraphLoader, GraphStore, ensure_schema, format_neo4j_error
from archgraph.upstream import UpstreamClient

from .logging import logger

# Global context storage
_app_context: Optional["AppContext"] = None
_context_lock: asyncio.Lock | None = None


@dataclass
class AppContext:
    """Process-wide collaborators shared by MCP tools and HTTP routes."""

    settings: Settings
    bus: ProgressBus = field(default_factory=ProgressBus)
    snapshots: SnapshotCache = field(default_factory=SnapshotCache)
    # None when the upstream API is not configured
    client: UpstreamClient | None = None
    # None when Neo4j is not configured or unreachable
    store: GraphStore | None = None

    def require_client(self) -> UpstreamClient:
        if self.client is None:
            msg = "Upstream API is not configured (UPSTREAM_API_URL, UPSTREAM_CLIENT_ID, UPSTREAM_CLIENT_SECRET)"
            raise ConfigurationError(msg)
        return self.client

    def require_store(self) -> GraphStore:
        if self.store is None:
            msg = "Neo4j is not configured or not reachable (NEO4J_URI, NEO4J_USERNAME, NEO4J_PASSWORD)"
            raise ConfigurationError(msg)
        return self.store

    @property
    def extractor(self) -> RepositoryExtractor:
        return RepositoryExtractor(self.require_client(), self.bus)

    @property
    def loader(self) -> GraphLoader:
        return GraphLoader(self.require_store(), self.settings)

    def resolve_repository_id(self, repository_id: Any = None) -> str | None:
        """Explicit id, else the configured default, else ``None``."""
        value = repository_id or self.settings.default_repository_id
        return str(value).strip() if value else None


def set_app_context(context: AppContext | None) -> None:
    """Store the application context globally."""
    global _app_context
    _app_context = context


def get_app_context() -> AppContext | None:
    """Get the stored application context."""
    return _app_context


async def build_context(settings: Settings | None = None) -> AppContext:
    """Create the upstream client and graph store that the settings allow."""
    settings = settings or get_settings()
    context = AppContext(settings=settings)

    if settings.has_upstream_config():
        context.client = UpstreamClient(
            settings,
            on_retry=lambda error, attempt: logger.warning(
                "Upstream retry %s after error: %s",
                attempt,
                error,
            ),
        )
        logger.info("✓ Upstream client configured for %s", settings.upstream_api_url)
    else:
        logger.warning("Upstream API credentials not configured - extraction will be unavailable")

    if settings.has_neo4j_config():
        store = GraphStore.from_settings(settings)
        try:
            await store.initialize()
            await ensure_schema(store)
            context.store = store
            logger.info("✓ Graph store initialized")
        except DatabaseError as e:
            logger.error("Database error initializing Neo4j: %s", e)
            await store.close()
        except Exception as e:
            logger.error("Unexpected error initializing Neo4j: %s", format_neo4j_error(e))
            await store.close()
    else:
        logger.warning("Neo4j credentials not configured - graph tools will be unavailable")

    return context


async def initialize_global_context() -> AppContext:
    """Initialize the global application context once.

    This should be called at application startup, not per-request.
    """
    global _app_context, _context_lock

    if _context_lock is None:
        _context_lock = asyncio.Lock()

    async with _context_lock:
        if _app_context is not None:
            logger.info("Using existing application context (singleton)")
            return _app_context

        logger.info("Initializing global application context...")
        _app_context = await build_context()
        logger.info("✓ Global application context initialized successfully")
        return _app_context


async def cleanup_global_context() -> None:
    """Clean up the global application context.

    This should be called at application shutdown.
    """
    global _app_context
    if _app_context is None:
        logger.info("No global context to clean up")
        return

    logger.info("Starting cleanup of global application context...")
    if _app_context.client is not None:
        await _app_context.client.close()
        logger.info("✓ Upstream client closed")
    if _app_context.store is not None:
        await _app_context.store.close()
        logger.info("✓ Graph store closed")

    _app_context = None
    logger.info("✓ Global application context cleanup completed")


@asynccontextmanager
async def app_lifespan(_server: Any) -> AsyncIterator[AppContext]:
    """Lifespan context manager for FastMCP.

    FastMCP HTTP mode may enter this per session, so the context is a singleton
    and is only torn down by ``cleanup_global_context`` at shutdown.
    """
    context = await initialize_global_context()
    yield context
