"""Neo4j connection management shared by the loader and the query layer."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase, NotificationMinimumSeverity

from archgraph.config import Settings
from archgraph.core.exceptions import ConfigurationError, ConnectionError

logger = logging.getLogger(__name__)


def format_neo4j_error(error: Exception) -> str:
    """Format Neo4j errors for user-friendly display."""
    error_str = str(error).lower()
    if "authentication" in error_str or "unauthorized" in error_str:
        return "Authentication failed. Please check your Neo4j username and password."
    if "failed to establish connection" in error_str or "connection refused" in error_str:
        return "Connection failed. Please ensure Neo4j is running and accessible at the specified URI."
    if "unable to retrieve routing information" in error_str:
        return "Connection failed. The Neo4j URI may be incorrect or the database may not be accessible."
    return f"Neo4j error: {error!s}"


class GraphStore:
    """Owns the async driver; one instance is shared process-wide."""

    def __init__(
        self,
        uri: str,
        username: str,
        password: str,
        database: str = "neo4j",
        driver: AsyncDriver | Any | None = None,
    ):
        self.uri = uri
        self.username = username
        self.password = password
        self.database = database
        self.driver = driver

    @classmethod
    def from_settings(cls, settings: Settings) -> "GraphStore":
        if not settings.has_neo4j_config():
            msg = "NEO4J_URI, NEO4J_USERNAME and NEO4J_PASSWORD must be set"
            raise ConfigurationError(msg)
        return cls(
            settings.neo4j_uri or "",
            settings.neo4j_username or "",
            settings.neo4j_password or "",
            settings.neo4j_database,
        )

    async def initialize(self) -> None:
        """Create the driver and check connectivity."""
        if self.driver is not None:
            return
        logger.info("Initializing Neo4j connection to %s", self.uri)
        self.driver = AsyncGraphDatabase.driver(
            self.uri,
            auth=(self.username, self.password),
            warn_notification_severity=NotificationMinimumSeverity.OFF,
        )
        try:
            await self.driver.verify_connectivity()
        except Exception as e:
            await self.driver.close()
            self.driver = None
            raise ConnectionError(format_neo4j_error(e)) from e
        logger.info("Neo4j connection initialized successfully")

    async def close(self) -> None:
        if self.driver is not None:
            await self.driver.close()
            self.driver = None

    def session(self) -> Any:
        if self.driver is None:
            msg = "Neo4j driver is not initialized"
            raise ConnectionError(msg)
        return self.driver.session(database=self.database)

    async def run_query(self, query: str, **params: Any) -> list[dict[str, Any]]:
        """Run a read query in an auto-commit session and return plain dicts."""
        async with self.session() as session:
            result = await session.run(query, params)
            return [record.data() async for record in result]

    @asynccontextmanager
    async def transaction(self, timeout: float | None = None) -> AsyncIterator[Any]:
        """Explicit transaction: committed on normal exit, rolled back on error."""
        async with self.session() as session:
            tx = await session.begin_transaction(timeout=timeout)
            try:
                yield tx
            except Exception:
                await tx.rollback()
                raise
            await tx.commit()
