"""
Repository synchronization tools for MCP server.

- sync_repository: extract a repository snapshot from the upstream API
- load_repository: replace the stored graph with the latest snapshot
"""

import logging
from typing import TYPE_CHECKING

from fastmcp import Context

if TYPE_CHECKING:
    from fastmcp import FastMCP

from archgraph import services
from archgraph.core import track_request
from archgraph.tools.common import run_tool

logger = logging.getLogger(__name__)


def register_repository_tools(mcp: "FastMCP") -> None:
    """
    Register repository synchronization MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("sync_repository")
    async def sync_repository(ctx: Context, repository_id: str | None = None) -> str:
        """
        Extract a full snapshot (objects, relations, data blocks) of an upstream repository.

        The snapshot is kept in memory until `load_repository` writes it to the graph.
        Progress is published on the progress stream while pages are fetched.

        Args:
            repository_id: Numeric upstream repository id; defaults to the configured one

        Returns:
            JSON string with object and relation counts and timing
        """
        return await run_tool(
            "sync_repository",
            lambda app: services.sync_repository(app, repository_id),
        )

    @mcp.tool()
    @track_request("load_repository")
    async def load_repository(ctx: Context, repository_id: str | None = None) -> str:
        """
        Replace the stored graph of a repository with its latest snapshot.

        All previously loaded objects, relations, orphan tags and data blocks of
        the repository are deleted first, then everything is rebuilt in batches.
        A snapshot is extracted first when none is cached.

        Args:
            repository_id: Numeric upstream repository id; defaults to the configured one

        Returns:
            JSON string with per-phase counters
        """
        return await run_tool(
            "load_repository",
            lambda app: services.load_repository(app, repository_id),
        )
