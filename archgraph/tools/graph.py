"""
Graph query tools for MCP server.

- list_objects: paginated, filterable object listing
- get_object: one object with tags, relations and data blocks
- get_statistics: counts per repository
- get_object_metrics: upstream metrics per object
- get_graph: bounded node sample with the relations among it
- get_neighbors: bounded one or two hop neighborhood
"""

import logging
from typing import TYPE_CHECKING, Any

from fastmcp import Context

if TYPE_CHECKING:
    from fastmcp import FastMCP

from archgraph import services
from archgraph.core import track_request
from archgraph.core.context import AppContext
from archgraph.graph import queries
from archgraph.tools.common import run_tool

logger = logging.getLogger(__name__)


def register_graph_tools(mcp: "FastMCP") -> None:
    """
    Register graph query MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("list_objects")
    async def list_objects(
        ctx: Context,
        repository_id: str | None = None,
        page: int = 0,
        page_size: int = 50,
        object_type: str | None = None,
        search: str | None = None,
    ) -> str:
        """
        List objects of a loaded repository, ordered by name.

        Args:
            repository_id: Repository id; defaults to the configured one
            page: Zero-based page number
            page_size: Objects per page (1-1000)
            object_type: Exact object type filter, e.g. "ArchiMate:ApplicationComponent"
            search: Case-insensitive substring matched against name and description

        Returns:
            JSON string with the objects and a total count
        """
        size = max(1, min(1000, page_size))

        async def operation(app: AppContext) -> dict[str, Any]:
            repo_id = app.resolve_repository_id(repository_id)
            if not repo_id:
                return {"items": [], "total": 0}
            return await queries.list_objects(
                app.require_store(),
                repo_id,
                offset=max(0, page) * size,
                limit=size,
                type_filter=object_type,
                search=search,
            )

        return await run_tool("list_objects", operation)

    @mcp.tool()
    @track_request("get_object")
    async def get_object(ctx: Context, object_id: str) -> str:
        """
        Get one object with its tags, incoming/outgoing relations and data blocks.

        Args:
            object_id: Object id

        Returns:
            JSON string with the object detail (data is null when it does not exist)
        """
        return await run_tool(
            "get_object",
            lambda app: queries.get_object(app.require_store(), object_id),
        )

    @mcp.tool()
    @track_request("get_statistics")
    async def get_statistics(ctx: Context, repository_id: str | None = None) -> str:
        """
        Get object count, relation count and objects per type for a repository.

        Args:
            repository_id: Repository id; defaults to the configured one
        """
        return await run_tool(
            "get_statistics",
            lambda app: queries.get_statistics(
                app.require_store(),
                app.resolve_repository_id(repository_id) or "",
            ),
        )

    @mcp.tool()
    @track_request("get_object_metrics")
    async def get_object_metrics(ctx: Context, repository_id: str | None = None) -> str:
        """
        List the upstream metrics of every object in a repository that has any.

        Args:
            repository_id: Repository id; defaults to the configured one
        """
        return await run_tool(
            "get_object_metrics",
            lambda app: queries.list_object_metrics(
                app.require_store(),
                app.resolve_repository_id(repository_id) or "",
            ),
        )

    @mcp.tool()
    @track_request("get_graph")
    async def get_graph(
        ctx: Context,
        repository_id: str | None = None,
        limit: int = 500,
        object_type: str | None = None,
        search: str | None = None,
    ) -> str:
        """
        Get a bounded sample of nodes and the relations between them.

        Args:
            repository_id: Repository id; defaults to the configured one
            limit: Maximum nodes (1-1000); at most 2000 edges are returned
            object_type: Exact object type filter
            search: Case-insensitive substring matched against names
        """

        async def operation(app: AppContext) -> dict[str, Any]:
            return await queries.get_graph_sample(
                app.require_store(),
                app.resolve_repository_id(repository_id) or "",
                limit=max(1, min(app.settings.graph_sample_limit, limit)),
                type_filter=object_type,
                search=search,
                edge_limit=app.settings.graph_edge_limit,
            )

        return await run_tool("get_graph", operation)

    @mcp.tool()
    @track_request("get_neighbors")
    async def get_neighbors(
        ctx: Context,
        object_id: str,
        repository_id: str | None = None,
        depth: int = 1,
    ) -> str:
        """
        Expand the neighborhood of one object.

        The expansion is bounded and lossy: at most N (default 50) direct
        neighbors, and with depth 2 at most N more second-hop nodes. It is not
        a complete subgraph; `truncated` tells whether a hop hit its limit.

        Args:
            object_id: Center object id
            repository_id: Repository id; defaults to the configured one
            depth: 1 or 2
        """

        async def operation(app: AppContext) -> dict[str, Any]:
            return await queries.get_neighbors(
                app.require_store(),
                services.require_repository_id(app, repository_id),
                object_id,
                depth=max(1, min(2, depth)),
                limit=app.settings.neighbor_limit,
                edge_limit=app.settings.graph_edge_limit,
            )

        return await run_tool("get_neighbors", operation)
