"""
Graph analysis tools for MCP server.

- get_centrality: degree or weighted-degree ranking
- find_paths: shortest path or all paths between two objects
"""

import logging
from typing import TYPE_CHECKING, Any

from fastmcp import Context

if TYPE_CHECKING:
    from fastmcp import FastMCP

from archgraph import services
from archgraph.analysis import calculate_centrality, find_all_paths, find_shortest_path
from archgraph.analysis.paths import DEFAULT_ALL_PATHS_DEPTH, DEFAULT_SHORTEST_DEPTH
from archgraph.core import track_request
from archgraph.core.context import AppContext
from archgraph.tools.common import run_tool

logger = logging.getLogger(__name__)


def register_analysis_tools(mcp: "FastMCP") -> None:
    """
    Register graph analysis MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("get_centrality")
    async def get_centrality(
        ctx: Context,
        repository_id: str | None = None,
        kind: str = "degree",
    ) -> str:
        """
        Rank the objects of a repository by connectivity.

        - `degree`: outgoing + incoming relation count
        - `weighted`: incoming * 1.5 + outgoing. A fast weighted degree score,
          not an iterative PageRank (`pagerank` is accepted as an alias)

        Args:
            repository_id: Repository id; defaults to the configured one
            kind: "degree" or "weighted"
        """

        async def operation(app: AppContext) -> dict[str, Any]:
            results = await calculate_centrality(
                app.require_store(),
                services.require_repository_id(app, repository_id),
                kind,
                app.settings.centrality_limit,
            )
            return {"type": kind, "results": results}

        return await run_tool("get_centrality", operation)

    @mcp.tool()
    @track_request("find_paths")
    async def find_paths(
        ctx: Context,
        source_id: str,
        target_id: str,
        repository_id: str | None = None,
        max_depth: int | None = None,
        find_all: bool = False,
        limit: int | None = None,
    ) -> str:
        """
        Find directed paths between two objects of the same repository.

        Args:
            source_id: Start object id
            target_id: End object id
            repository_id: Repository id; defaults to the configured one
            max_depth: Maximum hops (1-15); defaults to 10 for one path, 5 with `find_all`
            find_all: Return every path up to `limit`, shortest first, instead of one shortest path
            limit: Maximum paths when `find_all` is set (default 50)
        """

        async def operation(app: AppContext) -> dict[str, Any]:
            repo_id = services.require_repository_id(app, repository_id)
            store = app.require_store()
            if find_all:
                paths = await find_all_paths(
                    store,
                    repo_id,
                    source_id,
                    target_id,
                    DEFAULT_ALL_PATHS_DEPTH if max_depth is None else max_depth,
                    limit or app.settings.path_limit,
                )
                return {"sourceId": source_id, "targetId": target_id, "paths": paths}
            path = await find_shortest_path(
                store,
                repo_id,
                source_id,
                target_id,
                DEFAULT_SHORTEST_DEPTH if max_depth is None else max_depth,
            )
            return {"sourceId": source_id, "targetId": target_id, "path": path}

        return await run_tool("find_paths", operation)
