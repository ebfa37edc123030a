"""
MCP Tools Package.

Each module provides a register_*_tools() function to register tools with FastMCP:
- repository: extraction and replace-load of repositories
- graph: listing, detail, statistics, sampled graph and neighbors
- analysis: centrality and path search
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastmcp import FastMCP

from archgraph.tools.analysis import register_analysis_tools
from archgraph.tools.graph import register_graph_tools
from archgraph.tools.repository import register_repository_tools

logger = logging.getLogger(__name__)


def register_tools(mcp: "FastMCP") -> None:
    """Register all MCP tools with the FastMCP instance."""
    register_repository_tools(mcp)
    register_graph_tools(mcp)
    register_analysis_tools(mcp)
    logger.info("All MCP tools registered")


__all__ = [
    "register_analysis_tools",
    "register_graph_tools",
    "register_repository_tools",
    "register_tools",
]
