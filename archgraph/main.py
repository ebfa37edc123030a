"""
Main entry point for the archgraph MCP server.

Serves the MCP tools and the HTTP API from one FastMCP instance.
"""

import asyncio
import sys
import traceback

from fastmcp import FastMCP

from archgraph.api import register_routes
from archgraph.config import get_settings
from archgraph.core import logger
from archgraph.core.context import app_lifespan, cleanup_global_context, initialize_global_context
from archgraph.tools import register_tools

SERVER_NAME = "archgraph"

# Get settings instance
settings = get_settings()


def create_mcp_server() -> FastMCP:
    """Build the FastMCP server with every tool and HTTP route registered."""
    server = FastMCP(SERVER_NAME, lifespan=app_lifespan)
    register_tools(server)
    register_routes(server)
    return server


try:
    logger.info("Initializing FastMCP server...")
    mcp = create_mcp_server()
    logger.info("FastMCP server initialized successfully")
except Exception as e:
    logger.error("Failed to initialize FastMCP server: %s", e)
    logger.error("Traceback: %s", traceback.format_exc())
    sys.exit(1)


async def main() -> None:
    """
    Main async function to run the MCP server.
    """
    try:
        logger.info("Initializing global application context...")
        await initialize_global_context()
        logger.info("✓ Global context initialized")

        transport = settings.transport.lower()
        transport_map = {
            "http": "streamable-http",
            "streamable-http": "streamable-http",
            "sse": "sse",
            "stdio": "stdio",
        }
        fastmcp_transport = transport_map.get(transport, "stdio")

        sys.stdout.flush()
        sys.stderr.flush()

        if fastmcp_transport in ("streamable-http", "sse"):
            logger.info("Setting up %s server on %s:%s...", fastmcp_transport, settings.host, settings.port)
            await mcp.run_async(
                transport=fastmcp_transport,  # type: ignore[arg-type]
                host=settings.host,
                port=settings.port,
            )
        else:
            logger.info("Setting up stdio server...")
            await mcp.run_async(transport="stdio")

    except Exception as e:
        logger.error("Error in main function: %s", e)
        logger.error("Traceback: %s", traceback.format_exc())
        raise
    finally:
        logger.info("Shutting down - cleaning up global context...")
        await cleanup_global_context()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
