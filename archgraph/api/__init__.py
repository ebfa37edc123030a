"""HTTP API exposed next to the MCP endpoint."""

from .routes import ROUTES, register_routes

__all__ = ["ROUTES", "register_routes"]
