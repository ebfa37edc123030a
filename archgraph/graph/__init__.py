"""Graph store: connection, replace-and-rebuild loader and read queries."""

from .cleaner import clear_repository_data
from .driver import GraphStore, format_neo4j_error
from .enrichment import enrich_repository
from .loader import GraphLoader
from .schema import ensure_schema
from .writer import PreparedGraph, prepare_snapshot

__all__ = [
    "GraphLoader",
    "GraphStore",
    "PreparedGraph",
    "clear_repository_data",
    "enrich_repository",
    "ensure_schema",
    "format_neo4j_error",
    "prepare_snapshot",
]
