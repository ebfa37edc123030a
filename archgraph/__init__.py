"""Enterprise-architecture repository sync into a Neo4j graph, with graph queries over it."""

__version__ = "0.1.0"
