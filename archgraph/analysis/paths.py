"""Repository-scoped path search over RELATES_TO edges."""

import logging
from typing import Any

from archgraph.core.exceptions import InputValidationError
from archgraph.graph.driver import GraphStore

logger = logging.getLogger(__name__)

MAX_PATH_DEPTH = 15
DEFAULT_SHORTEST_DEPTH = 10
DEFAULT_ALL_PATHS_DEPTH = 5

PATH_COLUMNS = """
[n IN nodes(path) | {id: n.id, name: coalesce(n.displayName, n.name, n.id), type: n.type}] as nodes,
length(path) as length
"""


def validate_depth(max_depth: Any) -> int:
    """Hop bound, checked before it is interpolated into a variable-length pattern."""
    try:
        depth = int(max_depth)
    except (TypeError, ValueError) as e:
        msg = f"maxDepth must be an integer, got {max_depth!r}"
        raise InputValidationError(msg) from e
    if not 1 <= depth <= MAX_PATH_DEPTH:
        msg = f"maxDepth must be between 1 and {MAX_PATH_DEPTH}, got {depth}"
        raise InputValidationError(msg)
    return depth


def _validate_endpoints(source_id: str, target_id: str) -> None:
    if not source_id or not target_id:
        msg = "sourceId and targetId are required"
        raise InputValidationError(msg)
    if source_id == target_id:
        msg = "sourceId and targetId must differ"
        raise InputValidationError(msg)


def _to_path(record: dict[str, Any]) -> dict[str, Any]:
    nodes = [
        {"id": n["id"], "name": n.get("name") or n["id"], "type": n.get("type") or ""}
        for n in record["nodes"]
    ]
    return {"path": [n["id"] for n in nodes], "length": record["length"], "nodes": nodes}


async def find_shortest_path(
    store: GraphStore,
    repository_id: str,
    source_id: str,
    target_id: str,
    max_depth: int = DEFAULT_SHORTEST_DEPTH,
) -> dict[str, Any] | None:
    """Shortest directed path whose nodes all belong to the repository, or ``None``."""
    _validate_endpoints(source_id, target_id)
    depth = validate_depth(max_depth)
    if not repository_id:
        return None

    records = await store.run_query(
        f"""
        MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(source:Object {{id: $sourceId}})
        MATCH (r)-[:CONTAINS]->(target:Object {{id: $targetId}})
        MATCH path = shortestPath((source)-[:RELATES_TO*1..{depth}]->(target))
        WHERE ALL(node IN nodes(path) WHERE (r)-[:CONTAINS]->(node))
        RETURN {PATH_COLUMNS}
        LIMIT 1
        """,
        repositoryId=repository_id,
        sourceId=source_id,
        targetId=target_id,
    )
    return _to_path(records[0]) if records else None


async def find_all_paths(
    store: GraphStore,
    repository_id: str,
    source_id: str,
    target_id: str,
    max_depth: int = DEFAULT_ALL_PATHS_DEPTH,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Up to ``limit`` directed paths of at most ``max_depth`` hops, shortest first."""
    _validate_endpoints(source_id, target_id)
    depth = validate_depth(max_depth)
    if not repository_id:
        return []

    records = await store.run_query(
        f"""
        MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(source:Object {{id: $sourceId}})
        MATCH (r)-[:CONTAINS]->(target:Object {{id: $targetId}})
        MATCH path = (source)-[:RELATES_TO*1..{depth}]->(target)
        WHERE ALL(node IN nodes(path) WHERE (r)-[:CONTAINS]->(node))
        WITH path, length(path) as pathLength
        ORDER BY pathLength
        LIMIT $limit
        RETURN {PATH_COLUMNS}
        """,
        repositoryId=repository_id,
        sourceId=source_id,
        targetId=target_id,
        limit=int(limit),
    )
    logger.debug("Found %s paths from %s to %s (maxDepth %s)", len(records), source_id, target_id, depth)
    return [_to_path(r) for r in records]
