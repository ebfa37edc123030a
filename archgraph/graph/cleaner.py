"""Neo4j repository cleanup operations"""

import logging
from typing import Any

from archgraph.core.exceptions import QueryError, RepositoryError
from archgraph.graph.driver import GraphStore

logger = logging.getLogger(__name__)

# Order matters: objects go first so orphaned data blocks and tags become detectable.
DELETE_STEPS: list[tuple[str, str]] = [
    (
        "objects",
        """
        MATCH (r:Repository {id: $repositoryId})-[containsRel:CONTAINS]->(o:Object)
        DETACH DELETE o, containsRel
        RETURN count(o) as deleted_count
        """,
    ),
    (
        "orphan_objects",
        """
        MATCH (o:Object)
        WHERE NOT (o)<-[:CONTAINS]-()
        DETACH DELETE o
        RETURN count(o) as deleted_count
        """,
    ),
    (
        "orphan_datablocks",
        """
        MATCH (db:DataBlock)
        WHERE NOT (db)<-[:HAS_DATABLOCK]-()
        DELETE db
        RETURN count(db) as deleted_count
        """,
    ),
    (
        "orphan_tags",
        """
        MATCH (t:Tag)
        WHERE NOT (t)<-[:HAS_TAG]-()
        DELETE t
        RETURN count(t) as deleted_count
        """,
    ),
]


async def clear_repository_data(
    store: GraphStore,
    repository_id: str,
    timeout: float | None = None,
) -> dict[str, int]:
    """Remove everything a previous load of ``repository_id`` created.

    All four steps share one transaction: either the repository's objects and
    every resulting orphan are gone, or nothing changed. The Repository node
    itself is kept.

    Args:
        store: Graph store wrapper
        repository_id: Id of the repository being replaced
        timeout: Transaction timeout in seconds

    Returns:
        Deleted counts per step
    """
    logger.info("Deleting existing graph state for repository %s", repository_id)
    cleanup_stats: dict[str, int] = {}

    try:
        async with store.transaction(timeout=timeout) as tx:
            for step, query in DELETE_STEPS:
                logger.debug("Cleanup step: %s", step)
                params: dict[str, Any] = {"repositoryId": repository_id} if "$repositoryId" in query else {}
                result = await tx.run(query, params)
                record = await result.single()
                cleanup_stats[step] = record["deleted_count"] if record else 0
    except QueryError as e:
        logger.error("Neo4j query error during cleanup transaction, rolled back: %s", e)
        raise
    except Exception as e:
        logger.exception("Unexpected error during cleanup transaction, rolled back")
        msg = f"Repository cleanup failed and was rolled back: {e}"
        raise RepositoryError(msg) from e

    total_deleted = sum(cleanup_stats.values())
    logger.info("Cleared repository %s - %s nodes deleted", repository_id, total_deleted)
    for step, count in cleanup_stats.items():
        if count > 0:
            logger.info("  - %s: %s", step, count)
    return cleanup_stats
