"""Derived, recomputable fields used by the query layer.

Nothing written here is authoritative: display names, category split,
degree counters and hub/leaf flags can be dropped and rebuilt at any time
from the loaded objects and relations.
"""

import logging
import time
from typing import Any

from archgraph.graph.driver import GraphStore
from archgraph.utils.batching import iter_batches
from archgraph.utils.names import parse_stored_name, split_type

logger = logging.getLogger(__name__)

REPOSITORY_OBJECTS = """
MATCH (r:Repository {id: $repositoryId})-[:CONTAINS]->(o:Object)
RETURN o.id as id, o.type as type, o.name as name, o.objectName as objectName
"""

SET_NAMES_AND_CATEGORIES = """
UNWIND $updates AS update
MATCH (o:Object {id: update.id})
SET o.displayName = update.displayName,
    o.category = update.category,
    o.subCategory = update.subCategory
"""

SET_DEGREE_COUNTERS = """
UNWIND $objectIds AS objId
MATCH (o:Object {id: objId})
WITH o,
     size([(o)-[:RELATES_TO]->(:Object) | 1]) as outgoing,
     size([(o)<-[:RELATES_TO]-(:Object) | 1]) as incoming
SET o.outgoingCount = outgoing,
    o.incomingCount = incoming,
    o.relationshipCount = outgoing + incoming,
    o.isHub = outgoing + incoming > $hubThreshold,
    o.isLeaf = outgoing + incoming = 0
"""

SET_RELATION_NAMES = """
UNWIND $objectIds AS objId
MATCH (source:Object {id: objId})-[r:RELATES_TO]->(target:Object)
SET r.fromName = coalesce(source.displayName, source.name, source.id),
    r.toName = coalesce(target.displayName, target.name, target.id)
"""


def derive_fields(row: dict[str, Any]) -> dict[str, Any]:
    """Compute display name and category split for one stored object row."""
    category, sub_category = split_type(row.get("type"))
    return {
        "id": row["id"],
        "displayName": parse_stored_name(row.get("objectName")) or row.get("name") or row["id"],
        "category": category,
        "subCategory": sub_category,
    }


async def enrich_repository(
    store: GraphStore,
    repository_id: str,
    batch_size: int = 5000,
    hub_threshold: int = 10,
    timeout: float | None = None,
) -> dict[str, int]:
    """Recompute every derived field for the objects and relations of one repository."""
    started = time.perf_counter()
    rows = await store.run_query(REPOSITORY_OBJECTS, repositoryId=repository_id)
    if not rows:
        logger.info("No objects to enrich for repository %s", repository_id)
        return {"objects": 0, "batches": 0}

    updates = [derive_fields(row) for row in rows]
    object_ids = [row["id"] for row in rows]
    batches = 0

    for number, batch in iter_batches(updates, batch_size):
        async with store.transaction(timeout=timeout) as tx:
            await tx.run(SET_NAMES_AND_CATEGORIES, {"updates": batch})
        logger.debug("Enrichment names batch %s: %s objects", number, len(batch))
        batches += 1

    # Counters and relation names read displayName, so they run after all names are set
    for number, batch in iter_batches(object_ids, batch_size):
        async with store.transaction(timeout=timeout) as tx:
            await tx.run(SET_DEGREE_COUNTERS, {"objectIds": batch, "hubThreshold": hub_threshold})
            await tx.run(SET_RELATION_NAMES, {"objectIds": batch})
        logger.debug("Enrichment counters batch %s: %s objects", number, len(batch))
        batches += 1

    logger.info(
        "Enriched %s objects of repository %s in %.2fs",
        len(rows),
        repository_id,
        time.perf_counter() - started,
    )
    return {"objects": len(rows), "batches": batches}
