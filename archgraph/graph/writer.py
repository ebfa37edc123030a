"""
Neo4j Graph Writer Module

Turns a snapshot into parameter rows and writes them to the graph store.

- ``prepare_snapshot`` is pure: it resolves display names, serializes the
  free-form maps to JSON text, flattens data blocks out of objects and collects
  the distinct tag set. It can be re-run without re-fetching anything.
- ``write_*`` functions each run exactly one transaction for one batch of rows.
  The loader decides how rows are batched and in which order phases run.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from archgraph.graph.driver import GraphStore
from archgraph.models import Repository, Snapshot

logger = logging.getLogger(__name__)

UPSERT_REPOSITORY = """
MERGE (r:Repository {id: $id})
SET r.name = $name,
    r.description = $description,
    r.version = $version,
    r.updatedAt = datetime()
RETURN r.id as id
"""

UPSERT_OBJECTS = """
MATCH (r:Repository {id: $repositoryId})
UNWIND $objects AS obj
MERGE (o:Object {id: obj.id})
SET o.type = obj.type,
    o.name = obj.name,
    o.objectName = obj.objectName,
    o.description = obj.description,
    o.properties = obj.properties,
    o.metadata = obj.metadata,
    o.updatedAt = datetime()
MERGE (r)-[:CONTAINS]->(o)
RETURN count(o) as written
"""

UPSERT_DATABLOCKS = """
UNWIND $dataBlocks AS db
MATCH (o:Object {id: db.objectId})
MERGE (datablock:DataBlock {id: db.id})
SET datablock.namespace = db.namespace,
    datablock.name = db.name,
    datablock.values = db.values,
    datablock.updatedAt = db.updatedAt
MERGE (o)-[:HAS_DATABLOCK]->(datablock)
RETURN count(datablock) as written
"""

MERGE_TAGS = """
UNWIND $tags AS tagName
MERGE (t:Tag {name: tagName})
RETURN count(t) as written
"""

LINK_TAGS = """
UNWIND $tagLinks AS link
MATCH (o:Object {id: link.objectId})
MATCH (t:Tag {name: link.tagName})
MERGE (o)-[:HAS_TAG]->(t)
RETURN count(t) as written
"""

# Endpoints must be contained in the same repository; rows whose endpoints
# do not match are dropped by the MATCH without failing the batch.
CREATE_RELATIONS = """
MATCH (repo:Repository {id: $repositoryId})
UNWIND $relations AS rel
MATCH (repo)-[:CONTAINS]->(source:Object {id: rel.sourceId})
MATCH (repo)-[:CONTAINS]->(target:Object {id: rel.targetId})
CREATE (source)-[r:RELATES_TO {id: rel.id}]->(target)
SET r.type = rel.type,
    r.properties = rel.properties,
    r.metadata = rel.metadata
RETURN count(r) as written
"""


@dataclass
class PreparedGraph:
    """Parameter rows for every load phase."""

    repository: dict[str, Any]
    objects: list[dict[str, Any]] = field(default_factory=list)
    data_blocks: list[dict[str, Any]] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    tag_links: list[dict[str, str]] = field(default_factory=list)
    relations: list[dict[str, Any]] = field(default_factory=list)


def _dump(value: Any) -> str:
    return json.dumps(value or {}, default=str, sort_keys=True)


def prepare_repository(repository: Repository) -> dict[str, Any]:
    return {
        "id": repository.id,
        "name": repository.name,
        "description": repository.description,
        "version": repository.version,
    }


def prepare_snapshot(snapshot: Snapshot) -> PreparedGraph:
    """Normalize a snapshot into write-ready rows. Deterministic, no I/O."""
    prepared = PreparedGraph(repository=prepare_repository(snapshot.repository))
    seen_tags: dict[str, None] = {}
    fallback_timestamp = datetime.now(UTC).isoformat()

    for obj in snapshot.objects:
        prepared.objects.append(
            {
                "id": obj.id,
                "type": obj.type,
                "name": obj.display_name,
                "objectName": json.dumps(obj.object_name) if obj.object_name else None,
                "description": obj.description,
                "properties": _dump(obj.properties),
                "metadata": _dump(obj.metadata),
            },
        )
        for block in obj.data_blocks:
            prepared.data_blocks.append(
                {
                    "id": block.id,
                    "objectId": obj.id,
                    "namespace": block.namespace,
                    "name": block.name,
                    "values": _dump(block.values),
                    "updatedAt": block.updated_at or fallback_timestamp,
                },
            )
        for tag in obj.tags:
            seen_tags.setdefault(tag, None)
            prepared.tag_links.append({"objectId": obj.id, "tagName": tag})

    prepared.tags = list(seen_tags)
    prepared.relations = [
        {
            "id": rel.id,
            "sourceId": rel.source_id,
            "targetId": rel.target_id,
            "type": rel.type,
            "properties": _dump(rel.properties),
            "metadata": _dump(rel.metadata),
        }
        for rel in snapshot.relations
    ]
    return prepared


async def _write(
    store: GraphStore,
    query: str,
    params: dict[str, Any],
    timeout: float | None,
) -> int:
    async with store.transaction(timeout=timeout) as tx:
        result = await tx.run(query, params)
        record = await result.single()
    return record["written"] if record else 0


async def upsert_repository(
    store: GraphStore,
    repository: dict[str, Any],
    timeout: float | None = None,
) -> None:
    async with store.transaction(timeout=timeout) as tx:
        await tx.run(UPSERT_REPOSITORY, repository)
    logger.info("Upserted repository %s (%s)", repository["id"], repository["name"])


async def write_objects(
    store: GraphStore,
    repository_id: str,
    batch: list[dict[str, Any]],
    timeout: float | None = None,
) -> int:
    return await _write(
        store,
        UPSERT_OBJECTS,
        {"repositoryId": repository_id, "objects": batch},
        timeout,
    )


async def write_data_blocks(
    store: GraphStore,
    batch: list[dict[str, Any]],
    timeout: float | None = None,
) -> int:
    return await _write(store, UPSERT_DATABLOCKS, {"dataBlocks": batch}, timeout)


async def write_tags(store: GraphStore, tags: list[str], timeout: float | None = None) -> int:
    return await _write(store, MERGE_TAGS, {"tags": tags}, timeout)


async def write_tag_links(
    store: GraphStore,
    batch: list[dict[str, str]],
    timeout: float | None = None,
) -> int:
    return await _write(store, LINK_TAGS, {"tagLinks": batch}, timeout)


async def write_relations(
    store: GraphStore,
    repository_id: str,
    batch: list[dict[str, Any]],
    timeout: float | None = None,
) -> int:
    return await _write(
        store,
        CREATE_RELATIONS,
        {"repositoryId": repository_id, "relations": batch},
        timeout,
    )
