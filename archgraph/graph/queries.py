"""
Neo4j Query Functions

Read-only queries over a loaded repository graph. Every function is scoped by
repository id and returns empty results (not errors) when the repository has
not been loaded yet.
"""

import asyncio
import json
import logging
from typing import Any

from archgraph.graph.driver import GraphStore
from archgraph.utils.names import parse_stored_name

logger = logging.getLogger(__name__)

# objectName holds raw multi-language JSON, so it is not searched
SEARCH_CONDITION = """(
    (o.displayName IS NOT NULL AND toLower(o.displayName) CONTAINS toLower($search))
    OR (o.name IS NOT NULL AND toLower(o.name) CONTAINS toLower($search))
    OR (o.description IS NOT NULL AND toLower(o.description) CONTAINS toLower($search))
)"""

EDGES_BETWEEN = """
MATCH (source:Object)-[r:RELATES_TO]->(target:Object)
WHERE source.id IN $nodeIds AND target.id IN $nodeIds
RETURN r.id as id,
       source.id as from,
       target.id as to,
       r.type as type,
       coalesce(r.fromName, source.displayName, source.name, source.id) as fromName,
       coalesce(r.toName, target.displayName, target.name, target.id) as toName
LIMIT $limit
"""


def node_projection(var: str) -> str:
    """RETURN columns for a visualization node bound to ``var``."""
    return (
        f"{var}.id as id, "
        f"coalesce({var}.displayName, {var}.name, {var}.id) as label, "
        f"{var}.type as type, "
        f"{var}.category as category, "
        f"{var}.subCategory as subCategory"
    )


def load_json(value: Any) -> Any:
    """Decode a map stored as JSON text; malformed text yields an empty map."""
    if not value:
        return {}
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.warning("Discarding malformed JSON property value: %.80s", value)
        return {}


def object_filters(type_filter: str | None, search: str | None) -> tuple[str, dict[str, Any]]:
    conditions = []
    params: dict[str, Any] = {}
    if type_filter:
        conditions.append("o.type = $type")
        params["type"] = type_filter
    if search:
        conditions.append(SEARCH_CONDITION)
        params["search"] = search
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return where, params


def _to_object(record: dict[str, Any]) -> dict[str, Any]:
    name = parse_stored_name(record.get("objectName")) or record.get("name") or ""
    return {
        "id": record.get("id") or "",
        "type": record.get("type") or "",
        "name": name,
        "objectName": name,
        "description": record.get("description"),
        "properties": load_json(record.get("properties")),
        "metadata": load_json(record.get("metadata")),
    }


def _to_edge(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": record["id"],
        "from": record["from"],
        "to": record["to"],
        "type": record.get("type") or "RELATES_TO",
        "label": record.get("type") or "",
        "fromName": record.get("fromName"),
        "toName": record.get("toName"),
    }


def _to_node(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": record["id"],
        "label": record.get("label") or record["id"],
        "type": record.get("type"),
        "category": record.get("category"),
        "subCategory": record.get("subCategory"),
    }


def _to_data_block(record: dict[str, Any]) -> dict[str, Any]:
    block = {
        "id": record["id"],
        "namespace": record.get("namespace"),
        "name": record.get("name"),
        "values": load_json(record.get("values")),
        "updatedAt": record.get("updatedAt"),
    }
    if "objectId" in record:
        block["objectId"] = record["objectId"]
        block["objectName"] = record.get("objectName")
    return block


# ========================================
# Objects
# ========================================


async def list_objects(
    store: GraphStore,
    repository_id: str,
    offset: int = 0,
    limit: int = 50,
    type_filter: str | None = None,
    search: str | None = None,
) -> dict[str, Any]:
    """Page through a repository's objects ordered by name.

    Returns:
        ``{"items": [...], "total": n}`` where ``total`` honours the filters
    """
    if not repository_id:
        return {"items": [], "total": 0}

    where, params = object_filters(type_filter, search)
    params["repositoryId"] = repository_id
    items_query = f"""
    MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(o:Object)
    {where}
    RETURN o.id as id, o.type as type, o.name as name, o.objectName as objectName,
           o.description as description, o.properties as properties, o.metadata as metadata
    ORDER BY o.name
    SKIP $skip
    LIMIT $limit
    """
    count_query = f"""
    MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(o:Object)
    {where}
    RETURN count(o) as total
    """

    records, count_records = await asyncio.gather(
        store.run_query(items_query, skip=max(0, int(offset)), limit=int(limit), **params),
        store.run_query(count_query, **params),
    )
    total = count_records[0]["total"] if count_records else 0
    logger.debug("Listed %s of %s objects in repository %s", len(records), total, repository_id)
    return {"items": [_to_object(r) for r in records], "total": total}


async def get_object(store: GraphStore, object_id: str) -> dict[str, Any] | None:
    """One object with tags, relation summaries and data blocks, or ``None``."""
    records = await store.run_query(
        """
        MATCH (o:Object {id: $objectId})
        OPTIONAL MATCH (o)-[:HAS_TAG]->(t:Tag)
        OPTIONAL MATCH (o)-[r:RELATES_TO]->(target:Object)
        OPTIONAL MATCH (source:Object)-[r2:RELATES_TO]->(o)
        OPTIONAL MATCH (o)-[:HAS_DATABLOCK]->(db:DataBlock)
        RETURN o.id as id, o.type as type, o.name as name, o.objectName as objectName,
               o.description as description, o.properties as properties, o.metadata as metadata,
               collect(DISTINCT t.name) as tags,
               collect(DISTINCT {id: target.id, name: coalesce(target.displayName, target.name), type: r.type}) as outgoing,
               collect(DISTINCT {id: source.id, name: coalesce(source.displayName, source.name), type: r2.type}) as incoming,
               collect(DISTINCT {
                 id: db.id,
                 namespace: db.namespace,
                 name: db.name,
                 values: db.values,
                 updatedAt: db.updatedAt
               }) as dataBlocks
        """,
        objectId=object_id,
    )
    if not records:
        return None

    record = records[0]
    detail = _to_object(record)
    detail["id"] = detail["id"] or object_id
    detail["tags"] = [tag for tag in record.get("tags") or [] if tag is not None]
    detail["dataBlocks"] = [_to_data_block(db) for db in record.get("dataBlocks") or [] if db and db.get("id")]
    # OPTIONAL MATCH misses come back as all-null maps
    detail["relationships"] = {
        "outgoing": [rel for rel in record.get("outgoing") or [] if rel and rel.get("id")],
        "incoming": [rel for rel in record.get("incoming") or [] if rel and rel.get("id")],
    }
    return detail


async def get_statistics(store: GraphStore, repository_id: str) -> dict[str, Any]:
    """Object count, relation count and type breakdown for one repository."""
    if not repository_id:
        return {"totalObjects": 0, "totalRelationships": 0, "objectsByType": []}

    objects, relations, by_type = await asyncio.gather(
        store.run_query(
            "MATCH (r:Repository {id: $repositoryId})-[:CONTAINS]->(o:Object) RETURN count(o) as total",
            repositoryId=repository_id,
        ),
        store.run_query(
            """
            MATCH (repo:Repository {id: $repositoryId})-[:CONTAINS]->(o:Object)
            MATCH (o)-[rel:RELATES_TO]->()
            RETURN count(rel) as total
            """,
            repositoryId=repository_id,
        ),
        store.run_query(
            """
            MATCH (r:Repository {id: $repositoryId})-[:CONTAINS]->(o:Object)
            RETURN o.type as type, count(o) as count
            ORDER BY count DESC
            """,
            repositoryId=repository_id,
        ),
    )
    return {
        "totalObjects": objects[0]["total"] if objects else 0,
        "totalRelationships": relations[0]["total"] if relations else 0,
        "objectsByType": [{"type": r["type"], "count": r["count"]} for r in by_type],
    }


async def list_object_metrics(
    store: GraphStore,
    repository_id: str,
    limit: int = 10000,
) -> list[dict[str, Any]]:
    """Objects of a repository that carry a non-empty upstream ``metrics`` map.

    Metrics are stored inside the JSON ``metadata`` text, so the store only
    pre-filters on the key and decoding happens here.
    """
    if not repository_id:
        return []

    records = await store.run_query(
        """
        MATCH (r:Repository {id: $repositoryId})-[:CONTAINS]->(o:Object)
        WHERE o.metadata CONTAINS '"metrics"'
        RETURN o.id as id, coalesce(o.displayName, o.name, o.id) as name,
               o.type as type, o.metadata as metadata
        ORDER BY o.name
        LIMIT $limit
        """,
        repositoryId=repository_id,
        limit=int(limit),
    )

    results = []
    for record in records:
        metrics = load_json(record.get("metadata")).get("metrics")
        if isinstance(metrics, dict) and metrics:
            results.append(
                {
                    "objectId": record["id"],
                    "objectName": record.get("name"),
                    "objectType": record.get("type"),
                    "metrics": metrics,
                },
            )
    return results


# ========================================
# Graph views
# ========================================


async def edges_between(store: GraphStore, node_ids: list[str], limit: int = 2000) -> list[dict[str, Any]]:
    if not node_ids:
        return []
    records = await store.run_query(EDGES_BETWEEN, nodeIds=node_ids, limit=int(limit))
    return [_to_edge(r) for r in records]


async def get_graph_sample(
    store: GraphStore,
    repository_id: str,
    limit: int = 500,
    type_filter: str | None = None,
    search: str | None = None,
    edge_limit: int = 2000,
) -> dict[str, Any]:
    """Bounded node sample plus the relations among the sampled nodes."""
    if not repository_id:
        return {"nodes": [], "edges": []}

    where, params = object_filters(type_filter, search)
    records = await store.run_query(
        f"""
        MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(o:Object)
        {where}
        WITH o
        LIMIT $limit
        RETURN {node_projection("o")}
        """,
        repositoryId=repository_id,
        limit=int(limit),
        **params,
    )
    nodes = [_to_node(r) for r in records]
    edges = await edges_between(store, [n["id"] for n in nodes], edge_limit)
    return {"nodes": nodes, "edges": edges}


async def _expand_hop(
    store: GraphStore,
    repository_id: str,
    frontier: list[str],
    exclude: list[str],
    limit: int,
) -> list[dict[str, Any]]:
    records = await store.run_query(
        f"""
        MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(n:Object)
        WHERE n.id IN $frontier
        MATCH (n)-[:RELATES_TO]-(neighbor:Object)
        WHERE (r)-[:CONTAINS]->(neighbor) AND NOT neighbor.id IN $exclude
        WITH DISTINCT neighbor
        ORDER BY neighbor.id
        LIMIT $limit
        RETURN {node_projection("neighbor")}
        """,
        repositoryId=repository_id,
        frontier=frontier,
        exclude=exclude,
        limit=int(limit),
    )
    return [_to_node(r) for r in records]


async def get_neighbors(
    store: GraphStore,
    repository_id: str,
    node_id: str,
    depth: int = 1,
    limit: int = 50,
    edge_limit: int = 2000,
) -> dict[str, Any]:
    """Center node plus a bounded, lossy neighborhood.

    The first hop adds at most ``limit`` direct neighbors. With ``depth`` 2 a
    second hop adds at most ``limit`` further nodes, never the center or a node
    already included. Results are truncated at each hop and are not a complete
    induced subgraph; ``truncated`` reports whether a hop hit its limit.
    """
    empty = {"center": None, "nodes": [], "edges": [], "depth": depth, "limit": limit, "truncated": False}
    if not repository_id or not node_id:
        return empty

    centers = await store.run_query(
        f"""
        MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(center:Object {{id: $nodeId}})
        RETURN {node_projection("center")}
        """,
        repositoryId=repository_id,
        nodeId=node_id,
    )
    if not centers:
        return empty

    center = _to_node(centers[0])
    first_hop = await _expand_hop(store, repository_id, [center["id"]], [center["id"]], limit)
    nodes = [center, *first_hop]
    truncated = len(first_hop) >= limit

    if depth > 1 and first_hop:
        included = [n["id"] for n in nodes]
        second_hop = await _expand_hop(store, repository_id, included[1:], included, limit)
        nodes.extend(second_hop)
        truncated = truncated or len(second_hop) >= limit

    edges = await edges_between(store, [n["id"] for n in nodes], edge_limit)
    return {
        "center": center,
        "nodes": nodes,
        "edges": edges,
        "depth": depth,
        "limit": limit,
        "truncated": truncated,
    }


# ========================================
# Data blocks
# ========================================


async def list_data_blocks(
    store: GraphStore,
    repository_id: str,
    namespace: str | None = None,
    name: str | None = None,
    object_id: str | None = None,
) -> list[dict[str, Any]]:
    if not repository_id:
        return []

    conditions = []
    params: dict[str, Any] = {"repositoryId": repository_id}
    for column, value, key in (
        ("db.namespace", namespace, "namespace"),
        ("db.name", name, "name"),
        ("o.id", object_id, "objectId"),
    ):
        if value:
            conditions.append(f"{column} = ${key}")
            params[key] = value
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    records = await store.run_query(
        f"""
        MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(o:Object)-[:HAS_DATABLOCK]->(db:DataBlock)
        {where}
        RETURN db.id as id, db.namespace as namespace, db.name as name,
               db.values as values, db.updatedAt as updatedAt,
               o.id as objectId, coalesce(o.displayName, o.name) as objectName
        ORDER BY o.name, db.namespace, db.name
        """,
        **params,
    )
    return [_to_data_block(r) for r in records]


async def get_data_block(store: GraphStore, data_block_id: str) -> dict[str, Any] | None:
    records = await store.run_query(
        """
        MATCH (o:Object)-[:HAS_DATABLOCK]->(db:DataBlock {id: $dataBlockId})
        RETURN db.id as id, db.namespace as namespace, db.name as name,
               db.values as values, db.updatedAt as updatedAt,
               o.id as objectId, coalesce(o.displayName, o.name) as objectName
        """,
        dataBlockId=data_block_id,
    )
    return _to_data_block(records[0]) if records else None


async def get_object_data_blocks(store: GraphStore, object_id: str) -> list[dict[str, Any]]:
    records = await store.run_query(
        """
        MATCH (o:Object {id: $objectId})-[:HAS_DATABLOCK]->(db:DataBlock)
        RETURN db.id as id, db.namespace as namespace, db.name as name,
               db.values as values, db.updatedAt as updatedAt
        ORDER BY db.namespace, db.name
        """,
        objectId=object_id,
    )
    return [_to_data_block(r) for r in records]
