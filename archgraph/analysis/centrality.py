"""Degree-based centrality rankings.

Two scores are offered:

- ``degree``: ``outDegree + inDegree`` over RELATES_TO edges.
- ``weighted``: ``inDegree * 1.5 + outDegree``. This is a closed-form weighted
  degree score that favours objects many others point at. It is not an
  iterative PageRank and does not converge to one; ``pagerank`` is accepted
  as an alias only for compatibility with older clients.
"""

import logging
from collections.abc import Callable
from typing import Any

from archgraph.core.exceptions import InputValidationError
from archgraph.graph.driver import GraphStore

logger = logging.getLogger(__name__)

DEGREE = "degree"
WEIGHTED = "weighted"
ALIASES = {"pagerank": WEIGHTED}

INCOMING_WEIGHT = 1.5


def degree_score(out_degree: int, in_degree: int) -> float:
    return out_degree + in_degree


def weighted_degree_score(out_degree: int, in_degree: int) -> float:
    return in_degree * INCOMING_WEIGHT + out_degree


SCORERS: dict[str, tuple[Callable[[int, int], float], str]] = {
    DEGREE: (degree_score, "outDegree + inDegree"),
    WEIGHTED: (weighted_degree_score, f"inDegree * {INCOMING_WEIGHT} + outDegree"),
}


def resolve_kind(kind: str | None) -> str:
    name = (kind or DEGREE).lower()
    name = ALIASES.get(name, name)
    if name not in SCORERS:
        msg = f"Unknown centrality type: {kind!r} (expected one of {sorted(SCORERS)})"
        raise InputValidationError(msg)
    return name


def rank(rows: list[dict[str, Any]], kind: str = DEGREE) -> list[dict[str, Any]]:
    """Score ``{nodeId, outDegree, inDegree, ...}`` rows and sort them descending.

    Ties are broken by node id so the ranking is deterministic.
    """
    scorer, _ = SCORERS[resolve_kind(kind)]
    ranked = [
        {
            "nodeId": row["nodeId"],
            "nodeName": row.get("nodeName") or row["nodeId"],
            "nodeType": row.get("nodeType") or "",
            "outDegree": row.get("outDegree", 0),
            "inDegree": row.get("inDegree", 0),
            "score": scorer(row.get("outDegree", 0), row.get("inDegree", 0)),
        }
        for row in rows
    ]
    ranked.sort(key=lambda item: (-item["score"], item["nodeId"]))
    return ranked


async def calculate_centrality(
    store: GraphStore,
    repository_id: str,
    kind: str = DEGREE,
    limit: int = 100,
) -> list[dict[str, Any]]:
    """Top ``limit`` objects of a repository by the requested score."""
    kind = resolve_kind(kind)
    if not repository_id:
        return []

    _, order_expression = SCORERS[kind]
    rows = await store.run_query(
        f"""
        MATCH (r:Repository {{id: $repositoryId}})-[:CONTAINS]->(o:Object)
        WITH o,
             size([(o)-[:RELATES_TO]->(:Object) | 1]) as outDegree,
             size([(o)<-[:RELATES_TO]-(:Object) | 1]) as inDegree
        RETURN o.id as nodeId,
               coalesce(o.displayName, o.name, o.id) as nodeName,
               o.type as nodeType,
               outDegree,
               inDegree
        ORDER BY {order_expression} DESC, nodeId
        LIMIT $limit
        """,
        repositoryId=repository_id,
        limit=int(limit),
    )
    logger.debug("Computed %s centrality for %s objects", kind, len(rows))
    return rank(rows, kind)
