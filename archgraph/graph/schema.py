"""Constraints and indexes created at startup."""

import logging

from archgraph.graph.driver import GraphStore

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    "CREATE CONSTRAINT repository_id IF NOT EXISTS FOR (r:Repository) REQUIRE r.id IS UNIQUE",
    "CREATE CONSTRAINT object_id IF NOT EXISTS FOR (o:Object) REQUIRE o.id IS UNIQUE",
    "CREATE CONSTRAINT datablock_id IF NOT EXISTS FOR (db:DataBlock) REQUIRE db.id IS UNIQUE",
    "CREATE CONSTRAINT tag_name IF NOT EXISTS FOR (t:Tag) REQUIRE t.name IS UNIQUE",
    "CREATE INDEX object_type IF NOT EXISTS FOR (o:Object) ON (o.type)",
    "CREATE INDEX object_name IF NOT EXISTS FOR (o:Object) ON (o.name)",
    "CREATE INDEX object_category IF NOT EXISTS FOR (o:Object) ON (o.category)",
    "CREATE INDEX object_subcategory IF NOT EXISTS FOR (o:Object) ON (o.subCategory)",
    "CREATE INDEX object_displayname IF NOT EXISTS FOR (o:Object) ON (o.displayName)",
    "CREATE INDEX object_hub IF NOT EXISTS FOR (o:Object) ON (o.isHub)",
    "CREATE FULLTEXT INDEX object_search IF NOT EXISTS FOR (o:Object) ON EACH [o.name, o.description]",
]


async def ensure_schema(store: GraphStore) -> int:
    """Apply every schema statement; returns how many were executed.

    Statements are idempotent. An "already exists" error from an equivalent
    index under another name is tolerated.
    """
    applied = 0
    for statement in SCHEMA_STATEMENTS:
        try:
            await store.run_query(statement)
        except Exception as e:
            if "already exists" not in str(e).lower():
                logger.error("Schema statement failed: %s (%s)", statement, e)
                raise
            logger.debug("Schema element already present: %s", statement)
            continue
        applied += 1
        logger.debug("Applied schema statement: %s", statement)
    logger.info("Graph schema ensured (%s statements)", applied)
    return applied
