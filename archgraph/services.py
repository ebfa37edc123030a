"""Operations shared by the MCP tools and the HTTP routes."""

import logging
from datetime import UTC, datetime
from typing import Any

from archgraph.core.context import AppContext
from archgraph.core.exceptions import InputValidationError
from archgraph.models import SyncResult
from archgraph.utils.validation import parse_repository_id

logger = logging.getLogger(__name__)


def require_repository_id(ctx: AppContext, repository_id: Any = None) -> str:
    resolved = ctx.resolve_repository_id(repository_id)
    if not resolved:
        msg = "Repository ID is required"
        raise InputValidationError(msg)
    return resolved


async def list_repositories(ctx: AppContext) -> list[dict[str, Any]]:
    repositories = await ctx.require_client().list_repositories()
    return [r.to_dict() for r in repositories]


async def sync_repository(ctx: AppContext, repository_id: Any = None) -> dict[str, Any]:
    """Extract a snapshot and keep it in the cache for a later load."""
    repo_id = str(parse_repository_id(require_repository_id(ctx, repository_id)))
    snapshot, result = await ctx.extractor.sync(repo_id)
    ctx.snapshots.put(snapshot)
    logger.info("Cached snapshot of repository %s", repo_id)
    return {
        **result.to_dict(),
        "repository": snapshot.repository.to_dict(),
    }


async def load_repository(ctx: AppContext, repository_id: Any = None) -> dict[str, Any]:
    """Replace the stored graph with the cached snapshot, extracting one first if needed."""
    repo_id = str(parse_repository_id(require_repository_id(ctx, repository_id)))
    loader = ctx.loader
    start_time = datetime.now(UTC)

    snapshot = ctx.snapshots.get(repo_id)
    if snapshot is None:
        logger.info("No cached snapshot for repository %s, extracting first", repo_id)
        snapshot = await ctx.extractor.extract_repository(repo_id)
        ctx.snapshots.put(snapshot)

    ctx.bus.emit_start(f"Loading repository {repo_id} into the graph store...")
    try:
        report = await loader.load_snapshot(snapshot)
    except Exception as e:
        ctx.bus.emit_error(f"Load of repository {repo_id} failed", e)
        raise

    result = SyncResult(
        repository_id=repo_id,
        objects_count=report.get("objects", 0),
        relations_count=report.get("relations", 0),
        start_time=start_time,
        end_time=datetime.now(UTC),
    )
    ctx.bus.emit_complete(f"Repository {repo_id} loaded", result.to_dict())
    return {**result.to_dict(), "report": report}


def import_status(ctx: AppContext, repository_id: Any = None) -> dict[str, Any]:
    repo_id = ctx.resolve_repository_id(repository_id)
    if not repo_id:
        return {"repositoryId": None, "available": False}
    return ctx.snapshots.status(repo_id)
