"""
HTTP endpoints for the archgraph service using Starlette.

Every JSON response uses the ``{"success": bool, "data" | "error": ...}``
envelope. Handlers are registered on the FastMCP server as custom routes.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse

from archgraph import services
from archgraph.analysis import calculate_centrality, find_all_paths, find_shortest_path
from archgraph.analysis.paths import DEFAULT_ALL_PATHS_DEPTH, DEFAULT_SHORTEST_DEPTH
from archgraph.core.context import AppContext, get_app_context
from archgraph.core.decorators import track_request
from archgraph.core.exceptions import (
    ArchGraphError,
    ConfigurationError,
    InputValidationError,
    RepositoryNotFoundError,
    ValidationError,
)
from archgraph.core.progress import ProgressBus, ProgressEvent
from archgraph.graph import queries
from archgraph.utils.validation import clamp_int

if TYPE_CHECKING:
    from fastmcp import FastMCP

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0
MAX_QUEUED_EVENTS = 1000

Handler = Callable[[Request], Awaitable[Response]]


def ok(data: Any, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": True, "data": data, **extra})


def error_response(error: Exception) -> JSONResponse:
    """Map an exception onto a status code and the error envelope."""
    if isinstance(error, RepositoryNotFoundError):
        status = 404
    elif isinstance(error, ConfigurationError):
        status = 503
    elif isinstance(error, ValidationError):
        status = 400
    else:
        status = 500
    if status == 500 and not isinstance(error, ArchGraphError):
        logger.exception("Unhandled error in HTTP handler")
    return JSONResponse({"success": False, "error": str(error) or "Internal server error"}, status_code=status)


def not_found(message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=404)


def current_context() -> AppContext:
    context = get_app_context()
    if context is None:
        msg = "Application context is not initialized"
        raise ConfigurationError(msg)
    return context


def json_route(name: str) -> Callable[[Callable[[Request, AppContext], Awaitable[Response]]], Handler]:
    """Resolve the app context, track the request and map errors to the envelope."""

    def decorator(func: Callable[[Request, AppContext], Awaitable[Response]]) -> Handler:
        @track_request(name)
        async def handler(request: Request) -> Response:
            try:
                return await func(request, current_context())
            except Exception as e:
                return error_response(e)

        handler.__name__ = func.__name__
        handler.__doc__ = func.__doc__
        return handler

    return decorator


async def read_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        msg = "Request body must be valid JSON"
        raise InputValidationError(msg) from e
    if not isinstance(body, dict):
        msg = "Request body must be a JSON object"
        raise InputValidationError(msg)
    return body


# ========================================
# Service
# ========================================


@json_route("health")
async def health(request: Request, ctx: AppContext) -> Response:
    return JSONResponse(
        {
            "status": "ok",
            "upstream": ctx.client is not None,
            "neo4j": ctx.store is not None,
            "defaultRepositoryId": ctx.settings.default_repository_id,
        },
    )


@json_route("list_repositories")
async def list_repositories(request: Request, ctx: AppContext) -> Response:
    return ok(await services.list_repositories(ctx))


@json_route("sync_repository")
async def sync_repository(request: Request, ctx: AppContext) -> Response:
    body = await read_body(request)
    return ok(await services.sync_repository(ctx, body.get("repositoryId")))


@json_route("load_repository")
async def load_repository(request: Request, ctx: AppContext) -> Response:
    body = await read_body(request)
    return ok(await services.load_repository(ctx, body.get("repositoryId")))


@json_route("import_status")
async def import_status(request: Request, ctx: AppContext) -> Response:
    return ok(services.import_status(ctx, request.query_params.get("repositoryId")))


# ========================================
# Objects and statistics
# ========================================


@json_route("list_objects")
async def list_objects(request: Request, ctx: AppContext) -> Response:
    params = request.query_params
    page = clamp_int(params.get("page"), 0, 0, 1_000_000)
    page_size = clamp_int(params.get("pageSize"), 50, 1, 1000)
    repository_id = ctx.resolve_repository_id(params.get("repositoryId"))

    if not repository_id:
        listing = {"items": [], "total": 0}
    else:
        listing = await queries.list_objects(
            ctx.require_store(),
            repository_id,
            offset=page * page_size,
            limit=page_size,
            type_filter=params.get("type") or None,
            search=params.get("search") or None,
        )
    total = listing["total"]
    return ok(
        listing["items"],
        pagination={
            "page": page,
            "pageSize": page_size,
            "total": total,
            "totalPages": -(-total // page_size),
        },
    )


@json_route("get_object")
async def get_object(request: Request, ctx: AppContext) -> Response:
    object_id = request.path_params["object_id"]
    detail = await queries.get_object(ctx.require_store(), object_id)
    if detail is None:
        return not_found(f"Object {object_id} not found")
    return ok(detail)


@json_route("get_object_data_blocks")
async def get_object_data_blocks(request: Request, ctx: AppContext) -> Response:
    object_id = request.path_params["object_id"]
    return ok(await queries.get_object_data_blocks(ctx.require_store(), object_id))


@json_route("get_statistics")
async def get_statistics(request: Request, ctx: AppContext) -> Response:
    repository_id = ctx.resolve_repository_id(request.query_params.get("repositoryId"))
    if not repository_id:
        return ok({"totalObjects": 0, "totalRelationships": 0, "objectsByType": []})
    return ok(await queries.get_statistics(ctx.require_store(), repository_id))


@json_route("list_object_metrics")
async def list_object_metrics(request: Request, ctx: AppContext) -> Response:
    repository_id = ctx.resolve_repository_id(request.query_params.get("repositoryId"))
    if not repository_id:
        return ok([], count=0)
    metrics = await queries.list_object_metrics(ctx.require_store(), repository_id)
    return ok(metrics, count=len(metrics))


@json_route("list_data_blocks")
async def list_data_blocks(request: Request, ctx: AppContext) -> Response:
    params = request.query_params
    repository_id = ctx.resolve_repository_id(params.get("repositoryId"))
    if not repository_id:
        return ok([])
    blocks = await queries.list_data_blocks(
        ctx.require_store(),
        repository_id,
        namespace=params.get("namespace") or None,
        name=params.get("name") or None,
        object_id=params.get("objectId") or None,
    )
    return ok(blocks)


@json_route("get_data_block")
async def get_data_block(request: Request, ctx: AppContext) -> Response:
    data_block_id = request.path_params["data_block_id"]
    block = await queries.get_data_block(ctx.require_store(), data_block_id)
    if block is None:
        return not_found(f"Data block {data_block_id} not found")
    return ok(block)


# ========================================
# Graph views
# ========================================


@json_route("get_graph")
async def get_graph(request: Request, ctx: AppContext) -> Response:
    params = request.query_params
    repository_id = ctx.resolve_repository_id(params.get("repositoryId"))
    if not repository_id:
        return ok({"nodes": [], "edges": []})

    settings = ctx.settings
    limit = clamp_int(params.get("limit"), 500, 1, settings.graph_sample_limit)
    node_id = params.get("nodeId")
    store = ctx.require_store()
    if node_id:
        data = await queries.get_neighbors(
            store,
            repository_id,
            node_id,
            depth=1,
            limit=min(limit, settings.neighbor_limit),
            edge_limit=settings.graph_edge_limit,
        )
    else:
        data = await queries.get_graph_sample(
            store,
            repository_id,
            limit=limit,
            type_filter=params.get("type") or None,
            search=params.get("search") or None,
            edge_limit=settings.graph_edge_limit,
        )
    return ok(data)


@json_route("get_neighbors")
async def get_neighbors(request: Request, ctx: AppContext) -> Response:
    repository_id = services.require_repository_id(ctx, request.query_params.get("repositoryId"))
    depth = clamp_int(request.query_params.get("depth"), 1, 1, 2)
    data = await queries.get_neighbors(
        ctx.require_store(),
        repository_id,
        request.path_params["object_id"],
        depth=depth,
        limit=ctx.settings.neighbor_limit,
        edge_limit=ctx.settings.graph_edge_limit,
    )
    return ok(data)


# ========================================
# Analysis
# ========================================


@json_route("get_centrality")
async def get_centrality(request: Request, ctx: AppContext) -> Response:
    repository_id = services.require_repository_id(ctx, request.query_params.get("repositoryId"))
    kind = request.query_params.get("type") or "degree"
    results = await calculate_centrality(
        ctx.require_store(),
        repository_id,
        kind,
        ctx.settings.centrality_limit,
    )
    return ok({"type": kind, "results": results})


@json_route("find_paths")
async def find_paths(request: Request, ctx: AppContext) -> Response:
    params = request.query_params
    repository_id = services.require_repository_id(ctx, params.get("repositoryId"))
    source_id = params.get("sourceId") or ""
    target_id = params.get("targetId") or ""
    find_all = params.get("findAll", "").lower() == "true"
    max_depth = params.get("maxDepth") or (DEFAULT_ALL_PATHS_DEPTH if find_all else DEFAULT_SHORTEST_DEPTH)
    store = ctx.require_store()

    if find_all:
        paths = await find_all_paths(
            store,
            repository_id,
            source_id,
            target_id,
            max_depth,
            clamp_int(params.get("limit"), ctx.settings.path_limit, 1, 1000),
        )
        return ok({"sourceId": source_id, "targetId": target_id, "paths": paths})

    path = await find_shortest_path(store, repository_id, source_id, target_id, max_depth)
    return ok({"sourceId": source_id, "targetId": target_id, "path": path})


# ========================================
# Observability
# ========================================


@json_route("upstream_logs")
async def upstream_logs(request: Request, ctx: AppContext) -> Response:
    limit = clamp_int(request.query_params.get("limit"), 50, 1, ctx.settings.call_log_size)
    if ctx.client is None:
        return ok([])
    return ok(ctx.client.call_log.recent(limit))


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


def bounded_put(queue: "asyncio.Queue[ProgressEvent]") -> Callable[[ProgressEvent], None]:
    """Enqueue events, discarding the oldest one when a slow client lets the queue fill."""

    def put(event: ProgressEvent) -> None:
        if queue.full():
            queue.get_nowait()
            logger.debug("Progress stream queue full, dropped oldest event")
        queue.put_nowait(event)

    return put


async def event_stream(
    bus: ProgressBus,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = KEEPALIVE_SECONDS,
    max_queued: int = MAX_QUEUED_EVENTS,
) -> AsyncIterator[str]:
    """Relay bus events as server-sent events until the client goes away."""
    queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=max_queued)
    unsubscribe = bus.subscribe(bounded_put(queue))
    try:
        yield format_sse({"type": "connected", "message": "Connected to progress stream"})
        while not await is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield format_sse(event.to_dict())
    finally:
        unsubscribe()
        logger.debug("Progress stream closed")


async def progress(request: Request) -> Response:
    """Server-sent events stream of extraction and load progress."""
    try:
        context = current_context()
    except ConfigurationError as e:
        return error_response(e)
    return StreamingResponse(
        event_stream(context.bus, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


ROUTES: list[tuple[str, list[str], Handler]] = [
    ("/health", ["GET"], health),
    ("/api/repositories", ["GET"], list_repositories),
    ("/api/sync", ["POST"], sync_repository),
    ("/api/import", ["POST"], load_repository),
    ("/api/import/status", ["GET"], import_status),
    ("/api/objects", ["GET"], list_objects),
    ("/api/objects/{object_id}", ["GET"], get_object),
    ("/api/objects/{object_id}/datablocks", ["GET"], get_object_data_blocks),
    ("/api/stats", ["GET"], get_statistics),
    ("/api/stats/metrics", ["GET"], list_object_metrics),
    ("/api/datablocks", ["GET"], list_data_blocks),
    ("/api/datablocks/{data_block_id}", ["GET"], get_data_block),
    ("/api/graph", ["GET"], get_graph),
    ("/api/graph/neighbors/{object_id}", ["GET"], get_neighbors),
    ("/api/analyze/centrality", ["GET"], get_centrality),
    ("/api/analyze/paths", ["GET"], find_paths),
    ("/api/logs/upstream", ["GET"], upstream_logs),
    ("/api/progress", ["GET"], progress),
]


def register_routes(mcp: "FastMCP") -> None:
    """Attach every HTTP endpoint to the FastMCP server."""
    for path, methods, handler in ROUTES:
        mcp.custom_route(path, methods=methods)(handler)
    logger.info("Registered %s HTTP routes", len(ROUTES))
