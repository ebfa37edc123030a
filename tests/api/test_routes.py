"""
Unit tests for archgraph/api/routes.py

Test Coverage:
- envelope shape on every JSON endpoint
- error mapping: 400 validation, 404 not found, 503 unconfigured, 500 unexpected
- list_objects pagination block
- sync/import flow through the snapshot cache
- analysis endpoints parameter handling
- event_stream(): connected message, events, keepalive, unsubscribe on close

Testing Approach:
- A bare Starlette app is built from ROUTES and driven with TestClient
- Neo4j is the recording fake; the upstream client is an AsyncMock
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.testclient import TestClient

from archgraph.api import ROUTES
from archgraph.api.routes import bounded_put, event_stream, format_sse
from archgraph.core.context import AppContext, set_app_context
from archgraph.core.progress import ProgressBus, ProgressEvent
from archgraph.models import Repository


def build_app() -> Starlette:
    return Starlette(routes=[Route(path, handler, methods=methods) for path, methods, handler in ROUTES])


@pytest.fixture
def upstream_client():
    client = MagicMock()
    client.list_repositories = AsyncMock(return_value=[Repository(id="7", name="Main")])
    client.get_repository = AsyncMock(return_value=Repository(id="7", name="Main"))
    client.fetch_all_objects = AsyncMock(
        return_value=[{"id": "1", "type": "A:B", "name": "One"}, {"id": "2", "type": "A:B", "name": "Two"}],
    )
    client.fetch_all_relations = AsyncMock(
        return_value=[{"relationId": "r1", "relationType": "Flow", "fromId": "1", "toId": "2"}],
    )
    client.call_log.recent = MagicMock(return_value=[{"url": "https://upstream.test/x"}])
    return client


@pytest.fixture
def app_context(settings, graph_store, upstream_client):
    context = AppContext(settings=settings, client=upstream_client, store=graph_store)
    set_app_context(context)
    return context


@pytest.fixture
def http(app_context):
    with TestClient(build_app()) as client:
        yield client


class TestServiceEndpoints:
    def test_health(self, http):
        body = http.get("/health").json()
        assert body["status"] == "ok"
        assert body["upstream"] is True
        assert body["neo4j"] is True

    def test_list_repositories(self, http):
        body = http.get("/api/repositories").json()
        assert body == {
            "success": True,
            "data": [{"id": "7", "name": "Main", "description": None, "version": None}],
        }

    def test_sync_then_status(self, http, app_context):
        response = http.post("/api/sync", json={"repositoryId": "7"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["objectsCount"] == 2
        assert data["relationshipsCount"] == 1
        assert data["repository"]["name"] == "Main"

        status = http.get("/api/import/status", params={"repositoryId": "7"}).json()["data"]
        assert status["available"] is True
        assert status["objectsCount"] == 2

    def test_sync_invalid_id(self, http, upstream_client):
        response = http.post("/api/sync", json={"repositoryId": "abc"})

        assert response.status_code == 400
        assert response.json()["success"] is False
        upstream_client.get_repository.assert_not_called()

    def test_sync_unknown_repository(self, http, upstream_client):
        upstream_client.get_repository = AsyncMock(return_value=None)

        response = http.post("/api/sync", json={"repositoryId": "404"})

        assert response.status_code == 404
        assert "not found" in response.json()["error"]

    def test_sync_requires_repository(self, http):
        response = http.post("/api/sync")
        assert response.status_code == 400
        assert response.json()["error"] == "Repository ID is required"

    def test_malformed_body(self, http):
        response = http.post("/api/sync", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400

    def test_import_uses_cached_snapshot(self, http, upstream_client, mock_neo4j_driver):
        mock_neo4j_driver.on("UNWIND $objects", lambda params: [{"written": len(params["objects"])}])
        mock_neo4j_driver.on("UNWIND $relations", lambda params: [{"written": len(params["relations"])}])
        http.post("/api/sync", json={"repositoryId": "7"})

        response = http.post("/api/import", json={"repositoryId": "7"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["objectsCount"] == 2
        assert data["relationshipsCount"] == 1
        assert data["report"]["objects"] == 2
        assert upstream_client.fetch_all_objects.await_count == 1

    def test_upstream_logs(self, http):
        body = http.get("/api/logs/upstream", params={"limit": 5}).json()
        assert body["data"] == [{"url": "https://upstream.test/x"}]


class TestObjectEndpoints:
    def test_list_objects_pagination(self, http, mock_neo4j_driver):
        mock_neo4j_driver.on("RETURN count(o) as total", [{"total": 120}])

        body = http.get("/api/objects", params={"repositoryId": "7", "page": 1, "pageSize": 50}).json()

        assert body["success"] is True
        assert body["pagination"] == {"page": 1, "pageSize": 50, "total": 120, "totalPages": 3}
        items_call = mock_neo4j_driver.calls_matching("SKIP $skip")[0]
        assert items_call.params["skip"] == 50

    def test_list_objects_clamps_page_size(self, http, mock_neo4j_driver):
        body = http.get("/api/objects", params={"repositoryId": "7", "pageSize": 5000}).json()
        assert body["pagination"]["pageSize"] == 1000

    def test_list_objects_without_repository(self, http, mock_neo4j_driver):
        body = http.get("/api/objects").json()
        assert body["data"] == []
        assert body["pagination"]["total"] == 0
        assert mock_neo4j_driver.calls == []

    def test_object_not_found(self, http):
        response = http.get("/api/objects/999")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Object 999 not found"}

    def test_data_block_not_found(self, http):
        assert http.get("/api/datablocks/1:a:b").status_code == 404

    def test_object_metrics(self, http, mock_neo4j_driver):
        mock_neo4j_driver.on(
            "o.metadata CONTAINS",
            [
                {"id": "1", "name": "Billing", "type": "A:B", "metadata": '{"metrics": {"cost": 3}}'},
                {"id": "2", "name": "Ledger", "type": "A:B", "metadata": '{"metrics": {}}'},
            ],
        )

        body = http.get("/api/stats/metrics", params={"repositoryId": "7"}).json()

        assert body["success"] is True
        assert body["count"] == 1
        assert body["data"][0]["objectId"] == "1"
        assert mock_neo4j_driver.calls[0].params["repositoryId"] == "7"

    def test_object_metrics_without_repository(self, http, mock_neo4j_driver):
        assert http.get("/api/stats/metrics").json() == {"success": True, "data": [], "count": 0}
        assert mock_neo4j_driver.calls == []

    def test_stats_without_store(self, http, app_context):
        app_context.store = None
        response = http.get("/api/stats", params={"repositoryId": "7"})
        assert response.status_code == 503

    def test_unexpected_error(self, http, mock_neo4j_driver):
        mock_neo4j_driver.on("RETURN o.type as type, count(o) as count", RuntimeError("driver exploded"))
        response = http.get("/api/stats", params={"repositoryId": "7"})
        assert response.status_code == 500
        assert response.json()["success"] is False


class TestGraphEndpoints:
    def test_graph_switches_to_neighbors(self, http, mock_neo4j_driver):
        http.get("/api/graph", params={"repositoryId": "7", "nodeId": "1"})
        assert mock_neo4j_driver.calls_matching("center:Object {id: $nodeId}")

    def test_neighbors_require_repository(self, http):
        assert http.get("/api/graph/neighbors/1").status_code == 400

    def test_neighbors_depth_clamped(self, http):
        body = http.get("/api/graph/neighbors/1", params={"repositoryId": "7", "depth": 9}).json()
        assert body["data"]["depth"] == 2


class TestAnalysisEndpoints:
    def test_centrality_type(self, http, mock_neo4j_driver):
        body = http.get("/api/analyze/centrality", params={"repositoryId": "7", "type": "pagerank"}).json()
        assert body == {"success": True, "data": {"type": "pagerank", "results": []}}
        assert "inDegree * 1.5 + outDegree" in mock_neo4j_driver.calls[0].query

    def test_centrality_unknown_type(self, http):
        response = http.get("/api/analyze/centrality", params={"repositoryId": "7", "type": "eigen"})
        assert response.status_code == 400

    def test_paths_same_endpoints(self, http):
        response = http.get(
            "/api/analyze/paths",
            params={"repositoryId": "7", "sourceId": "1", "targetId": "1"},
        )
        assert response.status_code == 400

    def test_paths_bad_depth(self, http):
        response = http.get(
            "/api/analyze/paths",
            params={"repositoryId": "7", "sourceId": "1", "targetId": "2", "maxDepth": "99"},
        )
        assert response.status_code == 400

    def test_find_all_paths(self, http, mock_neo4j_driver):
        body = http.get(
            "/api/analyze/paths",
            params={"repositoryId": "7", "sourceId": "1", "targetId": "2", "findAll": "true", "maxDepth": 4},
        ).json()

        assert body["data"] == {"sourceId": "1", "targetId": "2", "paths": []}
        assert "[:RELATES_TO*1..4]" in mock_neo4j_driver.calls[0].query

    def test_find_all_paths_default_depth(self, http, mock_neo4j_driver):
        http.get(
            "/api/analyze/paths",
            params={"repositoryId": "7", "sourceId": "1", "targetId": "2", "findAll": "true"},
        )
        assert "[:RELATES_TO*1..5]" in mock_neo4j_driver.calls[0].query

    def test_shortest_path_default_depth(self, http, mock_neo4j_driver):
        http.get("/api/analyze/paths", params={"repositoryId": "7", "sourceId": "1", "targetId": "2"})
        assert "[:RELATES_TO*1..10]" in mock_neo4j_driver.calls[0].query

    def test_shortest_path_absent(self, http):
        body = http.get(
            "/api/analyze/paths",
            params={"repositoryId": "7", "sourceId": "1", "targetId": "2"},
        ).json()
        assert body["data"]["path"] is None


class TestWithoutContext:
    def test_unconfigured_service(self):
        set_app_context(None)
        with TestClient(build_app()) as client:
            assert client.get("/api/repositories").status_code == 503
            assert client.get("/api/progress").status_code == 503


class TestEventStream:
    @pytest.mark.asyncio
    async def test_relays_events_and_keepalive(self):
        bus = ProgressBus()

        async def connected():
            return False

        stream = event_stream(bus, connected, keepalive=0.01)
        first = await stream.__anext__()
        assert json.loads(first.removeprefix("data: "))["type"] == "connected"
        assert bus.subscriber_count == 1

        bus.emit_progress("objects", 10, offset=0)
        event = json.loads((await stream.__anext__()).removeprefix("data: "))
        assert event["type"] == "progress"
        assert event["current"] == 10

        assert await stream.__anext__() == ": keepalive\n\n"

        await stream.aclose()
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_stops_when_client_disconnects(self):
        bus = ProgressBus()

        async def disconnected():
            return True

        chunks = [chunk async for chunk in event_stream(bus, disconnected)]

        assert len(chunks) == 1
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_slow_client_keeps_newest_events(self):
        bus = ProgressBus()

        async def connected():
            return False

        stream = event_stream(bus, connected, keepalive=1, max_queued=2)
        await stream.__anext__()
        for offset in range(4):
            bus.emit_progress("objects", offset, offset=offset)

        received = [json.loads((await stream.__anext__()).removeprefix("data: ")) for _ in range(2)]
        await stream.aclose()

        assert [e["current"] for e in received] == [2, 3]

    def test_bounded_put_drops_oldest(self):
        queue = asyncio.Queue(maxsize=1)
        put = bounded_put(queue)
        put(ProgressEvent(type="start", message="old"))
        put(ProgressEvent(type="start", message="new"))

        assert queue.qsize() == 1
        assert queue.get_nowait().message == "new"

    def test_format_sse(self):
        assert format_sse({"type": "start"}) == 'data: {"type": "start"}\n\n'


@pytest.mark.asyncio
async def test_event_stream_is_cancellable():
    bus = ProgressBus()

    async def connected():
        return False

    async def consume():
        async for _ in event_stream(bus, connected, keepalive=10):
            pass

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert bus.subscriber_count == 0
