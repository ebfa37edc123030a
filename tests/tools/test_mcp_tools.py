"""
Unit tests for the MCP tools in archgraph/tools/

Test Coverage:
- run_tool()/envelope(): missing context, domain errors, unexpected errors
- register_*_tools(): every tool registered, arguments clamped and forwarded
- repository tools: sync then load through the shared snapshot cache

Testing Approach:
- A minimal MCP stand-in collects the decorated tool functions
- Neo4j is the recording fake; the upstream client is an AsyncMock
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from archgraph.core.context import AppContext, set_app_context
from archgraph.core.exceptions import MCPToolError, RepositoryNotFoundError
from archgraph.models import Repository
from archgraph.tools import register_tools
from archgraph.tools.common import envelope, run_tool


class CollectingMCP:
    """Records functions registered through ``mcp.tool()``."""

    def __init__(self):
        self.tools = {}

    def tool(self):
        def register(func):
            self.tools[func.__name__] = func
            return func

        return register


@pytest.fixture
def mcp():
    server = CollectingMCP()
    register_tools(server)
    return server


@pytest.fixture
def app_context(settings, graph_store):
    client = MagicMock()
    client.get_repository = AsyncMock(return_value=Repository(id="7", name="Main"))
    client.fetch_all_objects = AsyncMock(return_value=[{"id": "1", "type": "A:B", "name": "One"}])
    client.fetch_all_relations = AsyncMock(return_value=[])
    context = AppContext(settings=settings, client=client, store=graph_store)
    set_app_context(context)
    return context


class TestRunTool:
    @pytest.mark.asyncio
    async def test_without_context(self):
        result = json.loads(await run_tool("x", AsyncMock()))
        assert result == {"success": False, "error": "Application context is not initialized"}

    @pytest.mark.asyncio
    async def test_domain_error_in_envelope(self, app_context):
        async def operation(app):
            raise RepositoryNotFoundError("Repository 9 not found")

        result = json.loads(await run_tool("sync_repository", operation))
        assert result == {"success": False, "error": "Repository 9 not found"}

    @pytest.mark.asyncio
    async def test_unexpected_error_raised(self, app_context):
        async def operation(app):
            raise KeyError("boom")

        with pytest.raises(MCPToolError):
            await run_tool("get_object", operation)

    def test_envelope(self):
        assert json.loads(envelope({"a": 1})) == {"success": True, "data": {"a": 1}}
        assert json.loads(envelope(error="bad")) == {"success": False, "error": "bad"}


class TestRegistration:
    def test_all_tools_registered(self, mcp):
        assert set(mcp.tools) == {
            "sync_repository",
            "load_repository",
            "list_objects",
            "get_object",
            "get_statistics",
            "get_object_metrics",
            "get_graph",
            "get_neighbors",
            "get_centrality",
            "find_paths",
        }


class TestGraphTools:
    @pytest.mark.asyncio
    async def test_list_objects_paging(self, mcp, app_context, mock_neo4j_driver):
        mock_neo4j_driver.on("RETURN count(o) as total", [{"total": 4}])

        result = json.loads(
            await mcp.tools["list_objects"](ctx=None, repository_id="7", page=2, page_size=5000),
        )

        assert result["data"] == {"items": [], "total": 4}
        items_call = mock_neo4j_driver.calls_matching("SKIP $skip")[0]
        assert items_call.params["limit"] == 1000
        assert items_call.params["skip"] == 2000

    @pytest.mark.asyncio
    async def test_get_object_absent(self, mcp, app_context):
        result = json.loads(await mcp.tools["get_object"](ctx=None, object_id="9"))
        assert result == {"success": True, "data": None}

    @pytest.mark.asyncio
    async def test_get_neighbors_requires_repository(self, mcp, app_context):
        result = json.loads(await mcp.tools["get_neighbors"](ctx=None, object_id="1"))
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_get_object_metrics(self, mcp, app_context, mock_neo4j_driver):
        mock_neo4j_driver.on(
            "o.metadata CONTAINS",
            [{"id": "1", "name": "Billing", "type": "A:B", "metadata": '{"metrics": {"cost": 3}}'}],
        )

        result = json.loads(await mcp.tools["get_object_metrics"](ctx=None, repository_id="7"))

        assert result["data"] == [
            {"objectId": "1", "objectName": "Billing", "objectType": "A:B", "metrics": {"cost": 3}},
        ]

    @pytest.mark.asyncio
    async def test_store_missing(self, mcp, app_context):
        app_context.store = None
        result = json.loads(await mcp.tools["get_statistics"](ctx=None, repository_id="7"))
        assert result["success"] is False
        assert "Neo4j" in result["error"]


class TestAnalysisTools:
    @pytest.mark.asyncio
    async def test_centrality(self, mcp, app_context, mock_neo4j_driver):
        mock_neo4j_driver.on(
            "outDegree",
            [{"nodeId": "1", "nodeName": "One", "nodeType": "A:B", "outDegree": 2, "inDegree": 1}],
        )

        result = json.loads(await mcp.tools["get_centrality"](ctx=None, repository_id="7"))

        assert result["data"]["type"] == "degree"
        assert result["data"]["results"][0]["score"] == 3

    @pytest.mark.asyncio
    async def test_find_paths_validation(self, mcp, app_context):
        result = json.loads(
            await mcp.tools["find_paths"](ctx=None, source_id="1", target_id="2", repository_id="7", max_depth=0),
        )
        assert result["success"] is False
        assert "maxDepth" in result["error"]

    @pytest.mark.asyncio
    async def test_find_all_paths_default_limit(self, mcp, app_context, mock_neo4j_driver):
        await mcp.tools["find_paths"](ctx=None, source_id="1", target_id="2", repository_id="7", find_all=True)
        assert mock_neo4j_driver.calls[0].params["limit"] == 50
        assert "[:RELATES_TO*1..5]" in mock_neo4j_driver.calls[0].query

    @pytest.mark.asyncio
    async def test_shortest_path_default_depth(self, mcp, app_context, mock_neo4j_driver):
        await mcp.tools["find_paths"](ctx=None, source_id="1", target_id="2", repository_id="7")
        assert "[:RELATES_TO*1..10]" in mock_neo4j_driver.calls[0].query


class TestRepositoryTools:
    @pytest.mark.asyncio
    async def test_sync_then_load(self, mcp, app_context, mock_neo4j_driver):
        mock_neo4j_driver.on("UNWIND $objects", lambda params: [{"written": len(params["objects"])}])

        synced = json.loads(await mcp.tools["sync_repository"](ctx=None, repository_id="7"))
        loaded = json.loads(await mcp.tools["load_repository"](ctx=None, repository_id="7"))

        assert synced["data"]["objectsCount"] == 1
        assert loaded["data"]["report"]["objects"] == 1
        assert app_context.client.get_repository.await_count == 1

    @pytest.mark.asyncio
    async def test_load_extracts_when_no_snapshot(self, mcp, app_context, mock_neo4j_driver):
        loaded = json.loads(await mcp.tools["load_repository"](ctx=None, repository_id="7"))

        assert loaded["success"] is True
        assert app_context.snapshots.get("7") is not None

    @pytest.mark.asyncio
    async def test_sync_invalid_id(self, mcp, app_context):
        result = json.loads(await mcp.tools["sync_repository"](ctx=None, repository_id="seven"))
        assert result["success"] is False
        app_context.client.get_repository.assert_not_called()
