"""
Unit tests for archgraph/core/decorators.py

Test Coverage:
- track_request(): request id is set while the call runs and reset afterwards
- errors are logged and re-raised
"""

import logging

import pytest

from archgraph.core.decorators import track_request
from archgraph.core.logging import request_id_ctx


@pytest.mark.asyncio
async def test_request_id_scoped_to_call(caplog):
    seen = []

    @track_request("sync_repository")
    async def tool(repository_id=None):
        seen.append(request_id_ctx.get())
        return "done"

    with caplog.at_level(logging.INFO, logger="archgraph"):
        assert await tool(repository_id="42") == "done"

    assert seen[0] is not None
    assert len(seen[0]) == 8
    assert request_id_ctx.get() is None
    assert "sync_repository started (repository 42)" in caplog.text
    assert "sync_repository completed" in caplog.text


@pytest.mark.asyncio
async def test_failure_logged_and_reraised(caplog):
    @track_request("get_object")
    async def tool():
        raise RuntimeError("boom")

    with caplog.at_level(logging.INFO, logger="archgraph"), pytest.raises(RuntimeError, match="boom"):
        await tool()

    assert "get_object failed" in caplog.text
    assert request_id_ctx.get() is None
