"""
Shared pytest fixtures and configuration for all tests.

Neo4j is replaced by the recording fakes in ``tests.fixtures.neo4j_fixtures``
and the upstream API by ``httpx.MockTransport``. Tests under
``tests/integration`` need a real Neo4j and only run when NEO4J_TEST_URI is set.
"""

import os

import pytest

# Keep developer environments from leaking into unit tests
for _var in ("DEFAULT_REPOSITORY_ID", "UPSTREAM_API_URL", "NEO4J_URI"):
    os.environ.pop(_var, None)

from archgraph.config import Settings, reset_settings
from archgraph.core.context import set_app_context

# Import Neo4j fixtures to make them available to all tests
from tests.fixtures.neo4j_fixtures import *  # noqa: F403


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_settings()
    set_app_context(None)
    yield
    reset_settings()
    set_app_context(None)


@pytest.fixture
def settings() -> Settings:
    """Settings with an upstream configured, small pages and small batches."""
    return Settings(
        upstream_api_url="https://upstream.test",
        upstream_client_id="client",
        upstream_client_secret="secret",
        upstream_page_size=3,
        upstream_page_delay_ms=0,
        neo4j_batch_size=2,
        neo4j_batch_timeout=30,
    )
