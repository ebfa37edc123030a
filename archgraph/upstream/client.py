"""
Upstream Repository API Client

Async client for the paginated enterprise-architecture repository API.
It owns:
- OAuth2 client-credentials authentication (via ``TokenManager``)
- retry of network and 5xx failures with capped exponential backoff
- offset/limit pagination with a fixed inter-page delay
- a replayable call log of every request

Pages are fetched strictly sequentially. The next offset is always advanced by
the number of items the previous page actually returned, so a short final
page is neither skipped nor fetched twice.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from archgraph.config import Settings, get_settings
from archgraph.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    FetchError,
    InputValidationError,
)
from archgraph.models import DataBlock, Repository
from archgraph.upstream.auth import TokenManager
from archgraph.upstream.call_log import CallLog
from archgraph.upstream.retry import RetryCallback, with_retry

logger = logging.getLogger(__name__)

OBJECTS = "objects"
RELATIONS = "relations"

RESOURCE_PATHS = {
    OBJECTS: "/repositories/{repository_id}/objects",
    RELATIONS: "/repositories/{repository_id}/relations",
}

REPOSITORY_CATALOGUE_LIMIT = 1000

ProgressCallback = Callable[[int, int], Any]


@dataclass
class Page:
    items: list[dict[str, Any]]
    has_more: bool


def extract_items(payload: Any) -> list[dict[str, Any]]:
    """Pull records out of a ``{"_items": [...]}`` envelope.

    Some endpoints wrap the envelope in a list; every ``_items`` found is flattened.
    """
    if isinstance(payload, list):
        items: list[dict[str, Any]] = []
        for entry in payload:
            if isinstance(entry, dict) and "_items" in entry:
                items.extend(entry.get("_items") or [])
            elif isinstance(entry, dict):
                items.append(entry)
        return items
    if isinstance(payload, dict):
        return list(payload.get("_items") or [])
    return []


class UpstreamClient:
    """Paginated fetch client for objects, relations and data blocks."""

    def __init__(
        self,
        settings: Settings | None = None,
        http: httpx.AsyncClient | None = None,
        call_log: CallLog | None = None,
        on_retry: RetryCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        if not self.settings.upstream_api_url:
            msg = "UPSTREAM_API_URL is not configured"
            raise ConfigurationError(msg)

        self.base_url = self.settings.upstream_api_url
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=self.settings.upstream_timeout)
        self.call_log = call_log or CallLog(self.settings.call_log_size)
        self.tokens = TokenManager(
            self.http,
            self.settings.get_oauth_token_url(),
            self.settings.upstream_client_id,
            self.settings.upstream_client_secret,
            self.settings.token_expiry_margin,
        )
        self._on_retry = on_retry
        self._sleep = sleep

    async def close(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ========================================
    # Transport
    # ========================================

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        """Issue one authenticated call with retry; returns the decoded JSON body.

        With ``allow_not_found`` a 404 yields ``None`` instead of an error.
        """
        url = f"{self.base_url}{path}"
        record = self.call_log.start(method, url, params, body)
        started = time.perf_counter()

        async def attempt() -> Any:
            token = await self.tokens.get_token()
            CallLog.update_curl(record, token)
            try:
                response = await self.http.request(
                    method,
                    url,
                    params=params,
                    json=body,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                )
            except httpx.HTTPError as e:
                msg = f"{method} {path} failed: {e}"
                raise FetchError(msg) from e

            record.status = response.status_code
            if response.status_code in (401, 403):
                self.tokens.invalidate()
                msg = f"{method} {path} rejected with status {response.status_code}"
                raise AuthenticationError(msg, response.status_code)
            if response.status_code == 404 and allow_not_found:
                return None
            if response.status_code >= 400:
                msg = f"{method} {path} failed with status {response.status_code}: {response.text[:200]}"
                raise FetchError(msg, response.status_code)
            if not response.content:
                return None
            return response.json()

        try:
            result = await with_retry(
                attempt,
                retries=self.settings.upstream_max_retries,
                on_retry=self._on_retry,
                sleep=self._sleep,
            )
        except Exception as e:
            CallLog.finish(
                record,
                getattr(e, "status_code", None),
                (time.perf_counter() - started) * 1000,
                error=str(e),
            )
            raise

        CallLog.finish(record, record.status, (time.perf_counter() - started) * 1000)
        return result

    # ========================================
    # Pagination
    # ========================================

    async def fetch_page(
        self,
        kind: str,
        repository_id: int | str,
        offset: int,
        limit: int,
        options: dict[str, Any] | None = None,
    ) -> Page:
        """Fetch one page of ``kind`` records starting at ``offset``."""
        if kind not in RESOURCE_PATHS:
            msg = f"Unknown resource kind: {kind}"
            raise InputValidationError(msg)

        params: dict[str, Any] = {"offset": offset, "limit": limit}
        for key, enabled in (options or {}).items():
            if enabled:
                params[key] = "true"

        payload = await self.request(
            "GET",
            RESOURCE_PATHS[kind].format(repository_id=repository_id),
            params=params,
        )
        items = extract_items(payload)
        return Page(items=items, has_more=len(items) >= limit and len(items) > 0)

    async def fetch_all(
        self,
        kind: str,
        repository_id: int | str,
        on_progress: ProgressCallback | None = None,
        options: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Walk every page of ``kind`` and return all records.

        ``on_progress(fetched_so_far, offset)`` is invoked after each page.
        """
        limit = self.settings.upstream_page_size
        delay = self.settings.upstream_page_delay_ms / 1000
        offset = 0
        results: list[dict[str, Any]] = []

        while True:
            page = await self.fetch_page(kind, repository_id, offset, limit, options)
            results.extend(page.items)
            logger.debug(
                "Fetched %s %s at offset %s (total %s)",
                len(page.items),
                kind,
                offset,
                len(results),
            )
            if on_progress is not None:
                on_progress(len(results), offset)

            if not page.has_more:
                break
            offset += len(page.items)
            if delay:
                await self._sleep(delay)

        logger.info("Fetched %s %s for repository %s", len(results), kind, repository_id)
        return results

    async def fetch_all_objects(
        self,
        repository_id: int | str,
        on_progress: ProgressCallback | None = None,
        include_metrics: bool = True,
        include_profiles: bool = True,
        include_external_ids: bool = True,
    ) -> list[dict[str, Any]]:
        return await self.fetch_all(
            OBJECTS,
            repository_id,
            on_progress,
            {
                "includeMetrics": include_metrics,
                "includeProfiles": include_profiles,
                "includeExternalIds": include_external_ids,
            },
        )

    async def fetch_all_relations(
        self,
        repository_id: int | str,
        on_progress: ProgressCallback | None = None,
    ) -> list[dict[str, Any]]:
        return await self.fetch_all(RELATIONS, repository_id, on_progress)

    # ========================================
    # Repository catalogue
    # ========================================

    async def list_repositories(self) -> list[Repository]:
        payload = await self.request(
            "GET",
            "/repositories",
            params={"limit": REPOSITORY_CATALOGUE_LIMIT},
        )
        return [Repository.from_api(item) for item in extract_items(payload) if "id" in item]

    async def get_repository(self, repository_id: int | str) -> Repository | None:
        """Resolve repository metadata from the catalogue, or ``None`` if absent."""
        wanted = str(repository_id)
        for repository in await self.list_repositories():
            if repository.id == wanted:
                return repository
        return None

    # ========================================
    # Data blocks
    # ========================================

    async def get_object_data_blocks(
        self,
        repository_id: int | str,
        object_id: str,
    ) -> list[dict[str, Any]]:
        payload = await self.request(
            "GET",
            f"/repositories/{repository_id}/objects/{object_id}/datablocks",
            allow_not_found=True,
        )
        if payload is None:
            return []
        return payload if isinstance(payload, list) else extract_items(payload)

    async def get_object_data_block(
        self,
        repository_id: int | str,
        object_id: str,
        namespace: str,
        name: str,
    ) -> dict[str, Any] | None:
        return await self.request(
            "GET",
            f"/repositories/{repository_id}/objects/{object_id}/datablocks/{namespace}/{name}",
            allow_not_found=True,
        )

    async def get_data_block_definition(
        self,
        repository_id: int | str,
        namespace: str,
        name: str,
    ) -> dict[str, Any] | None:
        return await self.request(
            "GET",
            f"/repositories/{repository_id}/schemas/{namespace}/{name}",
            allow_not_found=True,
        )

    async def fetch_all_data_blocks(
        self,
        repository_id: int | str,
        objects: list[dict[str, Any]] | None = None,
    ) -> list[DataBlock]:
        """Flatten the ``documents`` attached to objects into data-block records."""
        if objects is None:
            objects = await self.fetch_all_objects(repository_id)

        blocks: list[DataBlock] = []
        for item in objects:
            object_id = str(item.get("id"))
            blocks.extend(DataBlock.from_document(object_id, doc) for doc in item.get("documents") or [])
        logger.info("Collected %s data blocks from %s objects", len(blocks), len(objects))
        return blocks
