"""
Unit tests for archgraph/upstream/retry.py, auth.py and call_log.py

Test Coverage:
- backoff_delay_ms(): doubling and cap
- with_retry(): retryable vs fatal errors, callback attempts
- TokenManager: form grant, rejection, missing credentials
- build_curl()/CallLog: placeholder token, ring buffer order
"""

import httpx
import pytest

from archgraph.core.exceptions import AuthenticationError, ConfigurationError, FetchError
from archgraph.upstream.auth import TokenManager
from archgraph.upstream.call_log import TOKEN_PLACEHOLDER, CallLog, build_curl
from archgraph.upstream.retry import backoff_delay_ms, is_retryable, with_retry


class TestBackoff:
    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(0, 1000), (1, 2000), (2, 4000), (3, 8000), (4, 10000), (9, 10000)],
    )
    def test_delay_doubles_up_to_cap(self, attempt, expected):
        assert backoff_delay_ms(attempt) == expected

    def test_retryable_classification(self):
        assert is_retryable(FetchError("down"))
        assert is_retryable(FetchError("bad gateway", 502))
        assert not is_retryable(FetchError("missing", 404))
        assert not is_retryable(AuthenticationError("denied", 401))
        assert not is_retryable(ValueError("nope"))


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        """Test two 5xx failures followed by success"""
        outcomes = [FetchError("a", 500), FetchError("b", 503), "ok"]
        sleeps = []
        attempts = []

        async def operation():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        result = await with_retry(
            operation,
            retries=3,
            on_retry=lambda e, attempt: attempts.append((str(e), attempt)),
            sleep=fake_sleep,
        )

        assert result == "ok"
        assert sleeps == [1.0, 2.0]
        assert attempts == [("a", 1), ("b", 2)]

    @pytest.mark.asyncio
    async def test_fatal_error_raised_immediately(self):
        """Test non-retryable errors bypass the backoff"""
        sleeps = []

        async def operation():
            raise AuthenticationError("denied", 403)

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        with pytest.raises(AuthenticationError):
            await with_retry(operation, sleep=fake_sleep)
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        """Test retries=0 makes exactly one attempt"""
        calls = []

        async def operation():
            calls.append(1)
            raise FetchError("down")

        async def fake_sleep(seconds):
            raise AssertionError("should not sleep")

        with pytest.raises(FetchError):
            await with_retry(operation, retries=0, sleep=fake_sleep)
        assert len(calls) == 1


class TestTokenManager:
    @pytest.mark.asyncio
    async def test_client_credentials_grant(self):
        """Test the token request is a form-encoded client credentials grant"""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "abc"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            tokens = TokenManager(http, "https://upstream.test/oauth/token", "id", "secret")
            assert await tokens.get_token() == "abc"
            assert await tokens.get_token() == "abc"

        assert len(seen) == 1
        body = seen[0].content.decode()
        assert "grant_type=client_credentials" in body
        assert "client_id=id" in body
        assert "client_secret=secret" in body

    @pytest.mark.asyncio
    async def test_short_lived_token_not_reused(self):
        """Test a token expiring within the margin is fetched again"""
        count = []

        def handler(request: httpx.Request) -> httpx.Response:
            count.append(1)
            return httpx.Response(200, json={"access_token": f"t{len(count)}", "expires_in": 30})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            tokens = TokenManager(http, "https://upstream.test/oauth/token", "id", "secret", 60)
            assert await tokens.get_token() == "t1"
            assert await tokens.get_token() == "t2"

    @pytest.mark.asyncio
    async def test_rejected_credentials(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_client"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            tokens = TokenManager(http, "https://upstream.test/oauth/token", "id", "wrong")
            with pytest.raises(AuthenticationError):
                await tokens.get_token()

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        async with httpx.AsyncClient() as http:
            tokens = TokenManager(http, "https://upstream.test/oauth/token", None, None)
            with pytest.raises(ConfigurationError):
                await tokens.get_token()


class TestCallLog:
    def test_curl_uses_placeholder_without_token(self):
        curl = build_curl("get", "https://upstream.test/api/3.0/repositories", {"limit": 1000})
        assert curl.startswith("curl -X GET")
        assert "repositories?limit=1000" in curl
        assert TOKEN_PLACEHOLDER in curl

    def test_curl_includes_body(self):
        curl = build_curl("POST", "https://upstream.test/x", body={"a": 1}, token="tok")
        assert "-d" in curl
        assert '{"a": 1}' in curl
        assert "Bearer tok" in curl

    def test_ring_buffer_keeps_newest(self):
        log = CallLog(size=2)
        for i in range(3):
            record = log.start("GET", f"https://upstream.test/{i}")
            CallLog.finish(record, 200, 1.234)

        recent = log.recent()
        assert len(log) == 2
        assert [r["url"] for r in recent] == ["https://upstream.test/2", "https://upstream.test/1"]
        assert recent[0]["duration_ms"] == 1.2
        assert recent[0]["outcome"] == "success"

    def test_recent_limit_and_clear(self):
        log = CallLog()
        for i in range(5):
            log.start("GET", f"https://upstream.test/{i}")
        assert [r["url"][-1] for r in log.recent(2)] == ["4", "3"]
        log.clear()
        assert log.recent() == []
