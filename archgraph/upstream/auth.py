"""OAuth2 client-credentials token lifecycle for the upstream API."""

import asyncio
import logging
import time

import httpx

from archgraph.core.exceptions import AuthenticationError, ConfigurationError, FetchError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


class TokenManager:
    """Fetches a bearer token once and reuses it until it nears expiry.

    A token is reused while more than ``expiry_margin`` seconds of validity
    remain. ``invalidate()`` drops it so the next call re-authenticates.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        token_url: str,
        client_id: str | None,
        client_secret: str | None,
        expiry_margin: int = 60,
    ):
        self._http = http
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._expiry_margin = expiry_margin
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def has_valid_token(self) -> bool:
        return self._token is not None and time.monotonic() < self._expires_at - self._expiry_margin

    def invalidate(self) -> None:
        if self._token is not None:
            logger.info("Invalidating cached upstream access token")
        self._token = None
        self._expires_at = 0.0

    async def get_token(self) -> str:
        if self.has_valid_token:
            return self._token  # type: ignore[return-value]

        async with self._lock:
            if self.has_valid_token:
                return self._token  # type: ignore[return-value]
            return await self._request_token()

    async def _request_token(self) -> str:
        if not self._client_id or not self._client_secret:
            msg = "Upstream client id and secret must be configured"
            raise ConfigurationError(msg)

        logger.debug("Requesting upstream access token from %s", self._token_url)
        try:
            response = await self._http.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            msg = f"Token request failed: {e}"
            raise FetchError(msg) from e

        if response.status_code in (400, 401, 403):
            msg = f"Token request rejected with status {response.status_code}"
            raise AuthenticationError(msg, response.status_code)
        if response.status_code >= 400:
            msg = f"Token request failed with status {response.status_code}"
            raise FetchError(msg, response.status_code)

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            msg = "Token response did not contain an access_token"
            raise AuthenticationError(msg, response.status_code)

        expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        self._token = token
        self._expires_at = time.monotonic() + expires_in
        logger.info("Obtained upstream access token (expires in %ss)", expires_in)
        return token
