"""Shared outbound HTTP client.

One pooled ``httpx.AsyncClient`` serves the Google token/userinfo calls and
the auth handler proxy. Every request is bounded by
``RELAY_EXTERNAL_TIMEOUT_SECONDS`` and redirects are never followed: the
proxy mirrors them to the browser instead.
"""

import ssl
from http.cookiejar import CookieJar, DefaultCookiePolicy

import certifi
import httpx

from .config import Settings, get_settings_instance
from .logging import get_logger

logger = get_logger(__name__)


def _discarding_cookie_jar() -> CookieJar:
    """A jar that never stores cookies.

    The client is shared across users; upstream Set-Cookie headers are mirrored
    to the browser and must never be replayed on another user's request.
    """
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class HTTPClientManager:
    """Lazily creates the pooled client and closes it on shutdown."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._client: httpx.AsyncClient | None = None
        self._settings = settings or get_settings_instance()

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            timeout = self._settings.external_timeout_seconds
            logger.debug("Creating shared HTTP client", extra={"timeout_seconds": timeout})
            self._client = httpx.AsyncClient(
                verify=ssl.create_default_context(cafile=certifi.where()),
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100, keepalive_expiry=30.0),
                timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
                follow_redirects=False,
                cookies=_discarding_cookie_jar(),
                headers={"User-Agent": f"AuthRelay/{self._settings.version}"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            logger.debug("Closing shared HTTP client")
            await self._client.aclose()
            self._client = None


_manager: HTTPClientManager | None = None


def get_http_client_manager() -> HTTPClientManager:
    global _manager  # noqa: PLW0603
    if _manager is None:
        _manager = HTTPClientManager()
    return _manager


async def get_http_client() -> httpx.AsyncClient:
    """Get the shared client for outbound calls."""
    return await get_http_client_manager().get_client()


async def close_http_client() -> None:
    """Close the shared client (call during shutdown)."""
    await get_http_client_manager().close()
