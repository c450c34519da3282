from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from ..core.http_client import get_http_client

if TYPE_CHECKING:
    from ..auth.models import AuthorizationRequest, ProviderTokenSet, UserProfile
    from ..core.config import Settings


class BaseAuthAdapter:
    """
    Provider auth adapter interface.

    Adapters share the pooled HTTP client unless one is injected (tests pass a
    client wired to ``httpx.MockTransport``).
    """

    provider_key: str = ""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self._settings = settings
        self._http_client = http_client

    async def _client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return await get_http_client()

    def build_authorization_url(self, *, redirect_uri: str | None = None) -> AuthorizationRequest:
        """Return the provider authorization URL and the state nonce embedded in it."""
        raise NotImplementedError

    async def exchange_code(self, *, code: str, redirect_uri: str | None = None) -> ProviderTokenSet:
        """Exchange an authorization code for provider tokens."""
        raise NotImplementedError

    async def get_user_info(self, *, access_token: str) -> UserProfile:
        """Fetch the signed-in user's profile with a provider access token."""
        raise NotImplementedError
