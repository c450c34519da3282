from __future__ import annotations

import secrets
from typing import Any
from urllib.parse import urlparse

import httpx
from google_auth_oauthlib.flow import Flow
from pydantic import ValidationError

from ...auth.models import GOOGLE_PROFILE_SCOPES, AuthorizationRequest, ProviderTokenSet, UserProfile
from ...core.exceptions import (
    InvalidRedirectUriError,
    MissingAuthorizationCodeError,
    ProviderExchangeError,
    ProviderNotConfiguredError,
    ProviderProfileError,
)
from ...core.logging import get_logger
from ..base_auth_adapter import BaseAuthAdapter

logger = get_logger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URI = "https://www.googleapis.com/oauth2/v2/userinfo"

# 32 bytes of entropy -> 43 url-safe characters
STATE_NONCE_BYTES = 32


def _provider_error(resp: httpx.Response) -> str:
    """Extract the OAuth error code from a failed response, without echoing bodies."""
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        # userinfo endpoint nests {"error": {"status": "...", ...}}
        error = error.get("status") or error.get("code")
    return f"HTTP {resp.status_code}: {error}" if error else f"HTTP {resp.status_code}"


class GoogleAuthAdapter(BaseAuthAdapter):
    """Google OAuth2: authorization URL, code exchange and userinfo lookup."""

    provider_key = "google"

    def _require_configured(self) -> None:
        if not self._settings.google_oauth_enabled:
            raise ProviderNotConfiguredError(self.provider_key)

    def _client_config(self, redirect_uri: str) -> dict[str, Any]:
        return {
            "web": {
                "client_id": self._settings.google_client_id,
                "client_secret": self._settings.google_client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [redirect_uri],
            }
        }

    def resolve_redirect_uri(self, redirect_uri: str | None) -> str:
        """Return the caller's redirect URI, or the configured default.

        Raises:
            InvalidRedirectUriError: If the override is not an absolute http(s) URL.
        """
        if not redirect_uri:
            return self._settings.oauth_redirect_uri
        parsed = urlparse(redirect_uri)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidRedirectUriError()
        return redirect_uri

    def build_authorization_url(self, *, redirect_uri: str | None = None) -> AuthorizationRequest:
        self._require_configured()
        target = self.resolve_redirect_uri(redirect_uri)
        state = secrets.token_urlsafe(STATE_NONCE_BYTES)

        # The code is redeemed in a later, unrelated request, so no PKCE verifier
        flow = Flow.from_client_config(
            self._client_config(target),
            scopes=list(GOOGLE_PROFILE_SCOPES),
            autogenerate_code_verifier=False,
        )
        flow.redirect_uri = target
        authorization_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            state=state,
        )
        return AuthorizationRequest(url=authorization_url, state=state, redirect_uri=target)

    async def exchange_code(self, *, code: str, redirect_uri: str | None = None) -> ProviderTokenSet:
        if not code or not code.strip():
            raise MissingAuthorizationCodeError()
        self._require_configured()

        client = await self._client()
        try:
            resp = await client.post(
                GOOGLE_TOKEN_URI,
                data={
                    "code": code,
                    "client_id": self._settings.google_client_id,
                    "client_secret": self._settings.google_client_secret,
                    "redirect_uri": redirect_uri or self._settings.oauth_redirect_uri,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException:
            raise ProviderExchangeError("timeout") from None
        except httpx.HTTPError as e:
            raise ProviderExchangeError(f"transport error: {type(e).__name__}") from None

        if resp.status_code != 200:
            raise ProviderExchangeError(_provider_error(resp))

        try:
            return ProviderTokenSet.model_validate(resp.json())
        except (ValueError, ValidationError):
            raise ProviderExchangeError("malformed token response") from None

    async def get_user_info(self, *, access_token: str) -> UserProfile:
        client = await self._client()
        try:
            resp = await client.get(
                GOOGLE_USERINFO_URI,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
        except httpx.TimeoutException:
            raise ProviderProfileError("timeout") from None
        except httpx.HTTPError as e:
            raise ProviderProfileError(f"transport error: {type(e).__name__}") from None

        if resp.status_code != 200:
            raise ProviderProfileError(_provider_error(resp))

        try:
            data = resp.json()
        except ValueError:
            raise ProviderProfileError("malformed profile response") from None

        email = data.get("email") if isinstance(data, dict) else None
        if not email:
            raise ProviderProfileError("profile has no email")

        return UserProfile(
            email=email,
            display_name=data.get("name") or None,
            picture_url=data.get("picture") or None,
            provider_id=data.get("id") or data.get("sub"),
        )
