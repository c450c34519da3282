"""
Shared pytest fixtures and path setup for unit tests.
"""

import os
import sys
from pathlib import Path

# Set environment BEFORE any authrelay imports so Settings picks up test values.
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("OAUTH_REDIRECT_URI", "http://localhost:3000/auth/google/callback")
os.environ["RELAY_APP_SCHEME"] = "scheme"
os.environ["RELAY_ENFORCE_STATE"] = "false"
os.environ.setdefault("RELAY_ENVIRONMENT", "development")
os.environ.pop("FIREBASE_SERVICE_ACCOUNT_JSON", None)
os.environ.pop("FIREBASE_SERVICE_ACCOUNT_FILE", None)
os.environ.pop("RELAY_AUTH_HANDLER_UPSTREAM", None)

# Add backend/src to sys.path so authrelay.* imports work when running pytest from repo root.
PROJECT_SRC = Path(__file__).resolve().parents[2]
if str(PROJECT_SRC) not in sys.path:
    sys.path.insert(0, str(PROJECT_SRC))

import httpx
import pytest

from authrelay.auth.models import DirectoryUser, ProviderTokenSet, UserProfile
from authrelay.core.config import Settings
from authrelay.core.exceptions import DirectoryUnavailableError


class FakeIdentityDirectory:
    """In-memory stand-in for IdentityDirectory that records every call."""

    def __init__(self) -> None:
        self.users: dict[str, DirectoryUser] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_lookup = False
        self.fail_mint = False

    async def get_or_create(self, profile: UserProfile) -> DirectoryUser:
        self.calls.append(("get_or_create", profile.email))
        if self.fail_lookup:
            raise DirectoryUnavailableError("lookup", "backend down")
        user = self.users.get(profile.email)
        if user is None:
            user = DirectoryUser(
                uid=f"u{len(self.users) + 1}",
                email=profile.email,
                display_name=profile.display_name,
                photo_url=profile.picture_url,
            )
            self.users[profile.email] = user
        return user

    async def mint_custom_token(self, uid: str) -> str:
        self.calls.append(("mint_custom_token", uid))
        if self.fail_mint:
            raise DirectoryUnavailableError("mint", "signing failed")
        return f"ct-{uid}"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def google_handler(
    *,
    token_status: int = 200,
    token_body: dict | None = None,
    profile_status: int = 200,
    profile_body: dict | None = None,
):
    """Build a handler that fakes Google's token and userinfo endpoints."""
    token_body = token_body if token_body is not None else {
        "access_token": "ya29.access",
        "id_token": "eyJ.provider-id-token",
        "expires_in": 3599,
        "token_type": "Bearer",
    }
    profile_body = profile_body if profile_body is not None else {
        "id": "1234567890",
        "email": "a@x.com",
        "verified_email": True,
        "name": "A",
        "picture": "https://lh3.googleusercontent.com/a/photo",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com" and request.url.path == "/token":
            return httpx.Response(token_status, json=token_body)
        if request.url.host == "www.googleapis.com" and request.url.path == "/oauth2/v2/userinfo":
            return httpx.Response(profile_status, json=profile_body)
        return httpx.Response(404, json={"error": "not_found"})

    return handler


@pytest.fixture
def settings() -> Settings:
    """Settings built from the test environment."""
    return Settings()  # type: ignore[call-arg]


@pytest.fixture
def fake_directory() -> FakeIdentityDirectory:
    return FakeIdentityDirectory()


@pytest.fixture
def provider_tokens() -> ProviderTokenSet:
    return ProviderTokenSet(access_token="ya29.access", id_token="eyJ.provider-id-token", expires_in=3599)


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(email="a@x.com", display_name="A", picture_url="https://lh3.googleusercontent.com/a/photo")


@pytest.fixture
def google_api():
    """Factory for a RecordingTransport that fakes Google's token and userinfo endpoints."""

    def _make(**kwargs) -> RecordingTransport:
        return RecordingTransport(google_handler(**kwargs))

    return _make


@pytest.fixture
def recording_transport():
    """The RecordingTransport class, for tests that need a custom handler."""
    return RecordingTransport


@pytest.fixture
def fake_directory_cls():
    """The FakeIdentityDirectory class, for tests that need a fresh instance per example."""
    return FakeIdentityDirectory
