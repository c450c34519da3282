"""
Property-based tests for the relay's auth flow.

These tests use Hypothesis to verify universal properties across all valid inputs.
"""

import asyncio
from urllib.parse import parse_qsl, urlsplit

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from authrelay.auth.models import CredentialKind, SessionCredential, UserProfile
from authrelay.core.config import Settings
from authrelay.core.state_store import StateStore
from authrelay.providers.google.auth_adapter import GoogleAuthAdapter
from authrelay.services.deep_link_service import DeepLinkResponder

_text = st.text(alphabet=st.characters(blacklist_categories=("Cs",)), min_size=1, max_size=40)


class TestStateNonces:
    """Every authorization URL carries a nonce that has never been handed out before."""

    @given(count=st.integers(min_value=2, max_value=50))
    @settings(max_examples=25)
    def test_property_nonces_never_collide(self, count: int):
        adapter = GoogleAuthAdapter(Settings())
        states = {adapter.build_authorization_url().state for _ in range(count)}
        assert len(states) == count

    @given(state=st.text(min_size=1, max_size=64))
    @settings(max_examples=100)
    def test_property_state_consumed_at_most_once(self, state: str):
        store = StateStore()
        store.issue(state, "http://localhost:3000/auth/google/callback")

        assert store.consume(state) is not None
        assert store.consume(state) is None


class TestDirectoryIdempotence:
    """Repeated sign-ins with the same email resolve to one directory identity."""

    @given(email=st.emails(), attempts=st.integers(min_value=1, max_value=5))
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_property_get_or_create_idempotent(self, fake_directory_cls, email: str, attempts: int):
        directory = fake_directory_cls()
        profile = UserProfile(email=email, display_name="A")

        async def sign_in_repeatedly() -> set[str]:
            return {(await directory.get_or_create(profile)).uid for _ in range(attempts)}

        assert asyncio.run(sign_in_repeatedly()) == {"u1"}
        assert len(directory.users) == 1


class TestDeepLinkEncoding:
    """Whatever the credential holds, the client decodes exactly the same values."""

    @given(token=_text, email=_text, name=st.one_of(st.none(), _text))
    @settings(max_examples=200)
    def test_property_values_survive_encoding(self, token: str, email: str, name: str | None):
        credential = SessionCredential(
            kind=CredentialKind.DIRECTORY_TOKEN, value=token, email=email, display_name=name
        )

        url = DeepLinkResponder("scheme").credential_url(credential)
        parts = urlsplit(url)
        decoded = dict(parse_qsl(parts.query, keep_blank_values=True))

        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "scheme://auth/callback"
        expected = {"token": token, "email": email}
        if name is not None:
            expected["name"] = name
        assert decoded == expected


@pytest.mark.parametrize("scheme", ["scheme", "physioquantum", "com.example.app"])
def test_callback_base_uses_configured_scheme(scheme: str):
    assert DeepLinkResponder(scheme).error_url("x").startswith(f"{scheme}://auth/callback?")
