"""
FastAPI dependencies for the Auth Relay.

Process-wide services live on ``app.state`` (set in ``create_app`` and replaced
during lifespan startup); these dependencies hand them to route handlers so
tests can swap any of them through ``app.dependency_overrides``.
"""

from starlette.requests import Request

from ..core.config import Settings, get_settings_instance
from ..core.exceptions import ProviderNotFoundError
from ..core.readiness import DirectoryGate
from ..core.state_store import StateStore
from ..providers.base_auth_adapter import BaseAuthAdapter
from ..providers.registry import get_auth_adapter
from ..services.deep_link_service import DeepLinkResponder
from ..services.directory_service import IdentityDirectory
from ..services.proxy_service import AuthHandlerProxy


def get_app_settings() -> Settings:
    return get_settings_instance()


def get_directory_gate(request: Request) -> DirectoryGate:
    return request.app.state.directory_gate


def get_identity_directory(request: Request) -> IdentityDirectory | None:
    return request.app.state.identity_directory


def get_state_store(request: Request) -> StateStore:
    return request.app.state.state_store


def get_auth_handler_proxy(request: Request) -> AuthHandlerProxy:
    return request.app.state.auth_handler_proxy


def get_deep_link_responder() -> DeepLinkResponder:
    return DeepLinkResponder(get_settings_instance().app_scheme)


def get_provider_adapter(provider: str) -> BaseAuthAdapter | None:
    """Resolve the adapter for the ``{provider}`` path segment; None if unsupported."""
    try:
        return get_auth_adapter(provider, get_settings_instance())
    except ProviderNotFoundError:
        return None
