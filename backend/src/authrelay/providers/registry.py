from __future__ import annotations

import httpx

from ..core.config import Settings
from ..core.exceptions import ProviderNotFoundError
from .base_auth_adapter import BaseAuthAdapter
from .google.auth_adapter import GoogleAuthAdapter

_ADAPTERS: dict[str, type[BaseAuthAdapter]] = {
    GoogleAuthAdapter.provider_key: GoogleAuthAdapter,
}


def get_auth_adapter(
    provider: str, settings: Settings, http_client: httpx.AsyncClient | None = None
) -> BaseAuthAdapter:
    """Factory for provider auth adapters."""
    prov = (provider or "").strip().lower()
    adapter_cls = _ADAPTERS.get(prov)
    if adapter_cls is None:
        raise ProviderNotFoundError(provider)
    return adapter_cls(settings, http_client=http_client)
