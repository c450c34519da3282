"""OAuth relay endpoints: authorization URL and provider callback."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from ..core.config import Settings
from ..core.exceptions import ProviderNotFoundError
from ..core.logging import get_logger
from ..core.readiness import DirectoryGate
from ..core.state_store import StateStore
from ..providers.base_auth_adapter import BaseAuthAdapter
from ..services.auth_callback_service import AuthCallbackService
from ..services.deep_link_service import DeepLinkResponder
from ..services.directory_service import IdentityDirectory
from ..services.session_token_service import SessionTokenIssuer
from .dependencies import (
    get_app_settings,
    get_deep_link_responder,
    get_directory_gate,
    get_identity_directory,
    get_provider_adapter,
    get_state_store,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.get("/{provider}/init")
async def auth_init(
    provider: str,
    redirect_uri: str | None = Query(None, description="Override for the provider callback target"),
    adapter: BaseAuthAdapter | None = Depends(get_provider_adapter),
    state_store: StateStore = Depends(get_state_store),
) -> dict[str, str]:
    """Return the provider authorization URL the client should open."""
    if adapter is None:
        raise ProviderNotFoundError(provider)

    auth_request = adapter.build_authorization_url(redirect_uri=redirect_uri)
    state_store.issue(auth_request.state, auth_request.redirect_uri)

    logger.info(
        "Authorization URL issued",
        extra={"provider": adapter.provider_key, "redirect_overridden": redirect_uri is not None},
    )
    return {"authUrl": auth_request.url}


@router.get("/{provider}/callback", response_class=RedirectResponse)
async def auth_callback(
    provider: str,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    adapter: BaseAuthAdapter | None = Depends(get_provider_adapter),
    gate: DirectoryGate = Depends(get_directory_gate),
    directory: IdentityDirectory | None = Depends(get_identity_directory),
    responder: DeepLinkResponder = Depends(get_deep_link_responder),
    state_store: StateStore = Depends(get_state_store),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    """Provider redirect target. Always answers with a deep-link redirect."""
    if adapter is None:
        return responder.error_redirect(ProviderNotFoundError(provider).message)

    service = AuthCallbackService(
        adapter=adapter,
        issuer=SessionTokenIssuer(gate, directory, provider_key=adapter.provider_key),
        responder=responder,
        state_store=state_store,
        enforce_state=settings.enforce_state,
    )
    return await service.handle(code, state, provider_error=error)
