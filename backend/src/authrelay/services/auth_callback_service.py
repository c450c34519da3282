"""OAuth callback pipeline.

code -> provider tokens -> profile -> session credential -> deep link.

The mobile client only understands the deep-link contract, so this service
never lets an exception escape: every failure that the credential fallback
does not absorb becomes an ``error`` redirect.
"""

from __future__ import annotations

from fastapi.responses import RedirectResponse

from ..auth.models import UserProfile
from ..core.exceptions import (
    AuthorizationDeniedError,
    InvalidStateError,
    MissingAuthorizationCodeError,
    RelayException,
    generate_error_id,
)
from ..core.logging import get_logger
from ..core.state_store import StateStore
from ..providers.base_auth_adapter import BaseAuthAdapter
from .deep_link_service import DeepLinkResponder
from .session_token_service import SessionTokenIssuer

logger = get_logger(__name__)

GENERIC_FAILURE_MESSAGE = "Authentication failed"


def _email_domain(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    return email.rsplit("@", 1)[1].lower()


class AuthCallbackService:
    """Runs one provider callback to a terminal redirect."""

    def __init__(
        self,
        adapter: BaseAuthAdapter,
        issuer: SessionTokenIssuer,
        responder: DeepLinkResponder,
        state_store: StateStore,
        enforce_state: bool = False,
    ) -> None:
        self._adapter = adapter
        self._issuer = issuer
        self._responder = responder
        self._state_store = state_store
        self._enforce_state = enforce_state

    def _check_state(self, state: str | None) -> str | None:
        """Consume the state nonce; return the redirect URI it was issued for."""
        issued = self._state_store.consume(state)
        if issued is not None:
            return issued.redirect_uri
        if self._enforce_state:
            raise InvalidStateError("missing" if not state else "unknown, expired or reused")
        logger.warning(
            "Callback state not recognized; continuing without enforcement",
            extra={"state_present": bool(state)},
        )
        return None

    async def handle(
        self,
        code: str | None,
        state: str | None,
        provider_error: str | None = None,
    ) -> RedirectResponse:
        profile: UserProfile | None = None
        try:
            if not code or not code.strip():
                if provider_error:
                    raise AuthorizationDeniedError(provider_error)
                raise MissingAuthorizationCodeError()

            redirect_uri = self._check_state(state)
            tokens = await self._adapter.exchange_code(code=code, redirect_uri=redirect_uri)
            profile = await self._adapter.get_user_info(access_token=tokens.access_token)
            credential = await self._issuer.issue(tokens, profile)

        except RelayException as e:
            logger.warning(
                "auth.callback.failed",
                extra={
                    "provider": self._adapter.provider_key,
                    "error_code": e.error_code,
                    "reason": e.details.get("reason") or e.details.get("provider_error"),
                    "email_domain": _email_domain(profile.email if profile else None),
                },
            )
            return self._responder.error_redirect(
                e.message,
                email=profile.email if profile else None,
                name=profile.display_name if profile else None,
            )
        except Exception as e:
            error_id = generate_error_id()
            logger.error(
                "auth.callback.error",
                extra={
                    "provider": self._adapter.provider_key,
                    "error_id": error_id,
                    "exception_type": type(e).__name__,
                },
                exc_info=True,
            )
            return self._responder.error_redirect(GENERIC_FAILURE_MESSAGE)

        logger.info(
            "auth.callback.issued",
            extra={
                "provider": self._adapter.provider_key,
                "credential_kind": credential.kind.value,
                "email_domain": _email_domain(credential.email),
            },
        )
        return self._responder.credential_redirect(credential)
