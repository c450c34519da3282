"""Session credential issuance with graceful degradation.

Prefers a Firebase custom token tied to the directory user. Whenever the
directory is not ready, or lookup/creation/minting fails, the provider's ID
token is handed out instead, marked with the provider key so the client picks
the matching sign-in path. Directory outages downgrade the credential; they
never fail the sign-in.
"""

from __future__ import annotations

from ..auth.models import CredentialKind, ProviderTokenSet, SessionCredential, UserProfile
from ..core.exceptions import DirectoryUnavailableError, SessionIssueError
from ..core.logging import get_logger
from ..core.readiness import DirectoryGate
from .directory_service import IdentityDirectory

logger = get_logger(__name__)


class SessionTokenIssuer:
    """Turns provider tokens plus a profile into a SessionCredential."""

    def __init__(
        self,
        gate: DirectoryGate,
        directory: IdentityDirectory | None,
        provider_key: str = "google",
    ) -> None:
        self._gate = gate
        self._directory = directory
        self._provider_key = provider_key

    async def issue(self, tokens: ProviderTokenSet, profile: UserProfile) -> SessionCredential:
        """Issue a directory token, or fall back to the provider ID token.

        Raises:
            SessionIssueError: Only when falling back and the provider returned no ID token.
        """
        if self._gate.is_ready() and self._directory is not None:
            try:
                user = await self._directory.get_or_create(profile)
                custom_token = await self._directory.mint_custom_token(user.uid)
            except DirectoryUnavailableError as e:
                logger.warning(
                    "Directory unavailable; issuing provider token",
                    extra={"error_code": e.error_code, "operation": e.details.get("operation")},
                )
            else:
                return SessionCredential(
                    kind=CredentialKind.DIRECTORY_TOKEN,
                    value=custom_token,
                    email=user.email or profile.email,
                    display_name=user.display_name or profile.display_name,
                )
        else:
            logger.debug("Directory not ready; issuing provider token")

        return self._fallback(tokens, profile)

    def _fallback(self, tokens: ProviderTokenSet, profile: UserProfile) -> SessionCredential:
        if not tokens.id_token:
            raise SessionIssueError("provider returned no id_token")
        return SessionCredential(
            kind=CredentialKind.PROVIDER_TOKEN,
            value=tokens.id_token,
            email=profile.email,
            display_name=profile.display_name,
            provider=self._provider_key,
        )
