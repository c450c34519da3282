"""Deep-link redirects back to the native client.

The only way a callback result leaves the relay: a 302 to
``<scheme>://auth/callback`` carrying either the credential (``token``,
``email``, ``name`` and, for provider tokens, ``provider``) or an ``error``.
Every value is percent-encoded with no safe characters.
"""

from urllib.parse import quote, urlencode

from fastapi import status
from fastapi.responses import RedirectResponse

from ..auth.models import SessionCredential

CALLBACK_PATH = "auth/callback"


class DeepLinkResponder:
    """Builds client-scheme callback URIs and the redirects that carry them."""

    def __init__(self, app_scheme: str) -> None:
        self._base = f"{app_scheme}://{CALLBACK_PATH}"

    def build_callback_url(self, params: list[tuple[str, str | None]]) -> str:
        """Encode ``params`` in order, dropping those whose value is None."""
        present = [(key, value) for key, value in params if value is not None]
        if not present:
            return self._base
        return f"{self._base}?{urlencode(present, quote_via=quote, safe='')}"

    def credential_url(self, credential: SessionCredential) -> str:
        return self.build_callback_url(
            [
                ("token", credential.value),
                ("email", credential.email),
                ("name", credential.display_name),
                ("provider", credential.provider),
            ]
        )

    def error_url(self, message: str, *, email: str | None = None, name: str | None = None) -> str:
        return self.build_callback_url([("error", message), ("email", email), ("name", name)])

    def credential_redirect(self, credential: SessionCredential) -> RedirectResponse:
        return RedirectResponse(url=self.credential_url(credential), status_code=status.HTTP_302_FOUND)

    def error_redirect(self, message: str, *, email: str | None = None, name: str | None = None) -> RedirectResponse:
        return RedirectResponse(url=self.error_url(message, email=email, name=name), status_code=status.HTTP_302_FOUND)
