"""Custom exceptions for the Auth Relay.

This module defines all custom exceptions used throughout the application.
Messages are safe to hand to clients: they never contain tokens, codes or
credential material.
"""

import uuid
from typing import Any


class RelayException(Exception):
    """Base exception class for the Auth Relay."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Callback request validation
class MissingAuthorizationCodeError(RelayException):
    """Raised when the provider callback arrives without an authorization code."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__(
            message="Missing authorization code",
            error_code="MISSING_AUTHORIZATION_CODE",
            status_code=400,
            details=details,
        )


class InvalidStateError(RelayException):
    """Raised when the callback state does not match an issued authorization request."""

    def __init__(self, reason: str = "unknown or expired", details: dict[str, Any] | None = None):
        super().__init__(
            message="Invalid authorization state",
            error_code="INVALID_STATE",
            status_code=400,
            details=details or {"reason": reason},
        )


class InvalidRedirectUriError(RelayException):
    """Raised when a caller-supplied redirect URI is not an absolute http(s) URL."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__(
            message="redirect_uri must be an absolute http(s) URL",
            error_code="INVALID_REDIRECT_URI",
            status_code=400,
            details=details,
        )


# Provider exceptions
class ProviderNotFoundError(RelayException):
    """Raised when an unknown OAuth provider is requested."""

    def __init__(self, provider: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Provider '{provider}' is not supported",
            error_code="PROVIDER_NOT_FOUND",
            status_code=404,
            details=details or {"provider": provider},
        )


class ProviderNotConfiguredError(RelayException):
    """Raised when the provider client credentials are missing."""

    def __init__(self, provider: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Provider '{provider}' is not configured",
            error_code="PROVIDER_NOT_CONFIGURED",
            status_code=503,
            details=details or {"provider": provider},
        )


class ProviderExchangeError(RelayException):
    """Raised when the authorization code cannot be exchanged for tokens."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message="Authorization code exchange failed",
            error_code="PROVIDER_EXCHANGE_FAILED",
            status_code=502,
            details=details or {"reason": reason},
        )


class ProviderProfileError(RelayException):
    """Raised when the user profile cannot be fetched from the provider."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message="Failed to fetch user profile",
            error_code="PROVIDER_PROFILE_FAILED",
            status_code=502,
            details=details or {"reason": reason},
        )


# Identity directory exceptions
class DirectoryUnavailableError(RelayException):
    """Raised when the identity directory cannot serve a lookup, creation or mint.

    Recovered by the session token fallback; never surfaced on the callback path.
    """

    def __init__(self, operation: str, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Identity directory unavailable during {operation}",
            error_code="DIRECTORY_UNAVAILABLE",
            status_code=503,
            details=details or {"operation": operation, "reason": reason},
        )


class SessionIssueError(RelayException):
    """Raised when no session credential can be produced at all."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message="Unable to issue session credential",
            error_code="SESSION_ISSUE_FAILED",
            status_code=500,
            details=details or {"reason": reason},
        )


# Reverse proxy exceptions
class ProxyUpstreamError(RelayException):
    """Raised when the auth handler upstream is unreachable or times out."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message="Auth handler upstream unavailable",
            error_code="PROXY_UPSTREAM_ERROR",
            status_code=502,
            details=details or {"reason": reason},
        )


class ProxyNotConfiguredError(RelayException):
    """Raised when no auth handler upstream is configured."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__(
            message="Auth handler proxy is not configured",
            error_code="PROXY_NOT_CONFIGURED",
            status_code=503,
            details=details,
        )


class AuthorizationDeniedError(RelayException):
    """Raised when the provider redirects back with an error instead of a code."""

    def __init__(self, provider_error: str, details: dict[str, Any] | None = None):
        super().__init__(
            message="Authorization was not granted",
            error_code="AUTHORIZATION_DENIED",
            status_code=400,
            details=details or {"provider_error": provider_error},
        )


def generate_error_id() -> str:
    """Generate a unique error ID for tracking."""
    return f"ERR-{uuid.uuid4().hex[:8].upper()}"
