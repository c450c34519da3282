"""Authentication models for the Auth Relay"""

from .models import (
    AuthorizationRequest,
    CredentialKind,
    DirectoryUser,
    ProviderTokenSet,
    SessionCredential,
    UserProfile,
)

__all__ = [
    "AuthorizationRequest",
    "CredentialKind",
    "DirectoryUser",
    "ProviderTokenSet",
    "SessionCredential",
    "UserProfile",
]
