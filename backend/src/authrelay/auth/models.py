"""Data models for the OAuth relay flow."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

GOOGLE_PROFILE_SCOPES = (
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
)


class CredentialKind(str, Enum):
    """Source of a session credential."""

    DIRECTORY_TOKEN = "directory_token"
    PROVIDER_TOKEN = "provider_token"


class AuthorizationRequest(BaseModel):
    """A provider authorization URL plus the nonce it was issued with."""

    model_config = ConfigDict(frozen=True)

    url: str
    state: str
    redirect_uri: str
    scopes: tuple[str, ...] = GOOGLE_PROFILE_SCOPES


class ProviderTokenSet(BaseModel):
    """Tokens returned by the provider token endpoint. Never persisted or logged."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str
    id_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None
    scope: str | None = None

    def __repr__(self) -> str:
        return f"ProviderTokenSet(token_type={self.token_type!r}, expires_in={self.expires_in!r})"

    __str__ = __repr__


class UserProfile(BaseModel):
    """Profile returned by the provider userinfo endpoint."""

    model_config = ConfigDict(frozen=True)

    email: str
    display_name: str | None = None
    picture_url: str | None = None
    provider_id: str | None = None
    # Provider-asserted; not re-verified by the relay
    email_verified: bool = True


class DirectoryUser(BaseModel):
    """A user record held by the identity directory."""

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None


class SessionCredential(BaseModel):
    """Credential handed to the native client through the deep link."""

    model_config = ConfigDict(frozen=True)

    kind: CredentialKind
    value: str = Field(repr=False)
    email: str
    display_name: str | None = None
    # Set for provider tokens so the client picks the matching sign-in path
    provider: str | None = None
