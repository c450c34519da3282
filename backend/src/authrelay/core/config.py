"""Configuration management for the Auth Relay.

Uses Pydantic Settings for type-safe, environment-based configuration.
"""

from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # App configuration
    app_name: str = Field("Auth Relay", alias="RELAY_APP_NAME")
    debug: bool = Field(False, alias="RELAY_DEBUG")
    version: str = Field("0.0.0-dev", alias="RELAY_APP_VERSION")
    environment: str = Field("development", alias="RELAY_ENVIRONMENT")

    # API configuration
    api_host: str = Field("0.0.0.0", alias="RELAY_API_HOST")
    api_port: int = Field(3000, alias="PORT")
    reload: bool = Field(False, alias="RELAY_RELOAD")
    # Comma-separated; parsed by the allowed_origins property
    allowed_origins_csv: str = Field("*", alias="RELAY_ALLOWED_ORIGINS")

    # Google OAuth configuration
    google_client_id: str | None = Field(None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: str | None = Field(None, alias="GOOGLE_CLIENT_SECRET")
    oauth_redirect_uri: str = Field("http://localhost:3000/auth/google/callback", alias="OAUTH_REDIRECT_URI")

    # Deep link target for the native client
    app_scheme: str = Field("physioquantum", alias="RELAY_APP_SCHEME")

    # Bound applied to every outbound call (provider, directory, proxy upstream)
    external_timeout_seconds: float = Field(10.0, alias="RELAY_EXTERNAL_TIMEOUT_SECONDS")

    # Firebase (identity directory) configuration
    firebase_service_account_json: str | None = Field(None, alias="FIREBASE_SERVICE_ACCOUNT_JSON")
    firebase_service_account_file: str | None = Field(None, alias="FIREBASE_SERVICE_ACCOUNT_FILE")
    firebase_startup_probe: bool = Field(False, alias="FIREBASE_STARTUP_PROBE")

    # Upstream for the provider-hosted auth handler pages (/__/auth/*)
    auth_handler_upstream: str | None = Field(None, alias="RELAY_AUTH_HANDLER_UPSTREAM")

    # Authorization state (anti-replay nonce) handling
    enforce_state: bool = Field(False, alias="RELAY_ENFORCE_STATE")
    state_ttl_seconds: int = Field(600, alias="RELAY_STATE_TTL_SECONDS")
    state_max_entries: int = Field(10_000, alias="RELAY_STATE_MAX_ENTRIES", ge=1)

    # Logging configuration
    log_level: str = Field("INFO", alias="RELAY_LOG_LEVEL")
    log_format: str = Field("text", alias="RELAY_LOG_FORMAT")  # text or json
    log_dir: str | None = Field(None, alias="RELAY_LOG_DIR")

    @property
    def google_oauth_enabled(self) -> bool:
        """Whether both Google client credentials are present."""
        return bool(self.google_client_id and self.google_client_secret)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["text", "json"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting."""
        valid_environments = ["development", "staging", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator("app_scheme")
    @classmethod
    def validate_app_scheme(cls, v: str) -> str:
        """Validate the deep-link scheme (RFC 3986 scheme characters only)."""
        v = v.strip().rstrip(":/")
        if not v or not v[0].isalpha() or not all(c.isalnum() or c in "+-." for c in v):
            raise ValueError("App scheme must start with a letter and contain only letters, digits, '+', '-' or '.'")
        return v.lower()

    @field_validator("external_timeout_seconds")
    @classmethod
    def validate_external_timeout(cls, v: float) -> float:
        """Keep outbound calls bounded."""
        if v <= 0 or v > 60:
            raise ValueError("External timeout must be greater than 0 and at most 60 seconds")
        return v

    @field_validator("auth_handler_upstream", mode="before")
    @classmethod
    def validate_auth_handler_upstream(cls, v: str | None) -> str | None:
        """Require an absolute http(s) origin; empty => None (proxy disabled)."""
        if v is None or not str(v).strip():
            return None
        v = str(v).strip().rstrip("/")
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Auth handler upstream must be an absolute http(s) URL")
        return v

    @field_validator("firebase_service_account_json", "firebase_service_account_file", "google_client_secret")
    @classmethod
    def validate_optional_secret(cls, v: str | None) -> str | None:
        """Treat blank secrets as unset."""
        if v and not v.strip():
            return None
        return v

    @property
    def allowed_origins(self) -> list[str]:
        """CORS origins parsed from the comma-separated setting."""
        origins = [origin.strip() for origin in self.allowed_origins_csv.split(",") if origin.strip()]
        return origins or ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables instead of forbidding them
    )


def get_settings() -> Settings:
    """Create a fresh settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance - will be created when first accessed
settings = None


def get_settings_instance() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global settings  # noqa: PLW0603
    if settings is None:
        settings = get_settings()
    return settings
