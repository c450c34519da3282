"""Identity directory readiness gate.

The Firebase Admin app is initialized exactly once, during application startup.
The outcome is frozen into a DirectoryReadiness and exposed through a
DirectoryGate held on ``app.state``. Request handlers only ever read it; a
failed initialization is recovered by restarting the process, never at request
time. While the gate is closed the relay keeps serving in fallback-only mode.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials

from .config import Settings
from .logging import get_logger, redact_text

logger = get_logger(__name__)

FIREBASE_APP_NAME = "authrelay"

REQUIRED_SERVICE_ACCOUNT_FIELDS = ("type", "project_id", "private_key", "client_email")


@dataclass(frozen=True)
class DirectoryReadiness:
    """Immutable result of the startup directory check."""

    available: bool
    detail: str
    project_id: str | None = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "initialized": self.available,
            "detail": self.detail,
            "project_id": self.project_id,
            "checked_at": self.checked_at.isoformat(),
        }


class DirectoryGate:
    """Read-only handle on the directory initialization outcome."""

    def __init__(self, readiness: DirectoryReadiness, app: firebase_admin.App | None = None) -> None:
        if readiness.available and app is None:
            raise ValueError("An available directory requires an initialized Firebase app")
        self._readiness = readiness
        self._app = app

    @property
    def readiness(self) -> DirectoryReadiness:
        return self._readiness

    @property
    def app(self) -> firebase_admin.App | None:
        return self._app

    def is_ready(self) -> bool:
        return self._readiness.available

    def close(self) -> None:
        """Release the Firebase app (shutdown only)."""
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None


def load_service_account_info(settings: Settings) -> dict[str, Any] | None:
    """Load service account key material from the environment or a key file.

    Returns None when neither source is configured.

    Raises:
        ValueError: If the key material is not a JSON object or lacks required fields.
        OSError: If the key file cannot be read.
    """
    if settings.firebase_service_account_json:
        raw = settings.firebase_service_account_json
        source = "FIREBASE_SERVICE_ACCOUNT_JSON"
    elif settings.firebase_service_account_file:
        raw = Path(settings.firebase_service_account_file).read_text(encoding="utf-8")
        source = "FIREBASE_SERVICE_ACCOUNT_FILE"
    else:
        return None

    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"{source} is not valid JSON (line {e.lineno})") from None

    if not isinstance(info, dict):
        raise ValueError(f"{source} must contain a JSON object")

    missing = [name for name in REQUIRED_SERVICE_ACCOUNT_FIELDS if not info.get(name)]
    if missing:
        raise ValueError(f"{source} is missing required fields: {', '.join(missing)}")
    if info["type"] != "service_account":
        raise ValueError(f"{source} must describe a service_account credential")
    return info


def _release_existing_app() -> None:
    try:
        existing = firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        return
    firebase_admin.delete_app(existing)


def initialize_directory(settings: Settings) -> DirectoryGate:
    """Initialize the Firebase Admin app and evaluate directory readiness.

    Blocking (credential parsing and the optional probe); run it off the event
    loop. Never raises: every failure yields a closed gate with a diagnostic.
    """
    app: firebase_admin.App | None = None
    project_id: str | None = None
    try:
        info = load_service_account_info(settings)
        if info is None:
            readiness = DirectoryReadiness(available=False, detail="No Firebase service account configured")
            logger.warning("Identity directory disabled; serving provider-token fallback only")
            return DirectoryGate(readiness)

        project_id = info["project_id"]
        certificate = credentials.Certificate(info)

        _release_existing_app()
        app = firebase_admin.initialize_app(
            certificate,
            options={"projectId": project_id, "httpTimeout": settings.external_timeout_seconds},
            name=FIREBASE_APP_NAME,
        )

        if settings.firebase_startup_probe:
            auth.list_users(max_results=1, app=app)
            detail = "Firebase Admin initialized; probe succeeded"
        else:
            detail = "Firebase Admin initialized"

        readiness = DirectoryReadiness(available=True, detail=detail, project_id=project_id)
        logger.info("Identity directory ready", extra={"project_id": project_id, "probe": settings.firebase_startup_probe})
        return DirectoryGate(readiness, app)

    except Exception as e:
        if app is not None:
            try:
                firebase_admin.delete_app(app)
            except ValueError:
                pass
        detail = redact_text(f"{type(e).__name__}: {e}")[:300]
        logger.error(
            "Identity directory initialization failed; serving provider-token fallback only",
            extra={"project_id": project_id, "error": detail},
        )
        return DirectoryGate(DirectoryReadiness(available=False, detail=detail, project_id=project_id))
