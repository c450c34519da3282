"""Identity directory adapter backed by Firebase Authentication.

Maps a provider-verified email to a stable Firebase user record, creating the
record on first sight, and mints Firebase custom tokens for those records.

Firebase Admin calls are blocking, so each one runs in a worker thread and is
bounded by ``asyncio.wait_for``. Any backend failure, including a timeout or
a failed service account token refresh, surfaces as DirectoryUnavailableError.
"User not found" is an expected branch of get-or-create, not a failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import firebase_admin
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from google.auth.exceptions import GoogleAuthError

from ..auth.models import DirectoryUser, UserProfile
from ..core.exceptions import DirectoryUnavailableError
from ..core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _to_directory_user(record: auth.UserRecord) -> DirectoryUser:
    return DirectoryUser(
        uid=record.uid,
        email=record.email,
        display_name=record.display_name,
        photo_url=record.photo_url,
    )


class IdentityDirectory:
    """Get-or-create and custom-token minting against one Firebase app."""

    def __init__(self, app: firebase_admin.App, timeout_seconds: float = 10.0) -> None:
        self._app = app
        self._timeout = timeout_seconds

    async def _call(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, app=self._app, **kwargs),
                timeout=self._timeout,
            )
        except TimeoutError:
            raise DirectoryUnavailableError(operation, "timeout") from None
        except GoogleAuthError as e:
            # Service account token refresh (revoked key, token endpoint unreachable)
            # is not wrapped by Firebase Admin
            raise DirectoryUnavailableError(operation, f"credential error: {type(e).__name__}") from e

    async def get_or_create(self, profile: UserProfile) -> DirectoryUser:
        """Return the directory user for ``profile.email``, creating it if absent.

        Idempotent: repeated calls for the same email return the same uid,
        including when a concurrent request creates the user first.

        Raises:
            DirectoryUnavailableError: On any backend error other than "not found".
        """
        try:
            try:
                record = await self._call("lookup", auth.get_user_by_email, profile.email)
                logger.debug("Directory user found", extra={"uid": record.uid})
                return _to_directory_user(record)
            except auth.UserNotFoundError:
                pass

            try:
                record = await self._call(
                    "create",
                    auth.create_user,
                    email=profile.email,
                    email_verified=True,
                    display_name=profile.display_name,
                    photo_url=profile.picture_url,
                )
                logger.info("Directory user created", extra={"uid": record.uid})
                return _to_directory_user(record)
            except auth.EmailAlreadyExistsError:
                # Lost a race with a concurrent callback for the same email
                record = await self._call("lookup", auth.get_user_by_email, profile.email)
                return _to_directory_user(record)

        except FirebaseError as e:
            raise DirectoryUnavailableError("get_or_create", f"{type(e).__name__}: {e.code}") from e
        except ValueError as e:
            # Firebase Admin rejects malformed arguments (e.g. an invalid photo URL) with ValueError
            raise DirectoryUnavailableError("get_or_create", f"rejected input: {e}") from e

    async def mint_custom_token(self, uid: str) -> str:
        """Mint a Firebase custom token for ``uid``.

        Raises:
            DirectoryUnavailableError: If signing fails or times out.
        """
        try:
            token = await self._call("mint", auth.create_custom_token, uid)
        except FirebaseError as e:
            raise DirectoryUnavailableError("mint", f"{type(e).__name__}: {e.code}") from e
        except ValueError as e:
            raise DirectoryUnavailableError("mint", f"rejected input: {e}") from e
        return token.decode("utf-8") if isinstance(token, bytes) else str(token)
