"""Short-lived store for authorization state nonces.

Nonces are recorded when an authorization URL is generated, together with the
redirect URI the URL was built for, and consumed at most once by the matching
callback. Entries expire after the configured TTL. Process-local: with several
replicas behind a load balancer, enforcement requires sticky routing between
init and callback. The store is capped at ``max_entries``; when full, the
oldest nonce is evicted so unauthenticated init traffic cannot grow it without
bound.
"""

import time
from dataclasses import dataclass

from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class IssuedState:
    """A nonce handed out by the authorization URL generator."""

    redirect_uri: str
    issued_at: float


class StateStore:
    """In-memory TTL store of issued state nonces."""

    def __init__(self, ttl_seconds: int = 600, cleanup_interval: float = 60.0, max_entries: int = 10_000) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._cleanup_interval = cleanup_interval
        self._issued: dict[str, IssuedState] = {}
        self._last_cleanup = time.monotonic()

    def issue(self, state: str, redirect_uri: str) -> None:
        """Record a freshly generated nonce."""
        now = time.monotonic()
        if now - self._last_cleanup > self._cleanup_interval:
            self._cleanup_expired_entries(now)
        if len(self._issued) >= self._max_entries:
            self._cleanup_expired_entries(now)
        # Insertion order is issue order, so the head of the dict is the oldest nonce
        while len(self._issued) >= self._max_entries:
            self._issued.pop(next(iter(self._issued)))
            logger.warning("Authorization state store full; evicted oldest nonce")
        self._issued[state] = IssuedState(redirect_uri=redirect_uri, issued_at=now)

    def consume(self, state: str | None) -> IssuedState | None:
        """Remove the nonce; return it only if it was issued and is still fresh."""
        if not state:
            return None
        entry = self._issued.pop(state, None)
        if entry is None:
            return None
        if time.monotonic() - entry.issued_at >= self._ttl:
            return None
        return entry

    def _cleanup_expired_entries(self, now: float) -> None:
        expired = [key for key, entry in self._issued.items() if now - entry.issued_at >= self._ttl]
        for key in expired:
            del self._issued[key]
        self._last_cleanup = now
        if expired:
            logger.debug("Pruned expired authorization states", extra={"pruned": len(expired)})

    def __len__(self) -> int:
        return len(self._issued)
