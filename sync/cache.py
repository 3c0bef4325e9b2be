"""
Device-side cache of the session that applies to this device.

SessionCache is immutable and CacheHolder swaps whole instances, so a
content scan running alongside the poller always sees one consistent
snapshot (never a new blocklist paired with an old whitelist).
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from core.models import from_iso, utcnow
from screen.blocklist import Blocklist, Whitelist, EMPTY_BLOCKLIST, EMPTY_WHITELIST

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionCache:
    """Snapshot of the server's answer to "which session applies to me?"."""

    active: bool = False
    session_id: Optional[str] = None
    blocklist: Blocklist = EMPTY_BLOCKLIST
    whitelist: Whitelist = EMPTY_WHITELIST
    ends_at: Optional[datetime] = None
    fetched_at: Optional[datetime] = None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """
        Whether blocking applies right now.

        A cached session past its deadline counts as inactive even if the
        server has not been reachable since.
        """
        if not self.active:
            return False
        if self.ends_at is None:
            return True
        return (now or utcnow()) < self.ends_at

    @classmethod
    def from_session_payload(cls, payload: Optional[Dict[str, Any]], fetched_at: Optional[datetime] = None) -> 'SessionCache':
        """
        Build a cache from the "session" field of GET /sessions/active.

        None (no applicable session) yields an inactive cache.

        Raises:
            ValueError/TypeError: If the payload is malformed.
        """
        fetched_at = fetched_at or utcnow()
        if not payload:
            return cls(fetched_at=fetched_at)
        if not isinstance(payload, dict):
            raise TypeError(f"session payload must be an object, got {type(payload).__name__}")

        return cls(
            active=bool(payload.get("isActive", True)),
            session_id=payload.get("id"),
            blocklist=Blocklist(
                apps=tuple(payload.get("blockedPackages") or ()),
                sites=tuple(payload.get("blockedWebsites") or ()),
                keywords=tuple(payload.get("blockedKeywords") or ()),
            ),
            whitelist=Whitelist(
                apps=tuple(payload.get("whitelistedPackages") or ()),
                sites=tuple(payload.get("whitelistedWebsites") or ()),
            ),
            ends_at=from_iso(payload.get("endTime")),
            fetched_at=fetched_at,
        )


INACTIVE = SessionCache()


class CacheHolder:
    """
    Holds the current SessionCache.

    Readers take a reference with current(); writers replace it whole.
    """

    def __init__(self, initial: SessionCache = INACTIVE) -> None:
        self._cache = initial
        self._lock = threading.Lock()

    def current(self) -> SessionCache:
        return self._cache

    def replace(self, cache: SessionCache) -> SessionCache:
        """Swap in a new cache. Returns the previous one."""
        with self._lock:
            previous = self._cache
            self._cache = cache
        if previous.active != cache.active or previous.session_id != cache.session_id:
            state = "ACTIVE" if cache.active else "INACTIVE"
            logger.info(f"Session state changed: {state} ({cache.session_id or 'no session'})")
        return previous

    def clear(self) -> None:
        """Drop back to an inactive, empty cache."""
        self.replace(INACTIVE)
