"""
Focus session state machine.

Each user has at most one active session. Starting a new one ends the
previous one; sessions also end on explicit stop or when their deadline
passes. Expiry is applied lazily whenever a session is read, so there is
no background sweeper.

States: no session -> active -> ended.
"""

import logging
from datetime import timedelta
from typing import Callable, Dict, Iterable, List, Optional

from core.config_store import ConfigStore
from core.errors import Unauthorized, ValidationError
from core.models import AllDevices, Session, TargetDevices, utcnow
from core.store import InMemoryStore, UserLocks
from screen.blocklist import Blocklist, Whitelist

logger = logging.getLogger(__name__)


def _describe_target(target: TargetDevices) -> str:
    if isinstance(target, AllDevices):
        return "All Devices"
    return ", ".join(target.to_wire()) or "no devices"


class SessionManager:
    """
    Authoritative owner of every user's focus sessions.

    All mutations of one user's sessions run under that user's lock, which
    keeps "at most one active session" true under concurrent requests.
    Returned sessions are detached copies.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        sessions: Optional[InMemoryStore] = None,
        locks: Optional[UserLocks] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._config = config_store
        self._sessions = sessions if sessions is not None else InMemoryStore()
        self._locks = locks or UserLocks()
        self._clock = clock
        config_store.subscribe(self.sync_config)

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the user lock)
    # ------------------------------------------------------------------

    def _active_sessions(self, user_id: str, now) -> List[Session]:
        """Active sessions for a user, ending any whose deadline has passed."""
        active = []
        for session in self._sessions.values():
            if session.user_id != user_id or not session.active:
                continue
            if session.is_expired(now):
                self._expire(session)
                continue
            active.append(session)
        return active

    def _expire(self, session: Session) -> None:
        # Keep the deadline as the end time
        session.active = False
        self._sessions.upsert(session.id, session)
        logger.info(f"Session {session.id} expired")

    def _end(self, session: Session, now) -> None:
        session.end(now)
        self._sessions.upsert(session.id, session)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(
        self,
        user_id: str,
        target: Optional[TargetDevices] = None,
        blocked_apps: Optional[Iterable[str]] = None,
        blocked_sites: Optional[Iterable[str]] = None,
        blocked_keywords: Optional[Iterable[str]] = None,
        duration: Optional[float] = None,
    ) -> Session:
        """
        Start a new session, superseding any active one.

        Override lists replace the corresponding config list in the
        snapshot; lists not given come from the user's config. The
        whitelist always comes from config.

        Args:
            user_id: Session owner.
            target: Devices the session applies to (default: all).
            blocked_apps/blocked_sites/blocked_keywords: Optional overrides.
            duration: Length in seconds; None for an open-ended session.

        Raises:
            ValidationError: If duration is not a positive number.
        """
        if duration is not None:
            if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration <= 0:
                raise ValidationError("duration must be a positive number of seconds")

        with self._locks.for_user(user_id):
            now = self._clock()

            for previous in self._active_sessions(user_id, now):
                self._end(previous, now)
                logger.info(f"Session {previous.id} superseded")

            blocklist, whitelist = self._config.get(user_id)
            session = Session(
                user_id=user_id,
                started_at=now,
                target=target or AllDevices(),
                blocklist=blocklist.replace(
                    apps=blocked_apps,
                    sites=blocked_sites,
                    keywords=blocked_keywords,
                ),
                whitelist=whitelist,
                ends_at=now + timedelta(seconds=duration) if duration else None,
            )
            self._sessions.upsert(session.id, session)

        logger.info(f"Session started for {user_id} - Target: {_describe_target(session.target)}")
        return session.copy()

    def stop(self, user_id: str, session_id: Optional[str] = None) -> int:
        """
        End a session, or every active session of the user.

        Args:
            user_id: Caller.
            session_id: Specific session to end; None ends all active ones.

        Returns:
            Number of sessions ended (0 if there was nothing to stop).

        Raises:
            Unauthorized: If session_id belongs to another user.
        """
        with self._locks.for_user(user_id):
            now = self._clock()

            if session_id:
                session = self._sessions.get(session_id)
                if session is None:
                    return 0
                if session.user_id != user_id:
                    raise Unauthorized("Session belongs to another account")
                if not session.active:
                    return 0
                if session.is_expired(now):
                    self._expire(session)
                    return 0
                self._end(session, now)
                ended = 1
            else:
                active = self._active_sessions(user_id, now)
                for session in active:
                    self._end(session, now)
                ended = len(active)

        if ended:
            logger.info(f"Session stopped by {user_id}")
        return ended

    def get_active(self, user_id: str) -> Optional[Session]:
        """The user's active session regardless of device targeting."""
        with self._locks.for_user(user_id):
            active = self._active_sessions(user_id, self._clock())
            return active[0].copy() if active else None

    def get_active_for(self, user_id: str, device_id: Optional[str]) -> Optional[Session]:
        """
        The active session that applies to one device.

        A session targeting specific devices is invisible to every other
        device, exactly as if no session existed.
        """
        session = self.get_active(user_id)
        if session is None or not session.target.includes(device_id):
            return None
        return session

    def sync_config(self, user_id: str, blocklist: Blocklist, whitelist: Whitelist) -> None:
        """
        Overwrite the active session's snapshot with new lists.

        Only config updates call this; snapshots are never re-derived
        from config on their own.
        """
        with self._locks.for_user(user_id):
            for session in self._active_sessions(user_id, self._clock()):
                session.blocklist = blocklist
                session.whitelist = whitelist
                self._sessions.upsert(session.id, session)
                logger.info(f"Active session {session.id} updated with new blocklists")

    def toggle(self, user_id: str) -> Optional[Session]:
        """
        Stop the active session if there is one, else start an open-ended
        all-devices session.

        Returns:
            The new session, or None if a session was stopped.
        """
        with self._locks.for_user(user_id):
            if self.stop(user_id):
                return None
            return self.start(user_id)

    def history(self, user_id: str) -> List[Session]:
        """All of a user's sessions, newest first."""
        with self._locks.for_user(user_id):
            self._active_sessions(user_id, self._clock())
            sessions = [s.copy() for s in self._sessions.values() if s.user_id == user_id]
        return sorted(sessions, key=lambda s: s.started_at, reverse=True)

    def stats(self) -> Dict[str, int]:
        """Counts for the health endpoint."""
        now = self._clock()
        active = sum(
            1 for s in self._sessions.values()
            if s.active and not s.is_expired(now)
        )
        return {"sessions": len(self._sessions), "activeSessions": active}
