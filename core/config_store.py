"""
Per-user blocklist/whitelist configuration.

The config store is where a user's default lists live. New sessions copy
them; while a session is active, every update is pushed into that
session's snapshot through the registered listeners.
"""

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple

import config
from core.models import UserRecord, utcnow
from core.store import InMemoryStore, UserLocks
from screen.blocklist import (
    Blocklist,
    Whitelist,
    EMPTY_BLOCKLIST,
    EMPTY_WHITELIST,
    ensure_self_whitelisted,
)

logger = logging.getLogger(__name__)

ConfigListener = Callable[[str, Blocklist, Whitelist], None]


class ConfigStore:
    """
    Reads and updates each user's default lists.

    Unknown users read as empty lists ("not yet configured") rather
    than raising.
    """

    def __init__(
        self,
        users: Optional[InMemoryStore] = None,
        locks: Optional[UserLocks] = None,
        clock: Callable = utcnow,
    ) -> None:
        self._users = users if users is not None else InMemoryStore()
        self._locks = locks or UserLocks()
        self._clock = clock
        self._listeners: List[ConfigListener] = []

    def subscribe(self, listener: ConfigListener) -> None:
        """Register a callback run after every update, under the user lock."""
        self._listeners.append(listener)

    def ensure_user(self, user_id: str, email: str = "") -> UserRecord:
        """
        Create the user record with default lists if it does not exist.

        Idempotent: an existing record is returned untouched.
        """
        with self._locks.for_user(user_id):
            user = self._users.get(user_id)
            if user is not None:
                return user

            user = UserRecord(
                id=user_id,
                email=email,
                blocklist=Blocklist(
                    apps=tuple(config.DEFAULT_BLOCKED_PACKAGES),
                    sites=tuple(config.DEFAULT_BLOCKED_WEBSITES),
                    keywords=tuple(config.DEFAULT_BLOCKED_KEYWORDS),
                ),
                whitelist=Whitelist(
                    apps=ensure_self_whitelisted(config.DEFAULT_WHITELISTED_PACKAGES),
                    sites=tuple(config.DEFAULT_WHITELISTED_WEBSITES),
                ),
                created_at=self._clock(),
            )
            self._users.upsert(user_id, user)
            logger.info(f"New user configured: {email or user_id}")
            return user

    def get(self, user_id: str) -> Tuple[Blocklist, Whitelist]:
        """
        Get a user's current lists.

        Returns:
            (blocklist, whitelist); empty lists for unknown users.
        """
        user = self._users.get(user_id)
        if user is None:
            return EMPTY_BLOCKLIST, EMPTY_WHITELIST
        return user.blocklist, user.whitelist

    def user_count(self) -> int:
        return len(self._users)

    def update(
        self,
        user_id: str,
        blocked_apps: Optional[Iterable[str]] = None,
        blocked_sites: Optional[Iterable[str]] = None,
        blocked_keywords: Optional[Iterable[str]] = None,
        whitelisted_apps: Optional[Iterable[str]] = None,
        whitelisted_sites: Optional[Iterable[str]] = None,
    ) -> Tuple[Blocklist, Whitelist]:
        """
        Replace the provided lists wholesale; omitted (None) lists are kept.

        The blocker's own identifier is always re-added to the whitelisted
        apps. The new lists are then pushed into the user's active session.

        Returns:
            The user's (blocklist, whitelist) after the update.
        """
        with self._locks.for_user(user_id):
            user = self._users.get(user_id)
            if user is None:
                user = UserRecord(id=user_id, created_at=self._clock())

            # Swap in a new record so unlocked readers never see half an update
            user = replace(
                user,
                blocklist=user.blocklist.replace(
                    apps=blocked_apps,
                    sites=blocked_sites,
                    keywords=blocked_keywords,
                ),
                whitelist=user.whitelist.replace(
                    apps=user.whitelist.apps if whitelisted_apps is None else whitelisted_apps,
                    sites=whitelisted_sites,
                ),
            )
            self._users.upsert(user_id, user)
            logger.info(f"Config updated for {user.email or user_id}")

            for listener in self._listeners:
                listener(user_id, user.blocklist, user.whitelist)

            return user.blocklist, user.whitelist
