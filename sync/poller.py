"""
Background session polling for one device.

Every POLL_INTERVAL seconds the poller asks the server which session
applies to this device and swaps the result into the CacheHolder.

Cache policy:
- success            -> cache replaced (no session -> inactive)
- TransportFailure   -> previous cache kept, so a flaky network does
                        not release blocks
- Unauthorized       -> cache cleared (credential no longer valid)
- no success for CACHE_STALE_SECONDS -> cache cleared
"""

import logging
import threading
import time
from typing import Callable, Optional

import config
from core.errors import TransportFailure, Unauthorized, ValidationError
from sync.api_client import FocusApiClient
from sync.cache import CacheHolder, SessionCache

logger = logging.getLogger(__name__)


class SessionPoller:
    """
    Periodic task bound to a device login.

    start() launches a daemon thread; stop() ends it and, by default,
    clears the cache before returning so a logged-out device never keeps
    blocking from a stale session.

    Callbacks:
        on_change(cache: SessionCache)  after every successful poll
    """

    def __init__(
        self,
        client: FocusApiClient,
        device_id: str,
        holder: Optional[CacheHolder] = None,
        interval: Optional[float] = None,
        stale_after: Optional[float] = None,
        heartbeat_interval: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.device_id = device_id
        self.holder = holder or CacheHolder()
        self.interval = interval or config.POLL_INTERVAL
        self.stale_after = stale_after or config.CACHE_STALE_SECONDS
        self.heartbeat_interval = heartbeat_interval or config.HEARTBEAT_INTERVAL
        self._monotonic = monotonic

        self.should_stop: threading.Event = threading.Event()
        self.poll_thread: Optional[threading.Thread] = None
        self.last_success: Optional[float] = None
        self._last_heartbeat: Optional[float] = None
        self._started_at: Optional[float] = None
        self.consecutive_failures = 0

        self.on_change: Optional[Callable[[SessionCache], None]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.poll_thread is not None and self.poll_thread.is_alive()

    def start(self) -> None:
        """Start polling in the background. No-op if already running."""
        if self.is_running:
            return
        self.should_stop.clear()
        self._started_at = self._monotonic()
        self.poll_thread = threading.Thread(target=self._poll_loop, name="session-poller", daemon=True)
        self.poll_thread.start()
        logger.info(f"Session polling started (every {self.interval}s)")

    def stop(self, clear: bool = True) -> None:
        """
        Stop issuing polls.

        Args:
            clear: Reset the cache to inactive before returning.
        """
        self.should_stop.set()
        if clear:
            self.holder.clear()

        if self.poll_thread and self.poll_thread.is_alive() and self.poll_thread is not threading.current_thread():
            self.poll_thread.join(timeout=self.client.timeout + 1.0)
            if self.poll_thread.is_alive():
                logger.warning("Poll thread did not stop within timeout")
        self.poll_thread = None

        # A poll that was in flight may have swapped a cache in after the first clear
        if clear:
            self.holder.clear()
        logger.info("Session polling stopped")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def poll_once(self) -> bool:
        """
        Run one poll and apply the cache policy.

        Returns:
            True if the server answered and the cache was replaced.
        """
        now = self._monotonic()

        if not self.client.is_authenticated():
            # Not logged in - no blocking
            self.holder.clear()
            return False

        try:
            payload = self.client.get_active_session(self.device_id)
            cache = SessionCache.from_session_payload(payload)
        except Unauthorized as e:
            logger.warning(f"Session poll rejected, clearing cache: {e}")
            self.holder.clear()
            self.consecutive_failures += 1
            return False
        except (TransportFailure, ValidationError, ValueError, TypeError) as e:
            self.consecutive_failures += 1
            logger.debug(f"Session poll failed ({self.consecutive_failures} in a row): {e}")
            self._expire_if_stale(now)
            return False

        if self.should_stop.is_set():
            # Logged out while the request was in flight
            return False

        self.holder.replace(cache)
        self.last_success = now
        self.consecutive_failures = 0
        self._notify_change(cache)
        return True

    def _expire_if_stale(self, now: float) -> None:
        """Drop the cache once polls have failed for longer than stale_after."""
        reference = self.last_success if self.last_success is not None else self._started_at
        if reference is None:
            reference = now
            self._started_at = now
        if now - reference < self.stale_after:
            return
        if self.holder.current().active:
            logger.warning(
                f"No successful session poll for {now - reference:.0f}s - releasing cached session"
            )
        self.holder.clear()

    def _maybe_heartbeat(self, now: float) -> None:
        if self._last_heartbeat is not None and now - self._last_heartbeat < self.heartbeat_interval:
            return
        self._last_heartbeat = now
        try:
            self.client.heartbeat(self.device_id)
        except (TransportFailure, Unauthorized, ValidationError) as e:
            logger.debug(f"Heartbeat failed (non-critical): {e}")

    def _poll_loop(self) -> None:
        logger.info("Session poll loop starting...")
        while not self.should_stop.is_set():
            try:
                self.poll_once()
                if self.client.is_authenticated():
                    self._maybe_heartbeat(self._monotonic())
            except Exception as e:
                # Keep polling; the cache policy above already covers known failures
                logger.error(f"Session poll loop error: {e}")
            self.should_stop.wait(self.interval)
        logger.info("Session poll loop exited")

    def _notify_change(self, cache: SessionCache) -> None:
        if self.on_change:
            try:
                self.on_change(cache)
            except Exception as e:
                logger.debug(f"on_change callback error: {e}")
