"""
DeviceAgent: the device-side entry point.

Ties the API client, the session poller and the matching engine together.
OS integrations call evaluate() for each foreground change and act on the
returned Decision; UIs call the session/config helpers.

Callbacks:
    on_block(decision: Decision, identifier: str)
"""

import logging
import sys
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from core.errors import TransportFailure, Unauthorized
from screen.content import Content
from screen.matcher import ALLOW, Decision, decide
from screen.site_token import WindowInfo
from sync.api_client import FocusApiClient
from sync.cache import CacheHolder, SessionCache
from sync.device_identity import default_device_kind, default_device_name, load_or_create_device_id
from sync.poller import SessionPoller

logger = logging.getLogger(__name__)


class DeviceAgent:
    """
    Runs the blocker on one device.

    Handles:
    - Login/logout (token swap, device registration, poller lifecycle)
    - Per-event block/allow decisions against the cached session
    - Session and config requests on behalf of the UI
    """

    def __init__(
        self,
        client: Optional[FocusApiClient] = None,
        device_id: Optional[str] = None,
        device_name: Optional[str] = None,
        device_kind: Optional[str] = None,
        poller: Optional[SessionPoller] = None,
    ) -> None:
        self.client = client or FocusApiClient()
        self.device_id = device_id or load_or_create_device_id()
        self.device_name = device_name or default_device_name()
        self.device_kind = device_kind or default_device_kind()
        self.holder = poller.holder if poller else CacheHolder()
        self.poller = poller or SessionPoller(self.client, self.device_id, holder=self.holder)

        self.on_block: Optional[Callable[[Decision, str], None]] = None

    # ------------------------------------------------------------------
    # Login lifecycle
    # ------------------------------------------------------------------

    def login(self, token: str) -> bool:
        """
        Adopt a bearer token, register this device and start polling.

        Registration failures are logged but do not stop polling; the
        server accepts polls from unregistered devices.

        Returns:
            True if the device was registered.
        """
        self.client.set_token(token)
        registered = self.register_device()
        self.poller.start()
        return registered

    def logout(self) -> None:
        """Stop polling and drop the cached session before returning."""
        self.poller.stop(clear=True)
        self.client.set_token("")
        logger.info("Logged out and cleared session cache")

    def register_device(self) -> bool:
        """Register (or refresh) this device with the user's account."""
        try:
            self.client.register_device(
                self.device_id,
                self.device_name,
                self.device_kind,
                sys.platform,
            )
            logger.info(f"Device registered: {self.device_name} ({self.device_kind})")
            return True
        except (TransportFailure, Unauthorized) as e:
            logger.warning(f"Device registration failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    @property
    def cache(self) -> SessionCache:
        return self.holder.current()

    def evaluate(
        self,
        identifier: Optional[str],
        site: Optional[str] = None,
        content: Content = None,
        browser: Optional[bool] = None,
    ) -> Decision:
        """
        Decide for one foreground event using the current cache.

        Args:
            identifier: Foreground app id or process name.
            site: Site token if the app is a browser.
            content: Visible text to scan for keywords.
            browser: Override browser detection.
        """
        decision = decide(identifier, self.holder.current(), site=site, content=content, browser=browser)
        if decision.blocked:
            self._notify_block(decision, identifier or "")
        return decision

    def evaluate_window(self, window: Optional[WindowInfo], content: Content = None) -> Decision:
        """evaluate() for a desktop window report (title/URL heuristics)."""
        if window is None:
            return ALLOW
        return self.evaluate(
            window.app_name,
            site=window.site_token if window.is_browser else None,
            content=content,
            browser=window.is_browser,
        )

    def _notify_block(self, decision: Decision, identifier: str) -> None:
        if self.on_block:
            try:
                self.on_block(decision, identifier)
            except Exception as e:
                logger.debug(f"on_block callback error: {e}")

    # ------------------------------------------------------------------
    # Session and config requests
    # ------------------------------------------------------------------

    def start_session(
        self,
        target_devices: Union[str, Iterable[str]] = "all",
        blocked_websites: Optional[Iterable[str]] = None,
        blocked_packages: Optional[Iterable[str]] = None,
        blocked_keywords: Optional[Iterable[str]] = None,
        duration: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Start a session, then refresh the local cache right away."""
        session = self.client.start_session(
            target_devices,
            blocked_websites=blocked_websites,
            blocked_packages=blocked_packages,
            blocked_keywords=blocked_keywords,
            duration=duration,
        )
        self.poller.poll_once()
        return session

    def stop_session(self, session_id: Optional[str] = None) -> bool:
        stopped = self.client.stop_session(session_id)
        self.poller.poll_once()
        return stopped

    def update_config(self, **lists: Iterable[str]) -> Dict[str, Any]:
        result = self.client.update_config(**lists)
        self.poller.poll_once()
        return result

    def get_config(self) -> Dict[str, Any]:
        return self.client.get_config()

    def list_devices(self) -> List[Dict[str, Any]]:
        return self.client.list_devices()
