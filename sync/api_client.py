"""
HTTP client for the FocusSync server.

Every call has a bounded timeout. Failures are mapped onto core.errors so
callers can apply one policy per error kind:

- TransportFailure: network error, timeout, 5xx, or a non-JSON body
- Unauthorized:     401/403 (bad credential or someone else's device)
- ValidationError:  400
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import requests

import config
from core.errors import TransportFailure, Unauthorized, ValidationError

logger = logging.getLogger(__name__)


class FocusApiClient:
    """
    Thin wrapper over the JSON API, one instance per device.

    The bearer token can be swapped at runtime (login/logout) with
    set_token().
    """

    def __init__(
        self,
        base_url: str = "",
        token: str = "",
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        """
        Args:
            base_url: Server URL (falls back to config.API_URL).
            token: Bearer token (falls back to config.API_TOKEN).
            timeout: Per-request timeout in seconds (falls back to config.POLL_TIMEOUT).
            http: Optional pre-built requests.Session.
        """
        self.base_url = (base_url or config.API_URL).rstrip("/")
        self.timeout = timeout or config.POLL_TIMEOUT
        self._http = http or requests.Session()
        self._token = ""
        self.set_token(token or config.API_TOKEN)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def set_token(self, token: str) -> None:
        self._token = token or ""
        if self._token:
            self._http.headers["Authorization"] = f"Bearer {self._token}"
        else:
            self._http.headers.pop("Authorization", None)

    def is_authenticated(self) -> bool:
        return bool(self._token)

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportFailure(f"{method} {path} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransportFailure(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise TransportFailure(f"{method} {path} returned invalid JSON ({response.status_code})") from e
        if not isinstance(body, dict):
            raise TransportFailure(f"{method} {path} returned unexpected JSON ({response.status_code})")

        error = body.get("error") or f"HTTP {response.status_code}"
        if response.status_code in (401, 403):
            raise Unauthorized(error)
        if response.status_code == 400:
            raise ValidationError(error)
        if response.status_code >= 400:
            raise TransportFailure(f"{method} {path}: {error}")
        return body

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def register_device(self, device_id: str, name: str, kind: str, platform: str) -> Dict[str, Any]:
        body = self._request("POST", "/devices/register", payload={
            "deviceId": device_id,
            "deviceName": name,
            "deviceType": kind,
            "platform": platform,
        })
        return body.get("device") or {}

    def heartbeat(self, device_id: str) -> None:
        self._request("POST", "/devices/heartbeat", payload={"deviceId": device_id})

    def list_devices(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/devices").get("devices") or []

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_active_session(self, device_id: str) -> Optional[Dict[str, Any]]:
        """
        Session that applies to this device, or None.

        Raises:
            TransportFailure: If the server could not be reached.
        """
        return self._request("GET", "/sessions/active", params={"deviceId": device_id}).get("session")

    def start_session(
        self,
        target_devices: Union[str, Iterable[str]] = "all",
        blocked_websites: Optional[Iterable[str]] = None,
        blocked_packages: Optional[Iterable[str]] = None,
        blocked_keywords: Optional[Iterable[str]] = None,
        duration: Optional[float] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "targetDevices": target_devices if isinstance(target_devices, str) else list(target_devices),
        }
        if blocked_websites is not None:
            payload["blockedWebsites"] = list(blocked_websites)
        if blocked_packages is not None:
            payload["blockedPackages"] = list(blocked_packages)
        if blocked_keywords is not None:
            payload["blockedKeywords"] = list(blocked_keywords)
        if duration is not None:
            payload["duration"] = duration
        return self._request("POST", "/sessions/start", payload=payload).get("session") or {}

    def stop_session(self, session_id: Optional[str] = None) -> bool:
        payload = {"sessionId": session_id} if session_id else {}
        return bool(self._request("POST", "/sessions/stop", payload=payload).get("success"))

    def list_sessions(self) -> List[Dict[str, Any]]:
        """Session history of the caller, newest first."""
        return self._request("GET", "/sessions").get("sessions") or []

    def toggle_session(self) -> Optional[Dict[str, Any]]:
        return self._request("POST", "/sessions/toggle").get("session")

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def get_config(self) -> Dict[str, Any]:
        body = self._request("GET", "/config")
        return {"blocklists": body.get("blocklists", {}), "whitelists": body.get("whitelists", {})}

    def update_config(self, **lists: Iterable[str]) -> Dict[str, Any]:
        """
        Replace config lists. Keyword names follow the wire format:
        blockedWebsites, blockedPackages, blockedKeywords,
        whitelistedWebsites, whitelistedPackages.
        """
        payload = {key: list(value) for key, value in lists.items() if value is not None}
        body = self._request("POST", "/config", payload=payload)
        return {"blocklists": body.get("blocklists", {}), "whitelists": body.get("whitelists", {})}
