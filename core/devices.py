"""Registry of the devices each user runs the blocker on."""

import logging
import threading
from dataclasses import replace
from datetime import timedelta
from typing import Callable, List, Optional

import config
from core.errors import Unauthorized, ValidationError
from core.models import Device, utcnow
from core.store import InMemoryStore

logger = logging.getLogger(__name__)


def normalize_kind(kind: Optional[str]) -> str:
    """
    Map a client-reported device type onto "mobile" or "desktop".

    Raises:
        ValidationError: For missing or unknown kinds.
    """
    if not kind or not isinstance(kind, str):
        raise ValidationError("deviceType is required")
    normalized = config.DEVICE_KIND_ALIASES.get(kind.strip().lower())
    if normalized is None:
        raise ValidationError(f"Unknown deviceType: {kind!r}")
    return normalized


class DeviceRegistry:
    """
    Tracks devices and their online/last-seen status.

    A device id belongs to one user at a time. Registering or heartbeating
    another user's device is rejected unless config.ALLOW_DEVICE_TRANSFER is
    set, in which case registration moves the device to the caller.
    """

    def __init__(
        self,
        devices: Optional[InMemoryStore] = None,
        clock: Callable = utcnow,
        allow_transfer: Optional[bool] = None,
        offline_after: Optional[float] = None,
    ) -> None:
        self._devices = devices if devices is not None else InMemoryStore()
        self._clock = clock
        self.allow_transfer = config.ALLOW_DEVICE_TRANSFER if allow_transfer is None else allow_transfer
        self.offline_after = config.DEVICE_OFFLINE_AFTER if offline_after is None else offline_after
        # Held across each ownership check and the write that follows it
        self._lock = threading.Lock()

    def register(
        self,
        user_id: str,
        device_id: str,
        name: str,
        kind: str,
        platform: Optional[str] = None,
    ) -> Device:
        """
        Create or refresh a device (upsert by id).

        Calling this repeatedly with the same id only refreshes the
        metadata and timestamps.

        Raises:
            ValidationError: If device_id, name or kind is missing.
            Unauthorized: If the id belongs to another user and transfers
                are not allowed.
        """
        if not device_id or not isinstance(device_id, str):
            raise ValidationError("deviceId is required")
        if not name or not isinstance(name, str):
            raise ValidationError("deviceName is required")
        kind = normalize_kind(kind)

        with self._lock:
            existing = self._devices.get(device_id)
            if existing is not None and existing.user_id != user_id:
                if not self.allow_transfer:
                    logger.warning(f"Rejected registration of device {device_id} owned by another user")
                    raise Unauthorized("Device is registered to another account")
                logger.info(f"Device {device_id} moved to user {user_id}")

            device = Device(
                id=device_id,
                user_id=user_id,
                name=name.strip(),
                kind=kind,
                platform=(platform or "unknown").strip() or "unknown",
                online=True,
                last_seen=self._clock(),
            )
            self._devices.upsert(device_id, device)
        logger.info(f"Device registered: {device.name} ({device.kind})")
        return device

    def heartbeat(self, user_id: str, device_id: str) -> Optional[Device]:
        """
        Refresh a device's last-seen time.

        Returns:
            The updated device, or None if the id is unknown (no-op).

        Raises:
            Unauthorized: If the device belongs to another user.
        """
        if not device_id:
            raise ValidationError("deviceId is required")

        with self._lock:
            existing = self._devices.get(device_id)
            if existing is None:
                return None
            if existing.user_id != user_id:
                raise Unauthorized("Device is registered to another account")

            device = replace(existing, online=True, last_seen=self._clock())
            self._devices.upsert(device_id, device)
        return device

    def list(self, user_id: str) -> List[Device]:
        """
        All devices owned by a user.

        Devices silent for longer than `offline_after` are reported offline.
        """
        cutoff = self._clock() - timedelta(seconds=self.offline_after)
        devices = []
        for device in self._devices.values():
            if device.user_id != user_id:
                continue
            if device.online and device.last_seen < cutoff:
                device = replace(device, online=False)
            devices.append(device)
        return devices

    def get(self, device_id: str) -> Optional[Device]:
        return self._devices.get(device_id)

    def count(self) -> int:
        return len(self._devices)
