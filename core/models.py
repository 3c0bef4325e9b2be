"""
Records held by the server: users, devices and focus sessions.

All timestamps are timezone-aware UTC datetimes; they travel over the
wire as ISO-8601 strings.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from core.errors import ValidationError
from screen.blocklist import Blocklist, Whitelist, EMPTY_BLOCKLIST, EMPTY_WHITELIST


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp, accepting a trailing "Z".

    Naive timestamps are assumed to be UTC.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ----------------------------------------------------------------------
# Target devices
# ----------------------------------------------------------------------

ALL_DEVICES_SENTINEL = "all"


@dataclass(frozen=True)
class AllDevices:
    """Session applies to every device of the user."""

    def includes(self, device_id: Optional[str]) -> bool:
        return True

    def to_wire(self) -> str:
        return ALL_DEVICES_SENTINEL


@dataclass(frozen=True)
class SpecificDevices:
    """Session applies only to the listed device ids."""

    device_ids: FrozenSet[str] = frozenset()

    def includes(self, device_id: Optional[str]) -> bool:
        return bool(device_id) and device_id in self.device_ids

    def to_wire(self) -> list:
        return sorted(self.device_ids)


TargetDevices = Union[AllDevices, SpecificDevices]


def parse_target_devices(value: Any) -> TargetDevices:
    """
    Parse the wire form of targetDevices.

    Accepts "all" (any case), None (defaults to all devices) or a list of
    device id strings.

    Raises:
        ValidationError: For any other shape.
    """
    if value is None:
        return AllDevices()
    if isinstance(value, str):
        if value.strip().lower() == ALL_DEVICES_SENTINEL:
            return AllDevices()
        raise ValidationError(f"targetDevices must be 'all' or a list of device ids, got {value!r}")
    if isinstance(value, (list, tuple, set, frozenset)):
        ids = set()
        for item in value:
            if not isinstance(item, str) or not item.strip():
                raise ValidationError("targetDevices entries must be non-empty strings")
            ids.add(item.strip())
        return SpecificDevices(frozenset(ids))
    raise ValidationError(f"targetDevices must be 'all' or a list of device ids, got {type(value).__name__}")


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

@dataclass
class UserRecord:
    """A user's default lists, fed into new sessions."""

    id: str
    email: str = ""
    blocklist: Blocklist = EMPTY_BLOCKLIST
    whitelist: Whitelist = EMPTY_WHITELIST
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "blocklists": self.blocklist.to_dict(),
            "whitelists": self.whitelist.to_dict(),
            "createdAt": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserRecord':
        return cls(
            id=data["id"],
            email=data.get("email", ""),
            blocklist=Blocklist.from_dict(data.get("blocklists")),
            whitelist=Whitelist.from_dict(data.get("whitelists")),
            created_at=from_iso(data.get("createdAt")) or utcnow(),
        )


# ----------------------------------------------------------------------
# Devices
# ----------------------------------------------------------------------

@dataclass
class Device:
    """A device registered to one user."""

    id: str
    user_id: str
    name: str
    kind: str
    platform: str = "unknown"
    online: bool = True
    last_seen: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "type": self.kind,
            "platform": self.platform,
            "isOnline": self.online,
            "lastSeen": to_iso(self.last_seen),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Device':
        return cls(
            id=data["id"],
            user_id=data["userId"],
            name=data.get("name", ""),
            kind=data.get("type", ""),
            platform=data.get("platform", "unknown"),
            online=bool(data.get("isOnline", False)),
            last_seen=from_iso(data.get("lastSeen")) or utcnow(),
        )


# ----------------------------------------------------------------------
# Sessions
# ----------------------------------------------------------------------

@dataclass
class Session:
    """
    One focus session.

    `blocklist` and `whitelist` are the session's own snapshot. They are
    captured at start and only change through an explicit config sync.
    """

    user_id: str
    started_at: datetime
    target: TargetDevices = field(default_factory=AllDevices)
    blocklist: Blocklist = EMPTY_BLOCKLIST
    whitelist: Whitelist = EMPTY_WHITELIST
    ends_at: Optional[datetime] = None
    active: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_expired(self, now: datetime) -> bool:
        return self.ends_at is not None and self.ends_at <= now

    def end(self, now: datetime) -> None:
        """Mark the session ended at `now`."""
        self.active = False
        self.ends_at = now

    def copy(self) -> 'Session':
        """Detached copy, safe to hand to callers outside the user lock."""
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "isActive": self.active,
            "startTime": to_iso(self.started_at),
            "endTime": to_iso(self.ends_at),
            "targetDevices": self.target.to_wire(),
            "blockedWebsites": list(self.blocklist.sites),
            "blockedPackages": list(self.blocklist.apps),
            "blockedKeywords": list(self.blocklist.keywords),
            "whitelistedWebsites": list(self.whitelist.sites),
            "whitelistedPackages": list(self.whitelist.apps),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        return cls(
            id=data["id"],
            user_id=data["userId"],
            active=bool(data.get("isActive", False)),
            started_at=from_iso(data.get("startTime")) or utcnow(),
            ends_at=from_iso(data.get("endTime")),
            target=parse_target_devices(data.get("targetDevices")),
            blocklist=Blocklist(
                apps=tuple(data.get("blockedPackages") or ()),
                sites=tuple(data.get("blockedWebsites") or ()),
                keywords=tuple(data.get("blockedKeywords") or ()),
            ),
            whitelist=Whitelist(
                apps=tuple(data.get("whitelistedPackages") or ()),
                sites=tuple(data.get("whitelistedWebsites") or ()),
            ),
        )


def string_list(value: Any, field_name: str) -> Optional[Iterable[str]]:
    """
    Validate an optional list-of-strings request field.

    Returns None when the field is absent so callers can tell
    "not provided" from "provided and empty".

    Raises:
        ValidationError: If the value is not a list of strings.
    """
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be a list of strings")
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{field_name} must be a list of strings")
    return list(value)
