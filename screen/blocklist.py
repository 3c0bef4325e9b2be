"""
Blocklist and whitelist value types.

Each list groups the three things a focus session can restrict:
app identifiers, site/domain strings and free-text keywords. Entries are
deduplicated case-insensitively and membership tests ignore case.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple

import config

logger = logging.getLogger(__name__)


def normalize_entries(values: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    """
    Clean a user-supplied list of patterns.

    Strips whitespace, drops blanks and non-strings, and removes
    case-insensitive duplicates (first spelling wins).

    Args:
        values: Raw entries (may be None).

    Returns:
        Tuple of cleaned entries in their original order.
    """
    if not values:
        return ()

    seen = set()
    cleaned = []
    for value in values:
        if not isinstance(value, str):
            logger.debug(f"Ignoring non-string list entry: {value!r}")
            continue
        value = value.strip()
        if not value:
            continue
        key = value.casefold()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(value)
    return tuple(cleaned)


def _folded(values: Iterable[str]) -> frozenset:
    return frozenset(v.casefold() for v in values)


@dataclass(frozen=True)
class Blocklist:
    """
    Apps, sites and keywords to block during a session.

    Immutable: updates build a new instance with replace(), so a session
    snapshot can never be mutated through a shared reference.
    """

    apps: Tuple[str, ...] = ()
    sites: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    _apps_folded: frozenset = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "apps", normalize_entries(self.apps))
        object.__setattr__(self, "sites", normalize_entries(self.sites))
        object.__setattr__(self, "keywords", normalize_entries(self.keywords))
        object.__setattr__(self, "_apps_folded", _folded(self.apps))

    def has_app(self, app_id: str) -> bool:
        """Exact, case-insensitive app identifier membership."""
        return app_id.casefold() in self._apps_folded

    def replace(
        self,
        apps: Optional[Iterable[str]] = None,
        sites: Optional[Iterable[str]] = None,
        keywords: Optional[Iterable[str]] = None,
    ) -> 'Blocklist':
        """
        Return a copy with the given fields replaced wholesale.

        Fields passed as None are kept unchanged.
        """
        return Blocklist(
            apps=self.apps if apps is None else tuple(apps),
            sites=self.sites if sites is None else tuple(sites),
            keywords=self.keywords if keywords is None else tuple(keywords),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation: {"websites", "packages", "keywords"}."""
        return {
            "websites": list(self.sites),
            "packages": list(self.apps),
            "keywords": list(self.keywords),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Blocklist':
        data = data or {}
        return cls(
            apps=tuple(data.get("packages") or ()),
            sites=tuple(data.get("websites") or ()),
            keywords=tuple(data.get("keywords") or ()),
        )


@dataclass(frozen=True)
class Whitelist:
    """
    Apps and sites that are never blocked.

    The blocker's own identifier is always part of `apps`; it is re-inserted
    whenever the apps set is written, so it cannot be removed.
    """

    apps: Tuple[str, ...] = ()
    sites: Tuple[str, ...] = ()
    _apps_folded: frozenset = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "apps", normalize_entries(self.apps))
        object.__setattr__(self, "sites", normalize_entries(self.sites))
        object.__setattr__(self, "_apps_folded", _folded(self.apps))

    def has_app(self, app_id: str) -> bool:
        """Exact, case-insensitive app identifier membership."""
        return app_id.casefold() in self._apps_folded

    def replace(
        self,
        apps: Optional[Iterable[str]] = None,
        sites: Optional[Iterable[str]] = None,
    ) -> 'Whitelist':
        """
        Return a copy with the given fields replaced wholesale.

        Replacing `apps` always keeps the blocker's own identifier.
        """
        if apps is not None:
            apps = ensure_self_whitelisted(apps)
        return Whitelist(
            apps=self.apps if apps is None else apps,
            sites=self.sites if sites is None else tuple(sites),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation: {"websites", "packages"}."""
        return {
            "websites": list(self.sites),
            "packages": list(self.apps),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Whitelist':
        data = data or {}
        return cls(
            apps=tuple(data.get("packages") or ()),
            sites=tuple(data.get("websites") or ()),
        )


def ensure_self_whitelisted(apps: Iterable[str]) -> Tuple[str, ...]:
    """
    Add the blocker's own identifier to an apps list if it is missing.

    Args:
        apps: App identifiers about to be stored as a whitelist.

    Returns:
        Normalised tuple that contains config.SELF_APP_ID.
    """
    cleaned = normalize_entries(apps)
    if config.SELF_APP_ID.casefold() not in _folded(cleaned):
        cleaned = cleaned + (config.SELF_APP_ID,)
    return cleaned


EMPTY_BLOCKLIST = Blocklist()
EMPTY_WHITELIST = Whitelist()
