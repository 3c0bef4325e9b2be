"""
Browser recognition and best-effort site extraction.

The OS integration hands over whatever it can see about the foreground
window: an app identifier, sometimes a URL bar value, usually a window
title. These helpers turn that into the single lowercase site token the
matcher compares against site lists.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import config

logger = logging.getLogger(__name__)

# "facebook.com", "news.ycombinator.com", "bbc.co.uk"
_DOMAIN_RE = re.compile(r"([a-z0-9-]+\.[a-z]{2,}(?:\.[a-z]{2,})?)", re.IGNORECASE)
# "Facebook - Google Chrome", "Instagram | Profile - Firefox"
_SITE_NAME_RE = re.compile(r"^([a-zA-Z0-9]+)(?:\s*[-|])")
_FIRST_WORD_RE = re.compile(r"^([a-zA-Z0-9]+)")

# Leading host labels that say nothing about which site this is
_HOST_PREFIXES = ("www.", "m.", "mobile.", "web.")


@dataclass
class WindowInfo:
    """What the OS integration reports about the foreground window."""
    app_name: str
    window_title: str = ""
    url: Optional[str] = None  # Only populated when a URL field was readable

    @property
    def is_browser(self) -> bool:
        return is_browser(self.app_name)

    @property
    def site_token(self) -> Optional[str]:
        return extract_site_token(url=self.url, title=self.window_title)


def is_browser(app_id: Optional[str]) -> bool:
    """
    Check whether an app identifier or process name is a web browser.

    Android package names must match exactly; desktop process names match
    on a browser name substring ("Google Chrome", "firefox.exe").
    """
    if not app_id:
        return False
    lowered = app_id.strip().lower()
    if lowered in config.BROWSER_PACKAGES:
        return True
    return any(name in lowered for name in config.BROWSER_NAMES)


def _is_browser_word(word: str) -> bool:
    return word in config.BROWSER_NAMES


def _host_from_url(url: str) -> Optional[str]:
    """Host part of a URL-bar value, which may lack a scheme."""
    candidate = url.strip()
    if not candidate:
        return None
    if "://" not in candidate:
        candidate = f"http://{candidate}"
    try:
        host = urlparse(candidate).hostname
    except ValueError as e:
        logger.debug(f"Could not parse URL {url[:50]!r}: {e}")
        return None
    return host.lower() if host else None


def extract_site_token(url: Optional[str] = None, title: Optional[str] = None) -> Optional[str]:
    """
    Derive a lowercase site token from a URL or a window title.

    The URL host wins when available. Titles are tried in order:
    1. the first "name.tld" looking token ("twitter.com - Brave")
    2. the site name before a dash or pipe ("Facebook - Google Chrome")
    3. the first word

    Browser names and words of two characters or fewer are never returned
    from title heuristics.

    Args:
        url: URL field contents, if the integration could read one.
        title: Foreground window title.

    Returns:
        Site token, or None if nothing usable was found.
    """
    if url:
        host = _host_from_url(url)
        if host:
            return host

    if not title:
        return None
    title = title.strip()

    domain_match = _DOMAIN_RE.search(title)
    if domain_match:
        return domain_match.group(1).lower()

    for pattern in (_SITE_NAME_RE, _FIRST_WORD_RE):
        match = pattern.match(title)
        if match:
            word = match.group(1).strip().lower()
            if not _is_browser_word(word) and len(word) > 2:
                return word

    return None


def registrable_name(site: str) -> str:
    """
    Site name before the first dot, skipping generic host prefixes.

    "facebook.com" -> "facebook", "www.reddit.com" -> "reddit",
    "facebook" -> "facebook".
    """
    clean = site.strip().lower()
    for prefix in ("https://", "http://", "://"):
        if clean.startswith(prefix):
            clean = clean[len(prefix):]
    for prefix in _HOST_PREFIXES:
        if clean.startswith(prefix) and clean.count(".") > 1:
            clean = clean[len(prefix):]
            break
    return clean.split("/")[0].split(".")[0]
