"""
Block/allow decisions for what is on screen.

decide() is a pure function of the observed foreground app, optional
site and content, and the cached session. Checks run in a fixed order:

    self-exclusion > session inactive > app whitelist > app blocklist
    > site check (browsers only) > keyword scan > allow

Whitelists are consulted before the matching blocklist, so a whitelist
hit always wins. Any unexpected error in the list checks yields Allow.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import config
from screen.content import Content, find_keyword
from screen.site_token import is_browser, registrable_name
from sync.cache import SessionCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of one check. `reason` and `matched` are set only when blocked."""
    blocked: bool
    reason: Optional[str] = None
    matched: Optional[str] = None

    def __bool__(self) -> bool:
        return self.blocked


ALLOW = Decision(blocked=False)


def is_self(identifier: Optional[str]) -> bool:
    """True if the identifier is the blocker application itself."""
    return bool(identifier) and identifier.strip().casefold() == config.SELF_APP_ID.casefold()


def _mutual_substring(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def site_whitelisted(token: str, whitelist_sites: Iterable[str]) -> Optional[str]:
    """Whitelist entry matching the token in either direction, if any."""
    for site in whitelist_sites:
        if _mutual_substring(token, site.casefold()):
            return site
    return None


def site_blocked(token: str, blocked_sites: Iterable[str]) -> Optional[str]:
    """
    Blocklist entry matching the token, if any.

    The token and entry may contain each other, or their site names
    (before the first dot) may be equal or contain each other, so
    "facebook.com" catches a title-derived "facebook" and the other way round.
    """
    token_name = registrable_name(token)
    for site in blocked_sites:
        site_lower = site.casefold()
        if _mutual_substring(token, site_lower):
            return site
        if _mutual_substring(token_name, registrable_name(site_lower)):
            return site
    return None


def _check_lists(
    identifier: str,
    cache: SessionCache,
    site: Optional[str],
    content: Content,
    browser: Optional[bool],
) -> Decision:
    app_id = identifier.strip()

    if cache.whitelist.has_app(app_id):
        logger.debug(f"Whitelisted app: {app_id} - allowing")
        return ALLOW
    if cache.blocklist.has_app(app_id):
        logger.info(f"Blocking app: {app_id}")
        return Decision(True, config.REASON_APP, app_id)

    if browser is None:
        browser = is_browser(app_id)
    if browser and site:
        token = site.strip().casefold()
        whitelisted = site_whitelisted(token, cache.whitelist.sites)
        if whitelisted:
            logger.debug(f"Whitelisted website: {token} ({whitelisted}) - allowing")
            return ALLOW
        blocked = site_blocked(token, cache.blocklist.sites)
        if blocked:
            logger.info(f"Blocked website detected: {token} ({blocked})")
            return Decision(True, config.REASON_SITE, blocked)

    if cache.blocklist.keywords:
        keyword = find_keyword(content, cache.blocklist.keywords)
        if keyword:
            logger.info(f"Blocked keyword detected in {app_id}: {keyword}")
            return Decision(True, config.REASON_CONTENT, keyword)

    return ALLOW


def decide(
    identifier: Optional[str],
    cache: SessionCache,
    site: Optional[str] = None,
    content: Content = None,
    browser: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> Decision:
    """
    Decide whether to intervene for the current foreground app.

    Args:
        identifier: Foreground app id (package name or process name).
        cache: The device's current session cache.
        site: Site token for the page shown, when the app is a browser.
        content: Visible text to scan for keywords (ContentNode tree,
                 string, or list of strings).
        browser: Override browser detection; None detects from identifier.
        now: Clock override for deadline checks.

    Returns:
        Decision; ALLOW unless a block rule matched.
    """
    # The blocker never blocks itself, whatever the session says
    if is_self(identifier):
        return ALLOW
    if cache is None or not cache.is_active(now):
        return ALLOW
    if not identifier:
        return ALLOW

    try:
        return _check_lists(identifier, cache, site, content, browser)
    except Exception as e:
        logger.error(f"Matching failed for {identifier!r}, allowing: {e}")
        return ALLOW
