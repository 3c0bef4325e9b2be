"""
Tests for the matching engine: screen/matcher.py, screen/site_token.py
and screen/content.py.
"""

import sys
import unittest
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from screen.blocklist import Blocklist, Whitelist
from screen.content import ContentNode, find_keyword, iter_text_fields
from screen.matcher import ALLOW, decide, is_self, site_blocked
from screen.site_token import WindowInfo, extract_site_token, is_browser, registrable_name
from sync.cache import INACTIVE, SessionCache

logger = logging.getLogger(__name__)


def active_cache(apps=(), sites=(), keywords=(), white_apps=(), white_sites=(), ends_at=None):
    return SessionCache(
        active=True,
        session_id="s1",
        blocklist=Blocklist(apps=apps, sites=sites, keywords=keywords),
        whitelist=Whitelist(apps=white_apps, sites=white_sites),
        ends_at=ends_at,
    )


class TestDecideOrder(unittest.TestCase):
    """Precedence of the checks in decide()."""

    def test_self_never_blocked(self):
        """The blocker itself is allowed even if it appears in every list."""
        cache = active_cache(apps=(config.SELF_APP_ID,), keywords=("focus",))
        self.assertTrue(is_self(config.SELF_APP_ID.upper()))
        self.assertEqual(decide(config.SELF_APP_ID, cache, content="focus"), ALLOW)

    def test_inactive_session_allows(self):
        self.assertFalse(decide("com.instagram.android", INACTIVE).blocked)
        self.assertFalse(decide("com.instagram.android", None).blocked)

    def test_expired_cache_allows(self):
        """A cached session past its deadline no longer blocks."""
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        cache = active_cache(apps=("com.game",), ends_at=now)
        self.assertFalse(decide("com.game", cache, now=now).blocked)
        self.assertTrue(decide("com.game", cache, now=now - timedelta(seconds=1)).blocked)

    def test_app_blocked(self):
        decision = decide("com.instagram.android", active_cache(apps=("com.instagram.android",)))
        self.assertTrue(decision)
        self.assertEqual(decision.reason, config.REASON_APP)
        self.assertEqual(decision.matched, "com.instagram.android")

    def test_app_whitelist_beats_blocklist(self):
        """An app on both lists is allowed."""
        cache = active_cache(apps=("com.slack",), white_apps=("com.slack",))
        self.assertFalse(decide("com.slack", cache).blocked)

    def test_whitelisted_app_skips_content_scan(self):
        cache = active_cache(keywords=("casino",), white_apps=("com.notes",))
        self.assertFalse(decide("com.notes", cache, content="casino night").blocked)

    def test_empty_identifier_allows(self):
        self.assertFalse(decide("", active_cache(keywords=("x",)), content="x").blocked)


class TestSiteMatching(unittest.TestCase):
    """Site checks for browsers."""

    def test_facebook_in_chrome(self):
        """A blocked domain matches a title-derived site token."""
        cache = active_cache(sites=("facebook.com",))
        decision = decide("com.android.chrome", cache, site="facebook")
        self.assertTrue(decision)
        self.assertEqual(decision.reason, config.REASON_SITE)
        self.assertEqual(decision.matched, "facebook.com")

    def test_subdomain_matches(self):
        cache = active_cache(sites=("reddit.com",))
        self.assertTrue(decide("Google Chrome", cache, site="www.reddit.com"))
        self.assertTrue(decide("firefox", cache, site="old.reddit.com"))

    def test_site_whitelist_wins(self):
        cache = active_cache(sites=("google.com",), white_sites=("docs.google.com",))
        self.assertFalse(decide("com.android.chrome", cache, site="docs.google.com").blocked)

    def test_non_browser_skips_site_check(self):
        """Site lists only apply to browsers."""
        cache = active_cache(sites=("facebook.com",))
        self.assertFalse(decide("com.notes", cache, site="facebook.com").blocked)
        self.assertTrue(decide("com.notes", cache, site="facebook.com", browser=True).blocked)

    def test_unrelated_site_allowed(self):
        cache = active_cache(sites=("facebook.com",))
        self.assertFalse(decide("com.android.chrome", cache, site="wikipedia.org").blocked)

    def test_site_blocked_helper(self):
        self.assertEqual(site_blocked("instagram", ["Instagram.com"]), "Instagram.com")
        self.assertIsNone(site_blocked("github.com", ["facebook.com"]))


class TestKeywordScan(unittest.TestCase):
    """Content scans."""

    def test_keyword_in_tree(self):
        """Keywords are found in nested node text and descriptions."""
        tree = ContentNode(children=[
            ContentNode(text="Welcome"),
            ContentNode(children=[ContentNode(description="Online CASINO bonus")]),
        ])
        decision = decide("com.reader", active_cache(keywords=("casino",)), content=tree)
        self.assertTrue(decision)
        self.assertEqual(decision.reason, config.REASON_CONTENT)
        self.assertEqual(decision.matched, "casino")

    def test_no_keyword(self):
        decision = decide("com.reader", active_cache(keywords=("casino",)), content=["news", "weather"])
        self.assertFalse(decision.blocked)

    def test_site_checked_before_content(self):
        cache = active_cache(sites=("facebook.com",), keywords=("casino",))
        decision = decide("com.android.chrome", cache, site="facebook.com", content="casino")
        self.assertEqual(decision.reason, config.REASON_SITE)

    def test_iter_text_fields_order(self):
        tree = ContentNode(text="a", children=[ContentNode(text="b"), ContentNode(text="c")])
        self.assertEqual(list(iter_text_fields(tree)), ["a", "b", "c"])

    def test_find_keyword_skips_blank_keywords(self):
        self.assertEqual(find_keyword("play poker now", ["", "poker"]), "poker")
        self.assertIsNone(find_keyword("anything", []))


class TestMatcherErrors(unittest.TestCase):

    def test_internal_error_allows(self):
        """An unexpected error during matching yields Allow."""
        cache = active_cache(keywords=("x",))
        with patch("screen.matcher.find_keyword", side_effect=RuntimeError("boom")):
            self.assertEqual(decide("com.reader", cache, content="x"), ALLOW)


class TestSiteToken(unittest.TestCase):
    """Browser detection and site token extraction."""

    def test_is_browser(self):
        self.assertTrue(is_browser("com.android.chrome"))
        self.assertTrue(is_browser("Google Chrome"))
        self.assertTrue(is_browser("firefox.exe"))
        self.assertFalse(is_browser("com.whatsapp"))
        self.assertFalse(is_browser(None))

    def test_url_host_wins(self):
        self.assertEqual(
            extract_site_token(url="https://www.YouTube.com/watch?v=1", title="Music - Chrome"),
            "www.youtube.com",
        )
        self.assertEqual(extract_site_token(url="reddit.com/r/python"), "reddit.com")

    def test_title_heuristics(self):
        self.assertEqual(extract_site_token(title="twitter.com - Brave"), "twitter.com")
        self.assertEqual(extract_site_token(title="Facebook - Google Chrome"), "facebook")
        self.assertEqual(extract_site_token(title="Instagram | Profile"), "instagram")

    def test_title_rejects_browser_and_short_words(self):
        self.assertIsNone(extract_site_token(title="Chrome"))
        self.assertIsNone(extract_site_token(title="ok"))
        self.assertIsNone(extract_site_token())

    def test_registrable_name(self):
        self.assertEqual(registrable_name("facebook.com"), "facebook")
        self.assertEqual(registrable_name("https://www.reddit.com/r/x"), "reddit")
        self.assertEqual(registrable_name("facebook"), "facebook")
        self.assertEqual(registrable_name("www.com"), "www")

    def test_window_info(self):
        window = WindowInfo(app_name="Safari", window_title="YouTube - Safari")
        self.assertTrue(window.is_browser)
        self.assertEqual(window.site_token, "youtube")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    unittest.main()
