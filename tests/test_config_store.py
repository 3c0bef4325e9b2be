"""
Tests for core/config_store.py and the blocklist value types.
"""

import sys
import unittest
import logging
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from core.config_store import ConfigStore
from screen.blocklist import Blocklist, Whitelist, ensure_self_whitelisted, normalize_entries

logger = logging.getLogger(__name__)


class TestNormalizeEntries(unittest.TestCase):
    """List cleaning rules."""

    def test_strips_and_dedupes(self):
        """Whitespace is stripped, blanks dropped, case-insensitive duplicates removed."""
        result = normalize_entries(["  Facebook.com ", "facebook.COM", "", "   ", "reddit.com"])
        self.assertEqual(result, ("Facebook.com", "reddit.com"))

    def test_non_strings_dropped(self):
        self.assertEqual(normalize_entries(["a", 3, None, "b"]), ("a", "b"))

    def test_none(self):
        self.assertEqual(normalize_entries(None), ())


class TestListTypes(unittest.TestCase):
    """Blocklist/Whitelist behaviour."""

    def test_has_app_ignores_case(self):
        blocklist = Blocklist(apps=("com.Instagram.android",))
        self.assertTrue(blocklist.has_app("com.instagram.ANDROID"))
        self.assertFalse(blocklist.has_app("com.instagram"))

    def test_replace_keeps_unspecified(self):
        """None fields are left alone; given fields replace wholesale."""
        blocklist = Blocklist(apps=("a",), sites=("s",), keywords=("k",))
        updated = blocklist.replace(sites=["x", "y"])
        self.assertEqual(updated.apps, ("a",))
        self.assertEqual(updated.sites, ("x", "y"))
        self.assertEqual(updated.keywords, ("k",))
        self.assertEqual(blocklist.sites, ("s",))

    def test_whitelist_keeps_self(self):
        """Replacing whitelisted apps always keeps the blocker itself."""
        whitelist = Whitelist().replace(apps=[])
        self.assertEqual(whitelist.apps, (config.SELF_APP_ID,))

        again = ensure_self_whitelisted([config.SELF_APP_ID.upper()])
        self.assertEqual(len(again), 1)

    def test_wire_names(self):
        data = Blocklist(apps=("p",), sites=("w",), keywords=("k",)).to_dict()
        self.assertEqual(data, {"websites": ["w"], "packages": ["p"], "keywords": ["k"]})
        self.assertEqual(Blocklist.from_dict(data).apps, ("p",))


class TestConfigStore(unittest.TestCase):
    """Per-user config reads and updates."""

    def test_unknown_user_reads_empty(self):
        """A user never seen before has empty lists, not an error."""
        store = ConfigStore()
        blocklist, whitelist = store.get("ghost")
        self.assertEqual(blocklist.sites, ())
        self.assertEqual(whitelist.apps, ())
        self.assertEqual(store.user_count(), 0)

    def test_ensure_user_seeds_defaults(self):
        """First contact seeds the default lists; later calls change nothing."""
        store = ConfigStore()
        store.ensure_user("u1", "u1@example.com")
        blocklist, whitelist = store.get("u1")
        self.assertEqual(list(blocklist.sites), config.DEFAULT_BLOCKED_WEBSITES)
        self.assertEqual(list(blocklist.keywords), config.DEFAULT_BLOCKED_KEYWORDS)
        self.assertIn(config.SELF_APP_ID, whitelist.apps)

        store.update("u1", blocked_sites=["only.com"])
        store.ensure_user("u1", "u1@example.com")
        self.assertEqual(store.get("u1")[0].sites, ("only.com",))
        self.assertEqual(store.user_count(), 1)

    def test_update_replaces_only_given_lists(self):
        """Omitted lists are untouched; given lists are replaced wholesale."""
        store = ConfigStore()
        store.update("u1", blocked_sites=["a.com"], blocked_keywords=["poker"])
        blocklist, _ = store.update("u1", blocked_sites=["b.com", "B.com"])
        self.assertEqual(blocklist.sites, ("b.com",))
        self.assertEqual(blocklist.keywords, ("poker",))

    def test_update_cannot_remove_self(self):
        """Clearing whitelisted apps still leaves the blocker whitelisted."""
        store = ConfigStore()
        _, whitelist = store.update("u1", whitelisted_apps=[])
        self.assertEqual(whitelist.apps, (config.SELF_APP_ID,))

    def test_first_update_whitelists_self(self):
        """A user first created by an update still has the blocker whitelisted."""
        store = ConfigStore()
        _, whitelist = store.update("new-user", blocked_sites=["reddit.com"])
        self.assertIn(config.SELF_APP_ID, whitelist.apps)
        self.assertIn(config.SELF_APP_ID, store.get("new-user")[1].apps)

    def test_update_without_apps_keeps_self(self):
        """Updates that omit whitelisted apps keep the blocker whitelisted."""
        store = ConfigStore()
        store.update("u1", whitelisted_apps=["com.notes"])
        _, whitelist = store.update("u1", whitelisted_sites=["docs.io"])
        self.assertEqual(whitelist.apps, ("com.notes", config.SELF_APP_ID))

    def test_listeners_notified(self):
        """Subscribers receive the user id and new lists after each update."""
        store = ConfigStore()
        seen = []
        store.subscribe(lambda user_id, blocklist, whitelist: seen.append((user_id, blocklist.sites)))
        store.update("u1", blocked_sites=["x.com"])
        self.assertEqual(seen, [("u1", ("x.com",))])


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    unittest.main()
