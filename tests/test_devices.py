"""
Tests for core/devices.py - registration, heartbeats and ownership.
"""

import sys
import threading
import time
import unittest
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.devices import DeviceRegistry, normalize_kind
from core.errors import Unauthorized, ValidationError
from core.store import InMemoryStore

logger = logging.getLogger(__name__)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class SlowStore(InMemoryStore):
    """Store whose reads stall, widening any check-then-write window."""

    def get(self, key):
        time.sleep(0.05)
        return super().get(key)


class TestNormalizeKind(unittest.TestCase):

    def test_aliases(self):
        """Platform names map onto the two device kinds."""
        self.assertEqual(normalize_kind("Android"), "mobile")
        self.assertEqual(normalize_kind("ios"), "mobile")
        self.assertEqual(normalize_kind("laptop"), "desktop")
        self.assertEqual(normalize_kind(" desktop "), "desktop")

    def test_unknown_rejected(self):
        for kind in (None, "", "toaster"):
            with self.assertRaises(ValidationError):
                normalize_kind(kind)


class TestDeviceRegistry(unittest.TestCase):
    """Device upserts and listing."""

    def setUp(self):
        self.clock = FakeClock()
        self.registry = DeviceRegistry(clock=self.clock, allow_transfer=False, offline_after=120)

    def test_register_is_idempotent(self):
        """Registering the same id twice refreshes instead of duplicating."""
        self.registry.register("u1", "D1", "Pixel", "android", "android 14")
        self.clock.advance(5)
        device = self.registry.register("u1", "D1", "Pixel 8", "mobile")

        devices = self.registry.list("u1")
        self.assertEqual(len(devices), 1)
        self.assertEqual(devices[0].name, "Pixel 8")
        self.assertEqual(device.last_seen, self.clock.now)
        self.assertEqual(device.platform, "unknown")
        self.assertTrue(device.online)

    def test_register_requires_fields(self):
        with self.assertRaises(ValidationError):
            self.registry.register("u1", "", "Pixel", "mobile")
        with self.assertRaises(ValidationError):
            self.registry.register("u1", "D1", "", "mobile")
        self.assertEqual(self.registry.count(), 0)

    def test_register_other_users_device_rejected(self):
        """A device id owned by one user cannot be taken by another."""
        self.registry.register("u1", "D1", "Pixel", "mobile")
        with self.assertRaises(Unauthorized):
            self.registry.register("u2", "D1", "Stolen", "mobile")
        self.assertEqual(self.registry.get("D1").user_id, "u1")

    def test_concurrent_claims_of_new_device(self):
        """Two users racing to register one new id: exactly one wins."""
        registry = DeviceRegistry(SlowStore(), clock=self.clock, allow_transfer=False)
        results = {}

        def claim(user_id):
            try:
                registry.register(user_id, "dev-1", "Pixel", "mobile")
                results[user_id] = "ok"
            except Unauthorized:
                results[user_id] = "rejected"

        threads = [threading.Thread(target=claim, args=(user,)) for user in ("A", "B")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sorted(results.values()), ["ok", "rejected"])
        winner = next(user for user, outcome in results.items() if outcome == "ok")
        self.assertEqual(registry.get("dev-1").user_id, winner)

    def test_transfer_allowed(self):
        """With transfers enabled the last registration wins."""
        registry = DeviceRegistry(clock=self.clock, allow_transfer=True)
        registry.register("u1", "D1", "Pixel", "mobile")
        registry.register("u2", "D1", "Pixel", "mobile")
        self.assertEqual(registry.get("D1").user_id, "u2")
        self.assertEqual(registry.list("u1"), [])

    def test_list_scoped_to_user(self):
        self.registry.register("u1", "D1", "Pixel", "mobile")
        self.registry.register("u2", "D2", "Mac", "desktop")
        self.assertEqual([d.id for d in self.registry.list("u1")], ["D1"])

    def test_heartbeat(self):
        """Heartbeat refreshes last-seen; unknown ids are a no-op."""
        self.registry.register("u1", "D1", "Pixel", "mobile")
        self.clock.advance(60)
        device = self.registry.heartbeat("u1", "D1")
        self.assertEqual(device.last_seen, self.clock.now)
        self.assertIsNone(self.registry.heartbeat("u1", "unknown"))

    def test_heartbeat_other_user(self):
        self.registry.register("u1", "D1", "Pixel", "mobile")
        with self.assertRaises(Unauthorized):
            self.registry.heartbeat("u2", "D1")

    def test_silent_device_listed_offline(self):
        """Devices silent past the cutoff are reported offline."""
        self.registry.register("u1", "D1", "Pixel", "mobile")
        self.clock.advance(121)
        self.assertFalse(self.registry.list("u1")[0].online)

        self.registry.heartbeat("u1", "D1")
        self.assertTrue(self.registry.list("u1")[0].online)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    unittest.main()
