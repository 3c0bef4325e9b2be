"""
Tests for sync/agent.py and sync/device_identity.py.
"""

import sys
import tempfile
import unittest
import logging
from pathlib import Path
from unittest.mock import MagicMock

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from core.errors import TransportFailure
from screen.site_token import WindowInfo
from sync.agent import DeviceAgent
from sync.cache import SessionCache
from sync.device_identity import load_or_create_device_id
from screen.blocklist import Blocklist

logger = logging.getLogger(__name__)


def make_agent():
    client = MagicMock()
    poller = MagicMock()
    poller.holder = MagicMock()
    poller.holder.current.return_value = SessionCache(
        active=True,
        session_id="s1",
        blocklist=Blocklist(apps=("com.game",), sites=("youtube.com",)),
    )
    agent = DeviceAgent(client=client, device_id="D1", device_name="Pixel", device_kind="mobile", poller=poller)
    return agent, client, poller


class TestDeviceAgent(unittest.TestCase):
    """Login lifecycle and decisions."""

    def test_login_registers_and_starts(self):
        agent, client, poller = make_agent()
        self.assertTrue(agent.login("tok"))
        client.set_token.assert_called_once_with("tok")
        client.register_device.assert_called_once_with("D1", "Pixel", "mobile", sys.platform)
        poller.start.assert_called_once()

    def test_login_survives_registration_failure(self):
        """Polling starts even when registration fails."""
        agent, client, poller = make_agent()
        client.register_device.side_effect = TransportFailure("offline")
        self.assertFalse(agent.login("tok"))
        poller.start.assert_called_once()

    def test_logout_clears(self):
        agent, client, poller = make_agent()
        agent.logout()
        poller.stop.assert_called_once_with(clear=True)
        client.set_token.assert_called_with("")

    def test_evaluate_blocks_and_notifies(self):
        agent, _, _ = make_agent()
        blocked = []
        agent.on_block = lambda decision, identifier: blocked.append(identifier)

        self.assertTrue(agent.evaluate("com.game").blocked)
        self.assertFalse(agent.evaluate("com.notes").blocked)
        self.assertEqual(blocked, ["com.game"])

    def test_callback_errors_swallowed(self):
        agent, _, _ = make_agent()
        agent.on_block = MagicMock(side_effect=RuntimeError("ui gone"))
        self.assertTrue(agent.evaluate("com.game").blocked)

    def test_evaluate_window(self):
        """Desktop window reports go through title heuristics."""
        agent, _, _ = make_agent()
        window = WindowInfo(app_name="Google Chrome", window_title="YouTube - Google Chrome")
        self.assertTrue(agent.evaluate_window(window).blocked)
        self.assertFalse(agent.evaluate_window(None).blocked)

    def test_session_requests_refresh_cache(self):
        agent, client, poller = make_agent()
        client.start_session.return_value = {"id": "s2"}
        self.assertEqual(agent.start_session(["D1"], duration=60), {"id": "s2"})
        client.stop_session.return_value = True
        self.assertTrue(agent.stop_session())
        self.assertEqual(poller.poll_once.call_count, 2)


class TestDeviceIdentity(unittest.TestCase):

    def test_id_persisted(self):
        """The generated id is reused on the next load."""
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "device_id"
            first = load_or_create_device_id(path)
            self.assertTrue(path.exists())
            self.assertEqual(load_or_create_device_id(path), first)

    def test_kind_is_known(self):
        from sync.device_identity import default_device_kind
        self.assertIn(default_device_kind(), (config.DEVICE_MOBILE, config.DEVICE_DESKTOP))


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    unittest.main()
