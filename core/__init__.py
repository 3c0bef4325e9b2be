"""
Core server-side state for FocusSync.

Contains the config store, device registry and session state machine.
Zero HTTP dependencies; the Flask app in server/ wraps these.
"""

from core.config_store import ConfigStore
from core.devices import DeviceRegistry
from core.sessions import SessionManager

__all__ = ["ConfigStore", "DeviceRegistry", "SessionManager"]
