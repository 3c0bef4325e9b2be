"""
Server package - HTTP API over the core services.
"""

from server.app import FocusServices, build_services, create_app

__all__ = ["FocusServices", "build_services", "create_app"]
