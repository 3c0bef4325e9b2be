"""
Sync package: device-side session synchronisation.

Provides the HTTP client for the FocusSync server and the session cache
that the matching engine reads.
"""

from sync.api_client import FocusApiClient
from sync.cache import CacheHolder, SessionCache

__all__ = ["FocusApiClient", "CacheHolder", "SessionCache"]
