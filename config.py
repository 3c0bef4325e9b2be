"""Configuration settings for FocusSync."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (device id, store snapshots).

    For development: BASE_DIR/data
    For bundled apps: a dedicated folder in the user's home directory
                      so data survives reinstalls.

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("FOCUS_DATA_DIR")
    if override:
        return Path(override)

    if not is_bundled():
        return Path(__file__).parent / "data"

    if sys.platform == 'darwin':
        # macOS: ~/Library/Application Support/FocusSync
        return Path.home() / "Library" / "Application Support" / "FocusSync"
    if sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / "FocusSync"
        return Path.home() / "AppData" / "Roaming" / "FocusSync"
    # Linux: ~/.local/share/FocusSync
    return Path.home() / ".local" / "share" / "FocusSync"


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment ("true", "1", "yes")."""
    value = os.getenv(env_var)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


def _get_float(env_var: str, default: float) -> float:
    """
    Read a positive number from the environment.

    Malformed or non-positive values fall back to the default.
    """
    raw = os.getenv(env_var)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        import logging
        logging.getLogger(__name__).warning(
            f"{env_var}={raw!r} is not a number, using {default}"
        )
        return default
    return value if value > 0 else default


def _get_list(env_var: str, default: list) -> list:
    """Read a comma-separated list from the environment."""
    raw = os.getenv(env_var)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# Load environment variables from .env file (only in development)
if not is_bundled():
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)

# User data directory (device id, optional store file)
USER_DATA_DIR = get_user_data_dir()

# Identifier of the blocker application itself. Never blocked, always whitelisted.
SELF_APP_ID = os.getenv("SELF_APP_ID", "com.focusapp.blocker")

# --- Server ---
SERVER_HOST = os.getenv("FOCUS_SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("FOCUS_SERVER_PORT", "3000"))

# Directory for the JSON files persisting server state. Empty = in-memory only.
STORE_PATH = os.getenv("FOCUS_STORE_PATH", "")

# Bearer tokens accepted by the default resolver: "token:user_id[:email],..."
API_TOKENS = os.getenv("FOCUS_API_TOKENS", "")

# Let a device id move to a new account on re-registration (last one wins).
# Off by default: registering someone else's device is rejected.
ALLOW_DEVICE_TRANSFER = _get_bool("ALLOW_DEVICE_TRANSFER", False)

# Devices not heard from within this many seconds are listed as offline
DEVICE_OFFLINE_AFTER = _get_float("DEVICE_OFFLINE_AFTER", 120)

# Lists seeded into a user's config the first time they are seen
DEFAULT_BLOCKED_WEBSITES = _get_list(
    "DEFAULT_BLOCKED_WEBSITES", ["facebook.com", "instagram.com", "twitter.com"]
)
DEFAULT_BLOCKED_PACKAGES = _get_list(
    "DEFAULT_BLOCKED_PACKAGES", ["com.instagram.android", "com.facebook.katana"]
)
DEFAULT_BLOCKED_KEYWORDS = _get_list("DEFAULT_BLOCKED_KEYWORDS", ["gambling", "casino"])
DEFAULT_WHITELISTED_WEBSITES = _get_list("DEFAULT_WHITELISTED_WEBSITES", ["localhost", "10.0.2.2"])
DEFAULT_WHITELISTED_PACKAGES = _get_list(
    "DEFAULT_WHITELISTED_PACKAGES", [SELF_APP_ID, "com.android.settings"]
)

# --- Device client ---
API_URL = os.getenv("FOCUS_API_URL", "http://127.0.0.1:3000")
API_TOKEN = os.getenv("FOCUS_API_TOKEN", "")

POLL_INTERVAL = _get_float("POLL_INTERVAL", 3)  # Seconds between session polls
POLL_TIMEOUT = _get_float("POLL_TIMEOUT", 5)  # Per-request timeout (seconds)
HEARTBEAT_INTERVAL = _get_float("HEARTBEAT_INTERVAL", 30)

# With no successful poll for this long, the cached session is dropped.
# Short outages keep the previous state so blocks are not released spuriously.
CACHE_STALE_SECONDS = _get_float("CACHE_STALE_SECONDS", 300)

DEVICE_ID_FILE = USER_DATA_DIR / "device_id"

# Device kinds
DEVICE_MOBILE = "mobile"
DEVICE_DESKTOP = "desktop"
DEVICE_KIND_ALIASES = {
    "mobile": DEVICE_MOBILE,
    "android": DEVICE_MOBILE,
    "ios": DEVICE_MOBILE,
    "phone": DEVICE_MOBILE,
    "desktop": DEVICE_DESKTOP,
    "laptop": DEVICE_DESKTOP,
}

# Browsers: Android packages match exactly, desktop process names by substring
BROWSER_PACKAGES = {
    "com.android.chrome",
    "org.mozilla.firefox",
    "com.microsoft.emmx",
    "com.brave.browser",
    "com.opera.browser",
}
BROWSER_NAMES = ["chrome", "firefox", "safari", "edge", "brave", "opera", "vivaldi"]

# Decision reasons
REASON_APP = "app blocked"
REASON_SITE = "site blocked"
REASON_CONTENT = "content blocked"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
