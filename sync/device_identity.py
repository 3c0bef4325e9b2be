"""Stable per-installation device identity."""

import logging
import platform
import sys
import uuid
from pathlib import Path
from typing import Optional

import config

logger = logging.getLogger(__name__)


def load_or_create_device_id(path: Optional[Path] = None) -> str:
    """
    Read this device's id from disk, generating and saving one on first use.

    If the file cannot be written the generated id is still returned; it
    just will not survive a restart.

    Args:
        path: Id file location (defaults to config.DEVICE_ID_FILE).

    Returns:
        Device id string.
    """
    path = Path(path or config.DEVICE_ID_FILE)

    try:
        if path.exists():
            stored = path.read_text().strip()
            if stored:
                return stored
    except OSError as e:
        logger.warning(f"Could not read device id from {path}: {e}")

    device_id = str(uuid.uuid4())
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(device_id)
        logger.info(f"Generated new device id {device_id}")
    except OSError as e:
        logger.warning(f"Could not persist device id to {path}: {e}")
    return device_id


def default_device_name() -> str:
    return platform.node() or "Unknown Device"


def default_device_kind() -> str:
    """Android/iOS builds report mobile; everything else is a desktop."""
    if hasattr(sys, "getandroidapilevel") or sys.platform in ("ios", "android"):
        return config.DEVICE_MOBILE
    return config.DEVICE_DESKTOP
