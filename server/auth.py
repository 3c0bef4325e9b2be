"""
Bearer-token authentication for the API.

Token issuance lives elsewhere; this module only maps an opaque token to
the calling user. The default resolver reads a static token table from
config.API_TOKENS ("token:user_id[:email]", comma separated). Tests and
deployments can pass any callable with the same signature to create_app().
"""

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Dict, Optional

from flask import current_app, g, request

import config
from core.errors import InvalidCredential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """The authenticated user behind a request."""
    user_id: str
    email: str = ""


TokenResolver = Callable[[str], Optional[Caller]]


def parse_token_table(raw: str) -> Dict[str, Caller]:
    """
    Parse "token:user_id[:email],..." into a lookup table.

    Malformed entries are skipped with a warning.
    """
    table: Dict[str, Caller] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":", 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            logger.warning("Ignoring malformed API token entry")
            continue
        email = parts[2] if len(parts) > 2 else ""
        table[parts[0]] = Caller(user_id=parts[1], email=email)
    return table


class StaticTokenResolver:
    """Resolves tokens from a fixed table."""

    def __init__(self, table: Optional[Dict[str, Caller]] = None) -> None:
        self._table = table if table is not None else parse_token_table(config.API_TOKENS)
        if not self._table:
            logger.warning("No API tokens configured - every authenticated request will be rejected")

    def __call__(self, token: str) -> Optional[Caller]:
        return self._table.get(token)


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


def require_user(view: Callable) -> Callable:
    """
    Route decorator resolving the bearer token to g.caller.

    The first request of a user also seeds their default config.

    Raises:
        InvalidCredential: Missing or unknown token (mapped to HTTP 401).
    """
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise InvalidCredential("Missing bearer token")

        resolver: TokenResolver = current_app.config["TOKEN_RESOLVER"]
        caller = resolver(token)
        if caller is None:
            raise InvalidCredential("Invalid token")

        current_app.extensions["focus"].config_store.ensure_user(caller.user_id, caller.email)
        g.caller = caller
        return view(*args, **kwargs)

    return wrapper
