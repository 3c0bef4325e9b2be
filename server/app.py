"""
FocusSync HTTP API.

JSON endpoints over the core services. Every route except /health needs
a bearer token; the caller's user id scopes every operation.

Devices:
    POST /devices/register     register or refresh a device
    GET  /devices              list the caller's devices
    POST /devices/heartbeat    refresh last-seen

Sessions:
    POST /sessions/start       start (supersedes any active session)
    POST /sessions/stop        stop one or all active sessions
    GET  /sessions/active      session applying to ?deviceId=
    POST /sessions/toggle      stop if active, else start for all devices
    GET  /sessions             session history

Config:
    GET  /config               blocklists and whitelists
    POST /config               replace any subset of the lists
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from flask import Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

import config
from core.config_store import ConfigStore
from core.devices import DeviceRegistry
from core.errors import FocusError, InvalidCredential, NotFound, Unauthorized, ValidationError
from core.models import Device, Session, UserRecord, parse_target_devices, string_list, utcnow
from core.sessions import SessionManager
from core.store import UserLocks, create_store
from server.auth import StaticTokenResolver, TokenResolver, require_user

logger = logging.getLogger(__name__)


@dataclass
class FocusServices:
    """The core services one app instance works with."""
    config_store: ConfigStore
    devices: DeviceRegistry
    sessions: SessionManager


def build_services(store_path: Optional[str] = None) -> FocusServices:
    """
    Wire up the core services.

    Args:
        store_path: Directory for JSON persistence (default config.STORE_PATH;
                    empty keeps everything in memory).
    """
    base_path = config.STORE_PATH if store_path is None else store_path
    locks = UserLocks()

    config_store = ConfigStore(create_store("users", UserRecord.from_dict, base_path), locks)
    devices = DeviceRegistry(create_store("devices", Device.from_dict, base_path))
    sessions = SessionManager(config_store, create_store("sessions", Session.from_dict, base_path), locks)
    return FocusServices(config_store=config_store, devices=devices, sessions=sessions)


def _services() -> FocusServices:
    return current_app.extensions["focus"]


def _json_body() -> Dict[str, Any]:
    """Request body as a dict; an empty or missing body reads as {}."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _config_response(blocklist, whitelist):
    return jsonify({
        "success": True,
        "blocklists": blocklist.to_dict(),
        "whitelists": whitelist.to_dict(),
    })


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def register_error_handlers(app: Flask) -> None:
    """Map core errors onto JSON responses."""

    @app.errorhandler(ValidationError)
    def validation_error(err):
        return _error(str(err) or "Invalid request", 400)

    @app.errorhandler(InvalidCredential)
    def invalid_credential(err):
        return _error(str(err) or "Invalid token", 401)

    @app.errorhandler(Unauthorized)
    def unauthorized(err):
        logger.warning(f"Rejected request to {request.path}: {err}")
        return _error(str(err) or "Forbidden", 403)

    @app.errorhandler(NotFound)
    def not_found(err):
        return _error(str(err) or "Not found", 404)

    @app.errorhandler(FocusError)
    def focus_error(err):
        logger.error(f"Unhandled FocusSync error on {request.path}: {err}")
        return _error("Request failed", 500)

    @app.errorhandler(HTTPException)
    def http_error(err):
        return _error(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def internal(err):
        logger.exception(f"Unexpected error on {request.path}: {err}")
        return _error("A server error occurred", 500)


def create_app(
    services: Optional[FocusServices] = None,
    token_resolver: Optional[TokenResolver] = None,
) -> Flask:
    """
    Build the Flask app.

    Args:
        services: Core services (built from config if omitted).
        token_resolver: Maps bearer tokens to callers (static table from
                        config.API_TOKENS if omitted).
    """
    app = Flask(__name__)
    app.config["TOKEN_RESOLVER"] = token_resolver or StaticTokenResolver()
    app.extensions["focus"] = services or build_services()
    register_error_handlers(app)

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    @app.route("/devices/register", methods=["POST"])
    @require_user
    def register_device():
        data = _json_body()
        device = _services().devices.register(
            g.caller.user_id,
            data.get("deviceId"),
            data.get("deviceName"),
            data.get("deviceType"),
            data.get("platform"),
        )
        return jsonify({"success": True, "device": device.to_dict()})

    @app.route("/devices", methods=["GET"])
    @require_user
    def list_devices():
        devices = _services().devices.list(g.caller.user_id)
        return jsonify({"success": True, "devices": [d.to_dict() for d in devices]})

    @app.route("/devices/heartbeat", methods=["POST"])
    @require_user
    def heartbeat():
        data = _json_body()
        _services().devices.heartbeat(g.caller.user_id, data.get("deviceId"))
        return jsonify({"success": True})

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @app.route("/sessions/start", methods=["POST"])
    @require_user
    def start_session():
        data = _json_body()
        session = _services().sessions.start(
            g.caller.user_id,
            target=parse_target_devices(data.get("targetDevices")),
            blocked_apps=string_list(data.get("blockedPackages"), "blockedPackages"),
            blocked_sites=string_list(data.get("blockedWebsites"), "blockedWebsites"),
            blocked_keywords=string_list(data.get("blockedKeywords"), "blockedKeywords"),
            duration=data.get("duration"),
        )
        return jsonify({"success": True, "message": "Session started", "session": session.to_dict()})

    @app.route("/sessions/stop", methods=["POST"])
    @require_user
    def stop_session():
        data = _json_body()
        session_id = data.get("sessionId")
        if session_id is not None and not isinstance(session_id, str):
            raise ValidationError("sessionId must be a string")
        ended = _services().sessions.stop(g.caller.user_id, session_id)
        return jsonify({"success": True, "message": "Session stopped", "stopped": ended})

    @app.route("/sessions/active", methods=["GET"])
    @require_user
    def active_session():
        device_id = request.args.get("deviceId")
        session = _services().sessions.get_active_for(g.caller.user_id, device_id)
        return jsonify({"success": True, "session": session.to_dict() if session else None})

    @app.route("/sessions/toggle", methods=["POST"])
    @require_user
    def toggle_session():
        session = _services().sessions.toggle(g.caller.user_id)
        return jsonify({
            "success": True,
            "message": "Session activated" if session else "Session deactivated",
            "session": session.to_dict() if session else None,
        })

    @app.route("/sessions", methods=["GET"])
    @require_user
    def session_history():
        sessions = _services().sessions.history(g.caller.user_id)
        return jsonify({"success": True, "sessions": [s.to_dict() for s in sessions]})

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    @app.route("/config", methods=["GET"])
    @require_user
    def get_config():
        blocklist, whitelist = _services().config_store.get(g.caller.user_id)
        return _config_response(blocklist, whitelist)

    @app.route("/config", methods=["POST"])
    @require_user
    def update_config():
        data = _json_body()
        blocklist, whitelist = _services().config_store.update(
            g.caller.user_id,
            blocked_apps=string_list(data.get("blockedPackages"), "blockedPackages"),
            blocked_sites=string_list(data.get("blockedWebsites"), "blockedWebsites"),
            blocked_keywords=string_list(data.get("blockedKeywords"), "blockedKeywords"),
            whitelisted_apps=string_list(data.get("whitelistedPackages"), "whitelistedPackages"),
            whitelisted_sites=string_list(data.get("whitelistedWebsites"), "whitelistedWebsites"),
        )
        return _config_response(blocklist, whitelist)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @app.route("/health", methods=["GET"])
    def health():
        services = _services()
        stats = {
            "users": services.config_store.user_count(),
            "devices": services.devices.count(),
        }
        stats.update(services.sessions.stats())
        return jsonify({
            "success": True,
            "message": "Server is running",
            "timestamp": utcnow().isoformat(),
            "stats": stats,
        })

    return app
