#!/usr/bin/env python3
"""
FocusSync - Main Entry Point

Runs the sync server, a device agent, or one-off session commands
against a running server.

Usage:
    python main.py serve                       # Run the API server
    python main.py agent                       # Poll sessions on this device
    python main.py start --devices all         # Start a focus session
    python main.py stop                        # Stop the active session
    python main.py status                      # Show session, devices and blocklists
"""

import sys
import time
import logging
import argparse
from typing import List, Optional

import config
from core.errors import FocusError
from sync.agent import DeviceAgent
from sync.api_client import FocusApiClient
from sync.cache import SessionCache

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Suppress noisy third-party library logs (HTTP requests, etc.)
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("werkzeug").setLevel(logging.WARNING)


def _client() -> FocusApiClient:
    if not config.API_TOKEN:
        print("\nFOCUS_API_TOKEN is not set. Add it to your .env file.")
        sys.exit(1)
    return FocusApiClient(config.API_URL, config.API_TOKEN)


def _describe(cache: SessionCache) -> str:
    if not cache.active:
        return "INACTIVE"
    until = f" until {cache.ends_at.isoformat()}" if cache.ends_at else ""
    return f"ACTIVE{until} ({len(cache.blocklist.apps)} apps, {len(cache.blocklist.sites)} sites)"


def run_server(host: str, port: int) -> None:
    """Run the HTTP API with the development server."""
    from server import create_app

    app = create_app()
    logger.info(f"FocusSync server listening on {host}:{port}")
    app.run(host=host, port=port, threaded=True)


def run_agent() -> None:
    """Log in, register this device and keep the session cache fresh until Ctrl+C."""
    agent = DeviceAgent(client=_client())
    agent.poller.on_change = lambda cache: logger.debug(f"Session cache: {_describe(cache)}")
    agent.on_block = lambda decision, identifier: logger.info(
        f"Blocked {identifier}: {decision.reason} ({decision.matched})"
    )

    agent.login(config.API_TOKEN)
    print(f"\nAgent running for device {agent.device_id}. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        agent.logout()


def start_session(devices: List[str], duration: Optional[float]) -> None:
    target = "all" if not devices or devices == ["all"] else devices
    session = _client().start_session(target, duration=duration)
    print(f"Session started: {session.get('id')}")
    if session.get("endTime"):
        print(f"Ends at: {session['endTime']}")


def stop_session(session_id: Optional[str]) -> None:
    _client().stop_session(session_id)
    print("Session stopped")


def show_status() -> None:
    client = _client()
    active = next((s for s in client.list_sessions() if s.get("isActive")), None)
    devices = client.list_devices()
    config_lists = client.get_config()

    print("\nSession:")
    if active is None:
        print("  INACTIVE")
    else:
        until = f" until {active['endTime']}" if active.get("endTime") else ""
        print(f"  ACTIVE {active.get('id')}{until} - targets: {active.get('targetDevices')}")

    print("\nDevices:")
    if not devices:
        print("  (none registered)")
    for device in devices:
        state = "online" if device.get("isOnline") else "offline"
        print(f"  {device.get('name')} [{device.get('type')}] {device.get('id')} - {state}")

    blocklists = config_lists["blocklists"]
    print("\nBlocklists:")
    print(f"  Websites: {', '.join(blocklists.get('websites', [])) or '-'}")
    print(f"  Packages: {', '.join(blocklists.get('packages', [])) or '-'}")
    print(f"  Keywords: {', '.join(blocklists.get('keywords', [])) or '-'}")


def main():
    """
    Main entry point - parses arguments and dispatches the subcommand.
    """
    parser = argparse.ArgumentParser(
        description="FocusSync - cross-device focus sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 3000
  python main.py start --devices phone-1 laptop-1 --duration 1500
  python main.py stop
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default=config.SERVER_HOST)
    serve.add_argument("--port", type=int, default=config.SERVER_PORT)

    subparsers.add_parser("agent", help="Run the device agent")

    start = subparsers.add_parser("start", help="Start a focus session")
    start.add_argument("--devices", nargs="*", default=["all"], help="Device ids, or 'all'")
    start.add_argument("--duration", type=float, default=None, help="Length in seconds")

    stop = subparsers.add_parser("stop", help="Stop the active session")
    stop.add_argument("--session", default=None, help="Session id (default: all active)")

    subparsers.add_parser("status", help="Show the active session, devices and config")

    args = parser.parse_args()

    try:
        if args.command == "serve":
            run_server(args.host, args.port)
        elif args.command == "agent":
            run_agent()
        elif args.command == "start":
            start_session(args.devices, args.duration)
        elif args.command == "stop":
            stop_session(args.session)
        elif args.command == "status":
            show_status()
    except KeyboardInterrupt:
        sys.exit(0)
    except FocusError as e:
        logger.error(f"Request failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
