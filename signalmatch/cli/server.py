"""CLI for the signalmatch signaling server."""

import argparse
import asyncio
import signal
import sys

from signalmatch import __version__
from signalmatch.api.server import APIServer
from signalmatch.config import Settings, settings
from signalmatch.logger import configure_logging, logger
from signalmatch.ws.server import SignalingServer


def build_settings(args) -> Settings:
    """Overlay command line options on the environment settings."""
    overrides = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.api_port is not None:
        overrides["api_port"] = args.api_port
    if args.no_api:
        overrides["enable_api"] = False
    if args.queue_timeout is not None:
        overrides["queue_timeout_seconds"] = args.queue_timeout
    if args.match_interval is not None:
        overrides["match_interval_ms"] = args.match_interval
    if args.origins:
        overrides["allowed_origins"] = [o.strip() for o in args.origins.split(",") if o.strip()]
    if args.permissive_relay:
        overrides["strict_relay"] = False
    return settings.model_copy(update=overrides)


class ShutdownHandler:
    """Stops the signaling server and the status API once, on the first signal.

    The shutdown coroutine runs as a task that is kept on ``self.task`` until
    it finishes.
    """

    def __init__(self, server: SignalingServer, api: APIServer | None = None):
        self.server = server
        self.api = api
        self.task: asyncio.Task | None = None

    @property
    def requested(self) -> bool:
        return self.task is not None

    def __call__(self) -> None:
        if self.requested:
            return
        print("\n🛑 Shutting down server...")
        self.task = asyncio.get_running_loop().create_task(
            self.server.shutdown(), name="signalmatch-shutdown"
        )
        if self.api is not None:
            self.api.stop()


async def run_server(args):
    """Run the signaling server and, optionally, the status API"""
    config = build_settings(args)
    server = SignalingServer.from_settings(config)
    api = APIServer(server.controller, config.allowed_origins) if config.enable_api else None

    # Set up asyncio signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    handle_shutdown = ShutdownHandler(server, api)
    loop.add_signal_handler(signal.SIGINT, handle_shutdown)
    loop.add_signal_handler(signal.SIGTERM, handle_shutdown)

    print(f"🚀 Signaling server on ws://{config.host}:{config.port}")
    if api is not None:
        print(f"📊 Status API on http://{config.host}:{config.api_port}")

    try:
        if api is None:
            await server.start_server()
        else:
            await asyncio.gather(
                server.start_server(),
                api.start(host=config.host, port=config.api_port),
            )
        if handle_shutdown.task is not None:
            await handle_shutdown.task
        print("🛑 Server stopped")
        return 0
    except KeyboardInterrupt:
        print("\n🛑 Server stopped")
        return 0
    except Exception as e:
        logger.exception(f"Server error: {e}")
        print(f"❌ Server error: {e}")
        return 1


def create_server_parser(subparsers):
    """Create server subcommand parser"""
    server_parser = subparsers.add_parser(
        "server",
        help="Start the signaling server",
        description="Run the matchmaking and WebRTC signaling WebSocket server",
    )

    server_parser.add_argument("--host", default=None, help=f"Bind address (default: {settings.host})")
    server_parser.add_argument(
        "--port", type=int, default=None, help=f"WebSocket port (default: {settings.port})"
    )
    server_parser.add_argument(
        "--api-port", type=int, default=None, help=f"Status API port (default: {settings.api_port})"
    )
    server_parser.add_argument("--no-api", action="store_true", help="Do not start the status API")
    server_parser.add_argument(
        "--queue-timeout",
        type=float,
        default=None,
        help=f"Seconds a participant may wait for a partner (default: {settings.queue_timeout_seconds:g})",
    )
    server_parser.add_argument(
        "--match-interval",
        type=int,
        default=None,
        help=f"Matchmaker tick interval in ms (default: {settings.match_interval_ms})",
    )
    server_parser.add_argument(
        "--origins", default=None, help="Comma-separated allowed origins ('*' allows all)"
    )
    server_parser.add_argument(
        "--permissive-relay",
        action="store_true",
        help="Relay to any live participant, not only the current partner",
    )
    server_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return server_parser


def main(argv=None):
    """CLI main entry point"""
    parser = argparse.ArgumentParser(
        prog="signalmatch",
        description="Anonymous matchmaking and WebRTC signaling server",
        epilog="""
Examples:
  signalmatch server                          # Start with settings from the environment
  signalmatch server --port 9000 --no-api     # Signaling only, on port 9000
  signalmatch server --origins https://app.example.com
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version", action="version", version=f"signalmatch {__version__}"
    )

    subparsers = parser.add_subparsers(
        dest="command", help="Available commands", metavar="COMMAND"
    )
    create_server_parser(subparsers)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging("DEBUG" if getattr(args, "debug", False) else settings.log_level)

    if args.command == "server":
        try:
            return asyncio.run(run_server(args))
        except KeyboardInterrupt:
            print("\n🛑 Operation interrupted")
            return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
