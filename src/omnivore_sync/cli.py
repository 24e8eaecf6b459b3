"""Command-line interface for omnivore-sync.

Subcommands:

- ``sync``   -- run one sync now and print the report.
- ``reset``  -- clear all sync state after confirmation.
- ``status`` -- show the cursor, synced counts and schedule.
- ``daemon`` -- run the scheduler (and config watcher) until interrupted.
- ``init``   -- write a commented starter config file.
- ``mcp``    -- serve the MCP tools over stdio.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import threading

from . import __version__
from .config_loader import ensure_config
from .errors import ConfigurationError
from .logger import apply_logging_config, setup_logging
from .service import RESET_CONFIRMATION, SyncService
from .sync.models import RunStatus
from .sync.reporter import format_run_report, result_to_json

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_sync(service: SyncService, args: argparse.Namespace) -> int:
    result = service.run_now()
    if args.json:
        print(json.dumps(result_to_json(result), indent=2))
    else:
        print(format_run_report(result))
    return 1 if result.status is RunStatus.FAILED else 0


def _confirm_reset() -> bool:
    print(RESET_CONFIRMATION, file=sys.stderr)
    try:
        answer = input("Type 'yes' to confirm: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _cmd_reset(service: SyncService, args: argparse.Namespace) -> int:
    confirmed = args.yes or _confirm_reset()
    result = service.reset(confirm=confirmed)
    print(result.message or "")
    return 0 if result.status is RunStatus.SUCCEEDED else 1


def _format_status(info: dict) -> str:
    schedule = info["schedule"]
    interval = schedule.get("interval_minutes") or 0
    lines = [
        "Omnivore sync status",
        f"  State file:         {info['state_file']}",
        f"  Notes directory:    {info['notes_dir']}",
        f"  Sync type:          {info['sync_type']}",
        f"  Last sync:          {info['last_sync_date'] or 'never'}",
        f"  Synced articles:    {info['synced_items']}",
        f"  Synced highlights:  {info['synced_highlights']}",
        "  Automatic sync:     "
        + (f"every {interval} min" if interval else "off"),
        f"  API key:            {'set' if info['api_key_configured'] else 'NOT SET'}",
    ]
    if not info["state_ok"]:
        lines.append(f"  State file is corrupt: {info['state_error']}")
    return "\n".join(lines)


def _cmd_status(service: SyncService, args: argparse.Namespace) -> int:
    info = service.status()
    if args.json:
        print(json.dumps(info, indent=2))
    else:
        print(_format_status(info))
    return 0


def _cmd_daemon(service: SyncService, args: argparse.Namespace) -> int:
    stop = threading.Event()

    def _on_signal(signum, frame):
        stop.set()

    signal.signal(signal.SIGTERM, _on_signal)

    service.start()
    interval = service.settings.sync_interval
    if interval:
        print(f"Syncing every {interval} minute(s). Press Ctrl+C to stop.", file=sys.stderr)
    else:
        print(
            "sync_interval is 0: waiting for a config change. Press Ctrl+C to stop.",
            file=sys.stderr,
        )

    try:
        if args.run_now:
            print(format_run_report(service.run_now()), file=sys.stderr)
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
    finally:
        service.stop()
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return 0


def _cmd_mcp(args: argparse.Namespace, overrides: dict) -> int:
    from .mcp.server import main as mcp_main

    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_file:
        overrides["log_file"] = args.log_file
    try:
        asyncio.run(mcp_main(config_overrides=overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
    return 0


_SERVICE_COMMANDS = {
    "sync": _cmd_sync,
    "reset": _cmd_reset,
    "status": _cmd_status,
    "daemon": _cmd_daemon,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="omnivore-sync",
        description="Sync your Omnivore library (articles and highlights) into local Markdown notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a starter config in ./.omnivore_sync/config.yml
  omnivore-sync init

  # Sync once using OMNIVORE_API_KEY from the environment or .env
  omnivore-sync sync

  # Keep syncing every sync_interval minutes
  omnivore-sync daemon

  # Forget what was synced; the next sync fetches everything again
  omnivore-sync reset --yes

  # Serve MCP tools over stdio
  omnivore-sync mcp --log-file /tmp/omnivore-sync.log
        """,
    )
    parser.add_argument(
        "--api-key",
        help="Override Omnivore API key (takes precedence over OMNIVORE_API_KEY and config files)"
        " (visible in process list -- prefer OMNIVORE_API_KEY env var)",
    )
    parser.add_argument(
        "--endpoint",
        help="Override Omnivore GraphQL endpoint",
    )
    parser.add_argument(
        "--log-level",
        choices=["error", "warn", "info", "debug"],
        help="Log level (default: LOG_LEVEL env var, then logging.level, then warn)",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"omnivore-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_sync = sub.add_parser("sync", help="Run one sync now")
    p_sync.add_argument("--json", action="store_true", help="Print the report as JSON")

    p_reset = sub.add_parser("reset", help="Reset sync data")
    p_reset.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    p_status = sub.add_parser("status", help="Show sync state")
    p_status.add_argument("--json", action="store_true", help="Print status as JSON")

    p_daemon = sub.add_parser("daemon", help="Run scheduled syncs until interrupted")
    p_daemon.add_argument(
        "--run-now", action="store_true", help="Run one sync immediately on start"
    )

    sub.add_parser("init", help="Write a starter config file")
    sub.add_parser("mcp", help="Serve MCP tools over stdio")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.api_key:
        overrides["api_key"] = args.api_key
    if args.endpoint:
        overrides["endpoint"] = args.endpoint

    if args.command == "mcp":
        return _cmd_mcp(args, overrides)

    setup_logging(
        mode="cli",
        level=args.log_level,
        log_file=args.log_file,
        debug_format=args.debug_format,
    )

    if args.command == "init":
        return _cmd_init(args)

    try:
        service = SyncService.from_environment(overrides or None)
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    if not args.log_level:
        apply_logging_config(
            level=service.config.logging.level,
            log_file=None if args.log_file else service.config.logging.file,
        )

    return _SERVICE_COMMANDS[args.command](service, args)


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
