#!/usr/bin/env python3
"""CLI entry point for the OpenCode Session Idle Notifier.

This module provides the command-line interface for starting the event
source and the notification scheduler. It handles argument parsing for
configuration options like the event source, idle delay and sound.

Usage:
    python -m session_notifier [OPTIONS]
    session-notifier [OPTIONS]

Options:
    --source {sse,http}     Event source (default: sse)
    --opencode-url URL      OpenCode server URL (default: http://127.0.0.1:4096)
    --port PORT             HTTP receiver port when --source=http (default: 4097)
    --config PATH           JSON config file
    --idle-delay MS         Idle confirmation delay in milliseconds
    --play-sound            Play a sound after notifying
    --no-todo-check         Notify even when the session has open todos
    --verbose               Enable verbose logging
"""

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Any

from . import __version__, configure_logging, get_logger


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="session-notifier",
        description="OpenCode Session Idle Notifier - Desktop notification when an agent session is ready",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Subscribe to a local OpenCode server
    session-notifier

    # Receive pushed events instead, with a longer idle delay
    session-notifier --source http --port 4097 --idle-delay 3000

Environment Variables:
    OPENCODE_SERVER_URL                     Override OpenCode server URL
    SESSION_NOTIFIER_PORT                   Override receiver port (4097)
    SESSION_NOTIFIER_TITLE                  Notification title
    SESSION_NOTIFIER_MESSAGE                Notification body
    SESSION_NOTIFIER_PLAY_SOUND             Play a sound (true/false)
    SESSION_NOTIFIER_SOUND_PATH             Sound file
    SESSION_NOTIFIER_IDLE_DELAY             Idle confirmation delay (ms)
    SESSION_NOTIFIER_SKIP_INCOMPLETE_TODOS  Gate on open todos (true/false)
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--source",
        choices=("sse", "http"),
        default="sse",
        help="Where events come from: OpenCode SSE stream or pushed HTTP (default: sse)",
    )

    parser.add_argument(
        "--opencode-url",
        default=os.environ.get("OPENCODE_SERVER_URL", "http://127.0.0.1:4096"),
        help="OpenCode server URL for events and todos (env: OPENCODE_SERVER_URL)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("SESSION_NOTIFIER_PORT", "4097")),
        help="HTTP receiver port for --source=http (default: 4097, env: SESSION_NOTIFIER_PORT)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file (default: $XDG_CONFIG_HOME/opencode/session-notifier.json)",
    )

    parser.add_argument("--title", default=None, help="Notification title")
    parser.add_argument("--message", default=None, help="Notification body")

    parser.add_argument(
        "--play-sound",
        action="store_true",
        default=None,
        help="Play a sound after the notification",
    )

    parser.add_argument(
        "--sound-path",
        default=None,
        help="Sound file to play (default: platform notification sound)",
    )

    parser.add_argument(
        "--idle-delay",
        type=int,
        default=None,
        help="Milliseconds a session must stay idle before notifying (default: 1500)",
    )

    parser.add_argument(
        "--no-todo-check",
        action="store_true",
        help="Notify even if the session still has incomplete todos",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity level."""
    configure_logging("DEBUG" if verbose else "INFO")


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map CLI flags onto config keys (None means not given)."""
    return {
        "title": args.title,
        "message": args.message,
        "playSound": args.play_sound,
        "soundPath": args.sound_path,
        "idleConfirmationDelay": args.idle_delay,
        "skipIfIncompleteTodos": False if args.no_todo_check else None,
    }


async def main_async(args: argparse.Namespace) -> int:
    """Async main entry point."""
    # Import here to speed up --help
    from .config import ConfigError, load_config
    from .event_stream import EventStreamSubscriber
    from .notifier import DesktopNotifier
    from .receiver import EventReceiver
    from .scheduler import SessionNotificationScheduler
    from .todo_gate import OpenCodeTodoChecker

    logger = get_logger("cli")
    logger.info(f"Starting OpenCode Session Idle Notifier v{__version__}")

    try:
        config = load_config(args.config, overrides=cli_overrides(args))
    except ConfigError as e:
        logger.error(str(e))
        return 1

    todo_checker = OpenCodeTodoChecker(args.opencode_url)
    scheduler = SessionNotificationScheduler(
        config=config,
        notifier=DesktopNotifier(),
        todo_checker=todo_checker,
    )

    if args.source == "http":
        source = EventReceiver(port=args.port, scheduler=scheduler)
    else:
        source = EventStreamSubscriber(base_url=args.opencode_url, scheduler=scheduler)

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_signal(signum: int) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    exit_code = 0
    try:
        await scheduler.start()
        await source.start()

        logger.info("Service started successfully")

        # Wait for shutdown signal
        await shutdown_event.wait()

    except Exception as e:
        logger.error(f"Service error: {e}")
        exit_code = 1

    finally:
        # Graceful shutdown
        logger.info("Shutting down...")
        await source.stop()
        await scheduler.stop()
        await todo_checker.close()

    return exit_code


def main() -> None:
    """Main entry point."""
    args = parse_args()
    setup_logging(args.verbose)

    try:
        exit_code = asyncio.run(main_async(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
