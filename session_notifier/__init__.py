"""OpenCode Session Idle Notifier.

A service that consumes OpenCode session lifecycle events, confirms that a
session has genuinely gone idle, and raises a single desktop notification
per idle episode.

Modules:
    - models: Pydantic data models (NotifierConfig, LifecycleEvent, Todo)
    - platforms: Platform detection and default sound assets
    - notifier: Desktop notification and sound dispatch
    - todo_gate: Outstanding-work check against the OpenCode server
    - scheduler: Per-session idle confirmation state machine
    - event_stream: SSE subscriber for the OpenCode event bus
    - receiver: HTTP receiver for pushed events
    - config: Configuration file and environment loading
"""

import logging

__version__ = "0.3.0"

__all__ = [
    "__version__",
    "configure_logging",
    "get_logger",
]


def configure_logging(
    level: str = "INFO",
    format_string: str | None = None,
) -> logging.Logger:
    """Configure package-level logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string. Defaults to standard format
            with timestamp, level, module, and message.

    Returns:
        Configured logger instance for the session_notifier package.

    Example:
        >>> from session_notifier import configure_logging
        >>> logger = configure_logging("DEBUG")
        >>> logger.debug("Starting notifier...")
    """
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logger = logging.getLogger("session_notifier")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance for the session_notifier package.

    Args:
        name: Optional submodule name. If provided, returns
            logger named 'session_notifier.{name}'. If None,
            returns the root package logger.

    Returns:
        Logger instance.
    """
    if name:
        return logging.getLogger(f"session_notifier.{name}")
    return logging.getLogger("session_notifier")
