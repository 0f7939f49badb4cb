"""Configuration loading for the OpenCode Session Idle Notifier.

Precedence (lowest to highest):
    defaults < JSON config file < environment variables < explicit overrides

The config file uses the same keys as the OpenCode plugin configuration
(title, message, playSound, soundPath, idleConfirmationDelay,
skipIfIncompleteTodos). Unspecified keys keep their defaults.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .models import NotifierConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "session-notifier.json"

# Environment variable -> config key
ENV_OVERRIDES: dict[str, str] = {
    "SESSION_NOTIFIER_TITLE": "title",
    "SESSION_NOTIFIER_MESSAGE": "message",
    "SESSION_NOTIFIER_PLAY_SOUND": "playSound",
    "SESSION_NOTIFIER_SOUND_PATH": "soundPath",
    "SESSION_NOTIFIER_IDLE_DELAY": "idleConfirmationDelay",
    "SESSION_NOTIFIER_SKIP_INCOMPLETE_TODOS": "skipIfIncompleteTodos",
}


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


def default_config_path() -> Path:
    """Return $XDG_CONFIG_HOME/opencode/session-notifier.json."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "opencode" / CONFIG_FILENAME


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a JSON config file. A missing file yields an empty mapping.

    Raises:
        ConfigError: If the file is unreadable or not a JSON object.
    """
    if not path.exists():
        logger.debug(f"No config file at {path}, using defaults")
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    logger.debug(f"Loaded config from {path}")
    return data


def read_env_overrides(environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Collect config overrides from SESSION_NOTIFIER_* environment variables."""
    environ = os.environ if environ is None else environ
    return {
        key: environ[var] for var, key in ENV_OVERRIDES.items() if environ.get(var)
    }


def load_config(
    path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
    environ: Optional[dict[str, str]] = None,
) -> NotifierConfig:
    """Resolve the notifier configuration.

    Args:
        path: Config file (default: default_config_path())
        overrides: Highest-precedence values (e.g., from CLI flags); None
            values are skipped
        environ: Environment mapping (default: os.environ)

    Returns:
        Immutable NotifierConfig with defaults applied

    Raises:
        ConfigError: If the file cannot be read or a value has the wrong type.
    """
    merged: dict[str, Any] = {}
    merged.update(read_config_file(path or default_config_path()))
    merged.update(read_env_overrides(environ))
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return NotifierConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
