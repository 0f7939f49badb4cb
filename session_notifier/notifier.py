"""Desktop notification support for the OpenCode Session Idle Notifier.

This module surfaces notifications and plays sounds through the host OS:

- macOS: osascript / afplay
- Linux: notify-send / paplay (falling back to aplay)
- Windows: PowerShell MessageBox / Media.SoundPlayer

Commands are spawned with asyncio.create_subprocess_exec, never through a
shell, so only the strings embedded inside script literals need escaping.
"""

import asyncio
import logging
import shutil
from typing import Protocol

from .models import Platform

logger = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    """Raised when the OS notification command cannot be run or fails."""


class NotificationSink(Protocol):
    """Capability the scheduler uses to reach the user."""

    async def notify(self, platform: Platform, title: str, message: str) -> None:
        ...

    async def play_sound(self, platform: Platform, path: str) -> None:
        ...


def escape_applescript(text: str) -> str:
    """Escape a string for use inside an AppleScript double-quoted literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def escape_powershell(text: str) -> str:
    """Escape a string for use inside a PowerShell single-quoted literal."""
    return text.replace("'", "''")


def build_notify_command(platform: Platform, title: str, message: str) -> list[str]:
    """Build the argv that shows a notification on the given platform.

    Returns an empty list for unsupported platforms.
    """
    if platform == Platform.DARWIN:
        script = (
            f'display notification "{escape_applescript(message)}" '
            f'with title "{escape_applescript(title)}"'
        )
        return ["osascript", "-e", script]

    if platform == Platform.LINUX:
        # "--" keeps a leading dash in title or message from parsing as an option
        return ["notify-send", "--", title, message]

    if platform == Platform.WIN32:
        script = (
            "[System.Reflection.Assembly]::LoadWithPartialName('System.Windows.Forms'); "
            f"[System.Windows.Forms.MessageBox]::Show('{escape_powershell(message)}', "
            f"'{escape_powershell(title)}')"
        )
        return ["powershell", "-Command", script]

    return []


def build_sound_commands(platform: Platform, path: str) -> list[list[str]]:
    """Build the playback commands for a platform, in fallback order."""
    if platform == Platform.DARWIN:
        return [["afplay", path]]

    if platform == Platform.LINUX:
        return [["paplay", path], ["aplay", path]]

    if platform == Platform.WIN32:
        script = f"(New-Object Media.SoundPlayer '{escape_powershell(path)}').PlaySync()"
        return [["powershell", "-Command", script]]

    return []


async def _run(cmd: list[str]) -> int:
    """Run a command to completion and return its exit status.

    Raises:
        FileNotFoundError: If the executable is not on PATH.
    """
    executable = shutil.which(cmd[0])
    if not executable:
        raise FileNotFoundError(f"{cmd[0]} not found")

    process = await asyncio.create_subprocess_exec(
        executable,
        *cmd[1:],
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    return await process.wait()


class DesktopNotifier:
    """Send desktop notifications and sounds via OS commands.

    Example:
        >>> notifier = DesktopNotifier()
        >>> await notifier.notify(Platform.LINUX, "OpenCode", "Agent is ready")
    """

    async def notify(self, platform: Platform, title: str, message: str) -> None:
        """Show a desktop notification.

        Args:
            platform: Platform tag selecting the mechanism
            title: Notification title
            message: Notification body

        Raises:
            NotificationError: If the command is missing or exits non-zero.
        """
        cmd = build_notify_command(platform, title, message)
        if not cmd:
            return

        try:
            returncode = await _run(cmd)
        except OSError as e:
            raise NotificationError(f"Cannot run {cmd[0]}: {e}") from e

        if returncode != 0:
            raise NotificationError(f"{cmd[0]} exited with status {returncode}")

        logger.debug(f"Sent notification: {title}")

    async def play_sound(self, platform: Platform, path: str) -> None:
        """Play a sound file. Best-effort: failures are logged and swallowed.

        On Linux, aplay is tried when paplay fails.
        """
        for cmd in build_sound_commands(platform, path):
            try:
                if await _run(cmd) == 0:
                    logger.debug(f"Played sound {path} with {cmd[0]}")
                    return
                logger.debug(f"{cmd[0]} failed to play {path}")
            except Exception as e:
                logger.debug(f"Error playing sound with {cmd[0]}: {e}")
