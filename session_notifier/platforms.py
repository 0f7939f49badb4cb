"""Platform detection for desktop notification dispatch."""

import sys

from .models import Platform

DEFAULT_SOUND_PATHS: dict[Platform, str] = {
    Platform.DARWIN: "/System/Library/Sounds/Glass.aiff",
    Platform.LINUX: "/usr/share/sounds/freedesktop/stereo/complete.oga",
    Platform.WIN32: "C:\\Windows\\Media\\notify.wav",
}


def detect_platform() -> Platform:
    """Map the running OS to a supported platform tag."""
    try:
        return Platform(sys.platform)
    except ValueError:
        return Platform.UNSUPPORTED


def default_sound_path(platform: Platform) -> str:
    """Return the built-in notification sound for a platform ("" if none)."""
    return DEFAULT_SOUND_PATHS.get(platform, "")
