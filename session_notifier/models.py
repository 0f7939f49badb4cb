"""Pydantic models for the OpenCode Session Idle Notifier.

This module defines the configuration record, the inbound lifecycle event
shape, and the todo items returned by the OpenCode server.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    """Host platforms with a notification mechanism."""

    DARWIN = "darwin"
    LINUX = "linux"
    WIN32 = "win32"
    UNSUPPORTED = "unsupported"


class NotifierConfig(BaseModel):
    """Resolved notifier configuration.

    Accepts both snake_case field names and the camelCase keys used by
    OpenCode plugin configuration files. Unknown keys are ignored.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    title: str = Field(default="OpenCode", description="Notification title")
    message: str = Field(
        default="Agent is ready for input", description="Notification body"
    )
    play_sound: bool = Field(
        default=False, alias="playSound", description="Play a sound after notifying"
    )
    sound_path: Optional[str] = Field(
        default=None,
        alias="soundPath",
        description="Sound file to play (None resolves to the platform default)",
    )
    idle_confirmation_delay: int = Field(
        default=1500,
        alias="idleConfirmationDelay",
        description="Milliseconds a session must stay idle before notifying",
    )
    skip_if_incomplete_todos: bool = Field(
        default=True,
        alias="skipIfIncompleteTodos",
        description="Suppress the notification while the session has open todos",
    )

    @property
    def idle_confirmation_delay_sec(self) -> float:
        """Idle confirmation delay in seconds."""
        return self.idle_confirmation_delay / 1000.0


class LifecycleEvent(BaseModel):
    """A session lifecycle event from the OpenCode event bus."""

    model_config = ConfigDict(extra="ignore")

    type: str = Field(description="Event kind (e.g., session.idle, message.updated)")
    properties: dict[str, Any] = Field(
        default_factory=dict, description="Loosely typed event payload"
    )


class Todo(BaseModel):
    """A single todo item attached to an OpenCode session."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    content: Optional[str] = None
    status: Optional[str] = Field(
        default=None, description="pending, in_progress, completed or cancelled"
    )
    priority: Optional[str] = None


# Event name constants for the scheduler
class EventTypes:
    """Known OpenCode lifecycle event kinds."""

    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    SESSION_IDLE = "session.idle"
    SESSION_DELETED = "session.deleted"
    MESSAGE_UPDATED = "message.updated"

    # Events that mean the session is no longer idle
    ACTIVITY_EVENTS = {
        SESSION_CREATED,
        SESSION_UPDATED,
        MESSAGE_UPDATED,
    }


# Todo statuses that no longer count as outstanding work
FINISHED_TODO_STATUSES = frozenset({"completed", "cancelled"})
