"""Pytest configuration and fixtures for session notifier tests."""

from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import pytest

from session_notifier.models import LifecycleEvent, NotifierConfig, Platform
from session_notifier.scheduler import SessionNotificationScheduler

# Idle confirmation delay used by scheduler tests (milliseconds)
TEST_DELAY_MS = 50


class Events:
    """Builders for OpenCode lifecycle events."""

    @staticmethod
    def created(session_id: str) -> LifecycleEvent:
        return LifecycleEvent(type="session.created", properties={"info": {"id": session_id}})

    @staticmethod
    def updated(session_id: str) -> LifecycleEvent:
        return LifecycleEvent(type="session.updated", properties={"info": {"id": session_id}})

    @staticmethod
    def idle(session_id: str) -> LifecycleEvent:
        return LifecycleEvent(type="session.idle", properties={"sessionID": session_id})

    @staticmethod
    def message(session_id: str) -> LifecycleEvent:
        return LifecycleEvent(
            type="message.updated",
            properties={"info": {"id": "msg_1", "sessionID": session_id}},
        )

    @staticmethod
    def deleted(session_id: str) -> LifecycleEvent:
        return LifecycleEvent(type="session.deleted", properties={"info": {"id": session_id}})


@pytest.fixture
def events() -> type[Events]:
    """Event builders."""
    return Events


@pytest.fixture
def notifier() -> AsyncMock:
    """Notification sink recording notify/play_sound calls."""
    mock = AsyncMock()
    mock.notify.return_value = None
    mock.play_sound.return_value = None
    return mock


@pytest.fixture
def todo_checker() -> AsyncMock:
    """Todo gate reporting no outstanding work."""
    mock = AsyncMock()
    mock.has_incomplete_todos.return_value = False
    return mock


@pytest.fixture
def fast_config() -> NotifierConfig:
    """Config with a short idle confirmation delay."""
    return NotifierConfig(idle_confirmation_delay=TEST_DELAY_MS)


@pytest.fixture
def make_scheduler(
    notifier: AsyncMock, todo_checker: AsyncMock, fast_config: NotifierConfig
) -> Callable[..., SessionNotificationScheduler]:
    """Factory for schedulers wired to the mock sink and gate.

    Defaults to the Linux platform so tests behave the same on any host.
    """

    def _make(
        config: Optional[NotifierConfig] = None,
        platform: Platform = Platform.LINUX,
        **config_updates: Any,
    ) -> SessionNotificationScheduler:
        config = config or fast_config
        if config_updates:
            config = config.model_copy(update=config_updates)
        return SessionNotificationScheduler(
            config=config,
            notifier=notifier,
            todo_checker=todo_checker,
            platform=platform,
        )

    return _make
