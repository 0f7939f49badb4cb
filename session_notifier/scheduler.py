"""Session notification scheduler for the OpenCode Session Idle Notifier.

This module implements the per-session state machine that turns a stream of
lifecycle events into at most one desktop notification per idle episode.

State Machine (per session):
    ACTIVE → ARMED (on session.idle, starts confirmation timer)
    ARMED → ACTIVE (on activity; timer cancelled or vetoed)
    ARMED → NOTIFIED (timer fires, no activity, no open todos)
    ARMED → ACTIVE (timer fires but open todos remain; next idle retries)
    NOTIFIED → ACTIVE (on activity)
    Any → removed (on session.deleted)

Timers are asyncio tasks keyed by session ID. When a timer fires it re-reads
the live state rather than trusting anything captured at arming time.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Optional

from .models import EventTypes, LifecycleEvent, NotifierConfig, Platform
from .notifier import NotificationSink
from .platforms import default_sound_path, detect_platform
from .todo_gate import TodoChecker

logger = logging.getLogger(__name__)


@dataclass
class SessionNotificationState:
    """Notification bookkeeping for one session."""

    notified: bool = False
    pending_timer: Optional[asyncio.Task] = None
    activity_since_idle: bool = False


def extract_session_id(event: LifecycleEvent) -> Optional[str]:
    """Return the session ID carried by an event, or None.

    session.idle carries it directly; message.updated carries it on the
    message info; session events carry it as the info id.
    """
    props = event.properties or {}

    if event.type == EventTypes.SESSION_IDLE:
        session_id = props.get("sessionID")
    else:
        info = props.get("info")
        if not isinstance(info, dict):
            return None
        if event.type == EventTypes.MESSAGE_UPDATED:
            session_id = info.get("sessionID")
        else:
            session_id = info.get("id")

    if isinstance(session_id, str) and session_id:
        return session_id
    return None


class SessionNotificationScheduler:
    """Decides when an idle OpenCode session gets a desktop notification.

    Single-threaded: handle() and the timer tasks run on one event loop and
    only interleave at await points, so no locks are needed.
    """

    def __init__(
        self,
        config: NotifierConfig,
        notifier: NotificationSink,
        todo_checker: TodoChecker,
        platform: Optional[Platform] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Resolved notifier configuration
            notifier: Sink used to show notifications and play sounds
            todo_checker: Gate consulted for outstanding work
            platform: Platform tag (detected from the host if None)
        """
        self.platform = platform if platform is not None else detect_platform()
        if config.sound_path is None:
            config = config.model_copy(
                update={"sound_path": default_sound_path(self.platform)}
            )
        self.config = config
        self.notifier = notifier
        self.todo_checker = todo_checker

        # Session storage: session_id -> SessionNotificationState
        self._sessions: dict[str, SessionNotificationState] = {}

        # Timer tasks still running, including ones already confirming
        self._tasks: set[asyncio.Task] = set()

        if not self.is_enabled:
            logger.warning("Unsupported platform, session notifications disabled")

    @property
    def is_enabled(self) -> bool:
        """True if the host platform has a notification mechanism."""
        return self.platform != Platform.UNSUPPORTED

    @property
    def sessions(self) -> dict[str, SessionNotificationState]:
        """Snapshot of per-session state (copies; mutating them has no effect)."""
        return {sid: replace(state) for sid, state in self._sessions.items()}

    async def start(self) -> None:
        """Log the resolved scheduler settings."""
        logger.info(
            f"Session scheduler started (platform={self.platform.value}, "
            f"delay={self.config.idle_confirmation_delay}ms)"
        )

    async def stop(self) -> None:
        """Cancel all pending and in-flight confirmation timers."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for state in self._sessions.values():
            state.pending_timer = None

        logger.info("Session scheduler stopped")

    async def handle(self, event: LifecycleEvent) -> None:
        """Process one lifecycle event.

        Never suspends: all state changes for the event happen before this
        coroutine returns control to the event loop.

        Args:
            event: Event from the OpenCode event bus
        """
        if not self.is_enabled:
            return

        if event.type not in EventTypes.ACTIVITY_EVENTS and event.type not in (
            EventTypes.SESSION_IDLE,
            EventTypes.SESSION_DELETED,
        ):
            return

        session_id = extract_session_id(event)
        if session_id is None:
            logger.debug(f"Ignoring {event.type} without session ID")
            return

        if event.type in EventTypes.ACTIVITY_EVENTS:
            self._mark_activity(session_id)
        elif event.type == EventTypes.SESSION_IDLE:
            self._arm_timer(session_id)
        elif event.type == EventTypes.SESSION_DELETED:
            self._forget(session_id)

    def _cancel_pending(self, session_id: str) -> SessionNotificationState:
        """Cancel any pending timer and record activity since idle."""
        state = self._sessions.setdefault(session_id, SessionNotificationState())
        if state.pending_timer is not None:
            state.pending_timer.cancel()
            state.pending_timer = None
            logger.debug(f"Session {session_id}: pending notification cancelled")
        state.activity_since_idle = True
        return state

    def _mark_activity(self, session_id: str) -> None:
        state = self._cancel_pending(session_id)
        state.notified = False

    def _forget(self, session_id: str) -> None:
        self._cancel_pending(session_id)
        self._sessions.pop(session_id, None)
        logger.debug(f"Session {session_id}: deleted, state cleared")

    def _arm_timer(self, session_id: str) -> None:
        """Start the idle confirmation timer unless already notified or armed."""
        state = self._sessions.setdefault(session_id, SessionNotificationState())

        if state.notified:
            return
        if state.pending_timer is not None:
            return

        state.activity_since_idle = False

        async def confirmation_timer():
            try:
                await asyncio.sleep(self.config.idle_confirmation_delay_sec)
            except asyncio.CancelledError:
                return
            await self._confirm_idle(session_id)

        task = asyncio.create_task(confirmation_timer())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        state.pending_timer = task
        logger.debug(
            f"Session {session_id}: idle, confirming in "
            f"{self.config.idle_confirmation_delay}ms"
        )

    async def _confirm_idle(self, session_id: str) -> None:
        """Decide whether a fired timer results in a notification.

        Args:
            session_id: Session whose confirmation timer fired
        """
        state = self._sessions.get(session_id)
        if state is None:
            return

        state.pending_timer = None

        if state.activity_since_idle:
            state.activity_since_idle = False
            logger.debug(f"Session {session_id}: activity since idle, not notifying")
            return

        if state.notified:
            return

        if self.config.skip_if_incomplete_todos:
            try:
                has_pending_work = await self.todo_checker.has_incomplete_todos(session_id)
            except Exception as e:
                logger.debug(f"Session {session_id}: todo check failed, assuming none open: {e}")
                has_pending_work = False

            if has_pending_work:
                logger.debug(f"Session {session_id}: incomplete todos, not notifying")
                return

            # Re-read live state: events may have arrived during the query.
            # A timer armed meanwhile, or one that already notified, wins.
            current = self._sessions.get(session_id)
            if (
                current is not state
                or state.activity_since_idle
                or state.pending_timer is not None
                or state.notified
            ):
                logger.debug(f"Session {session_id}: superseded during todo check")
                return

        state.notified = True
        logger.info(f"Session {session_id}: idle confirmed, notifying")

        await self._dispatch(session_id)

    async def _dispatch(self, session_id: str) -> None:
        """Show the notification and optionally play a sound.

        Errors are logged and discarded; the notified flag is never rolled back.
        """
        try:
            await self.notifier.notify(
                self.platform, self.config.title, self.config.message
            )

            if self.config.play_sound and self.config.sound_path:
                await self.notifier.play_sound(self.platform, self.config.sound_path)
        except Exception as e:
            logger.warning(f"Session {session_id}: notification failed: {e}")
