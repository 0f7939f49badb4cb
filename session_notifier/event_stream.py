"""OpenCode event bus subscriber.

This module subscribes to the OpenCode server's Server-Sent Events stream
and forwards each lifecycle event to the scheduler.

Architecture:
    opencode server (GET /event) → EventStreamSubscriber → scheduler.handle()
"""

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Optional

import aiohttp
from pydantic import ValidationError

from .models import LifecycleEvent

if TYPE_CHECKING:
    from .scheduler import SessionNotificationScheduler

logger = logging.getLogger(__name__)


def parse_event_payload(data: Any) -> Optional[LifecycleEvent]:
    """Turn a decoded JSON payload into a LifecycleEvent.

    Accepts a bare {"type", "properties"} object or one wrapped under
    "payload" or "event". Returns None for anything else.
    """
    if not isinstance(data, dict):
        return None

    if "type" not in data:
        for key in ("payload", "event"):
            if isinstance(data.get(key), dict):
                data = data[key]
                break

    try:
        return LifecycleEvent.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Ignoring malformed event: {e}")
        return None


class EventStreamSubscriber:
    """Subscribe to the OpenCode SSE event stream.

    Reconnects after reconnect_delay seconds whenever the stream ends or
    fails, until stop() is called.

    Example:
        >>> subscriber = EventStreamSubscriber(
        ...     base_url="http://127.0.0.1:4096",
        ...     scheduler=scheduler,
        ... )
        >>> await subscriber.start()
        >>> # ... later ...
        >>> await subscriber.stop()
    """

    def __init__(
        self,
        base_url: str,
        scheduler: "SessionNotificationScheduler",
        reconnect_delay: float = 2.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """Initialize the subscriber.

        Args:
            base_url: OpenCode server URL
            scheduler: Scheduler receiving the events
            reconnect_delay: Seconds to wait before reconnecting
            session: Optional shared client session
        """
        self.base_url = base_url.rstrip("/")
        self.scheduler = scheduler
        self.reconnect_delay = reconnect_delay
        self._session = session
        self._owns_session = session is None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def event_url(self) -> str:
        return f"{self.base_url}/event"

    async def start(self) -> None:
        """Start reading the event stream in a background task."""
        if self._running:
            logger.warning("Event stream subscriber already running")
            return

        if self._session is None:
            # No total timeout: the stream stays open indefinitely
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=10)
            )

        self._running = True
        self._task = asyncio.create_task(self._read_loop())
        logger.info(f"Subscribed to OpenCode events at {self.event_url}")

    async def stop(self) -> None:
        """Stop reading and release the client session."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        logger.info("Event stream subscriber stopped")

    async def _read_loop(self) -> None:
        """Read the stream, reconnecting on EOF or error."""
        while self._running:
            try:
                await self._read_stream()
                logger.info("OpenCode event stream closed, reconnecting...")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"OpenCode event stream error: {e}")

            if self._running:
                await asyncio.sleep(self.reconnect_delay)

    async def _read_stream(self) -> None:
        """Consume one SSE connection until it ends."""
        headers = {"Accept": "text/event-stream"}
        async with self._session.get(self.event_url, headers=headers) as response:
            response.raise_for_status()
            logger.debug(f"Connected to {self.event_url}")

            data_lines: list[str] = []
            async for raw in response.content:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")

                if not line:
                    # Blank line terminates an SSE message
                    if data_lines:
                        await self.process_message("\n".join(data_lines))
                        data_lines = []
                    continue

                if line.startswith(":"):
                    continue
                if line.startswith("data:"):
                    data_lines.append(line[5:].lstrip(" "))

            if data_lines:
                await self.process_message("\n".join(data_lines))

    async def process_message(self, data: str) -> None:
        """Decode one SSE data payload and hand it to the scheduler."""
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            logger.debug(f"Failed to parse event JSON: {e}")
            return

        event = parse_event_payload(payload)
        if event is not None:
            await self.scheduler.handle(event)
