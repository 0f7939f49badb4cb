"""HTTP event receiver for the OpenCode Session Idle Notifier.

An alternative to the SSE subscriber for hosts that push events, such as a
thin OpenCode plugin forwarding its event hook.

Endpoints:
- POST /event - One event, {"event": {...}}, or a JSON list of events
- GET /health - Health check endpoint
"""

import json
import logging
from typing import TYPE_CHECKING, Optional

from aiohttp import web

from .event_stream import parse_event_payload

if TYPE_CHECKING:
    from .scheduler import SessionNotificationScheduler

logger = logging.getLogger(__name__)


class EventReceiver:
    """HTTP receiver that forwards pushed events to the scheduler."""

    def __init__(
        self,
        port: int,
        scheduler: "SessionNotificationScheduler",
        host: str = "127.0.0.1",
    ) -> None:
        """Initialize the receiver.

        Args:
            port: HTTP port to listen on
            scheduler: Scheduler to forward events to
            host: Interface to bind (loopback by default)
        """
        self.port = port
        self.host = host
        self.scheduler = scheduler
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes."""
        self.app.router.add_get("/health", self._handle_health)
        self.app.router.add_post("/event", self._handle_event)

    async def start(self) -> None:
        """Start the HTTP server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"Event receiver listening on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Event receiver stopped")

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response(
            {
                "status": "ok",
                "platform": self.scheduler.platform.value,
                "sessions": len(self.scheduler.sessions),
            }
        )

    async def _handle_event(self, request: web.Request) -> web.Response:
        """Accept one or more lifecycle events.

        Malformed entries inside a valid body are skipped, not rejected.
        """
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            logger.debug(f"Rejected event body: {e}")
            return web.Response(status=400, text=f"Invalid JSON: {e}")

        payloads = body if isinstance(body, list) else [body]

        accepted = 0
        for payload in payloads:
            event = parse_event_payload(payload)
            if event is None:
                continue
            await self.scheduler.handle(event)
            accepted += 1

        return web.json_response({"accepted": accepted})
