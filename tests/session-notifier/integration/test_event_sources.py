"""Integration tests for the HTTP receiver and the SSE subscriber.

Both event sources feed a real scheduler (50ms idle delay) wired to a mock
notification sink.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from aiohttp import test_utils, web

from session_notifier.event_stream import EventStreamSubscriber, parse_event_payload
from session_notifier.models import Platform
from session_notifier.receiver import EventReceiver

CONFIRM_WAIT = 0.15


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or the timeout elapses."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


class TestEventReceiver:
    """POST /event and GET /health."""

    @pytest.mark.asyncio
    async def test_pushed_idle_event_notifies(self, make_scheduler, notifier):
        scheduler = make_scheduler()
        receiver = EventReceiver(port=0, scheduler=scheduler)

        async with test_utils.TestClient(test_utils.TestServer(receiver.app)) as client:
            response = await client.post(
                "/event",
                json={"type": "session.idle", "properties": {"sessionID": "ses_1"}},
            )
            assert response.status == 200
            assert await response.json() == {"accepted": 1}

            await asyncio.sleep(CONFIRM_WAIT)

        notifier.notify.assert_awaited_once_with(
            Platform.LINUX, "OpenCode", "Agent is ready for input"
        )

    @pytest.mark.asyncio
    async def test_batch_with_activity_suppresses_notification(self, make_scheduler, notifier):
        scheduler = make_scheduler()
        receiver = EventReceiver(port=0, scheduler=scheduler)

        async with test_utils.TestClient(test_utils.TestServer(receiver.app)) as client:
            response = await client.post(
                "/event",
                json=[
                    {"type": "session.idle", "properties": {"sessionID": "ses_1"}},
                    {"event": {"type": "message.updated", "properties": {"info": {"sessionID": "ses_1"}}}},
                    "not an event",
                ],
            )
            assert await response.json() == {"accepted": 2}

            await asyncio.sleep(CONFIRM_WAIT)

        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_json_rejected(self, make_scheduler):
        receiver = EventReceiver(port=0, scheduler=make_scheduler())

        async with test_utils.TestClient(test_utils.TestServer(receiver.app)) as client:
            response = await client.post(
                "/event", data="{oops", headers={"Content-Type": "application/json"}
            )
            assert response.status == 400

    @pytest.mark.asyncio
    async def test_health(self, make_scheduler, events):
        scheduler = make_scheduler()
        await scheduler.handle(events.created("ses_1"))
        receiver = EventReceiver(port=0, scheduler=scheduler)

        async with test_utils.TestClient(test_utils.TestServer(receiver.app)) as client:
            response = await client.get("/health")
            assert await response.json() == {
                "status": "ok",
                "platform": "linux",
                "sessions": 1,
            }


class TestParseEventPayload:
    def test_bare_event(self):
        event = parse_event_payload({"type": "session.idle", "properties": {"sessionID": "s"}})
        assert event.type == "session.idle"
        assert event.properties == {"sessionID": "s"}

    @pytest.mark.parametrize("wrapper", ["payload", "event"])
    def test_wrapped_event(self, wrapper):
        event = parse_event_payload({wrapper: {"type": "session.deleted"}})
        assert event.type == "session.deleted"
        assert event.properties == {}

    @pytest.mark.parametrize("payload", [None, [], "x", {"properties": {}}, {"type": 3}])
    def test_rejects_non_events(self, payload):
        assert parse_event_payload(payload) is None


class TestEventStreamSubscriber:
    """SSE subscription against a local aiohttp server."""

    @pytest.mark.asyncio
    async def test_stream_events_reach_scheduler(self):
        async def handle_events(request: web.Request) -> web.StreamResponse:
            response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
            await response.prepare(request)
            await response.write(b": connected\n\n")
            idle = {"type": "session.idle", "properties": {"sessionID": "ses_1"}}
            await response.write(f"data: {json.dumps(idle)}\n\n".encode())
            await response.write(b"data: not-json\n\n")
            wrapped = {
                "payload": {
                    "type": "message.updated",
                    "properties": {"info": {"sessionID": "ses_1"}},
                }
            }
            await response.write(f"data: {json.dumps(wrapped)}\n\n".encode())
            await response.write_eof()
            return response

        app = web.Application()
        app.router.add_get("/event", handle_events)
        server = test_utils.TestServer(app)
        await server.start_server()

        scheduler = AsyncMock()
        subscriber = EventStreamSubscriber(
            base_url=str(server.make_url("/")),
            scheduler=scheduler,
            reconnect_delay=30.0,
        )
        try:
            await subscriber.start()
            await wait_for(lambda: scheduler.handle.await_count >= 2)
        finally:
            await subscriber.stop()
            await server.close()

        kinds = [c.args[0].type for c in scheduler.handle.await_args_list]
        assert kinds == ["session.idle", "message.updated"]

    @pytest.mark.asyncio
    async def test_stream_drives_notification(self, make_scheduler, notifier):
        async def handle_events(request: web.Request) -> web.StreamResponse:
            response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
            await response.prepare(request)
            idle = {"type": "session.idle", "properties": {"sessionID": "ses_1"}}
            await response.write(f"data: {json.dumps(idle)}\n\n".encode())
            # Keep the stream open past the confirmation delay
            await asyncio.sleep(0.5)
            return response

        app = web.Application()
        app.router.add_get("/event", handle_events)
        server = test_utils.TestServer(app)
        await server.start_server()

        scheduler = make_scheduler()
        subscriber = EventStreamSubscriber(
            base_url=str(server.make_url("/")),
            scheduler=scheduler,
            reconnect_delay=30.0,
        )
        try:
            await subscriber.start()
            await wait_for(lambda: notifier.notify.await_count >= 1)
        finally:
            await subscriber.stop()
            await scheduler.stop()
            await server.close()

        assert notifier.notify.await_count == 1

    @pytest.mark.asyncio
    async def test_process_message_ignores_bad_json(self):
        scheduler = AsyncMock()
        subscriber = EventStreamSubscriber("http://127.0.0.1:4096", scheduler=scheduler)

        await subscriber.process_message("{nope")
        await subscriber.process_message(json.dumps({"hello": "world"}))

        scheduler.handle.assert_not_called()
