"""Outstanding-work check for OpenCode sessions.

Before notifying, the scheduler asks whether the session still has open
todos. The check is fail-open: if the todo list cannot be retrieved, the
session is treated as having no outstanding work so a notification is never
blocked indefinitely.
"""

import logging
from typing import Any, Iterable, Optional, Protocol

import aiohttp
from pydantic import TypeAdapter

from .models import FINISHED_TODO_STATUSES, Todo

logger = logging.getLogger(__name__)

_TODO_LIST = TypeAdapter(list[Todo])


class TodoChecker(Protocol):
    """Capability the scheduler uses to gate notifications on open work."""

    async def has_incomplete_todos(self, session_id: str) -> bool:
        ...


def has_incomplete_work(todos: Optional[Iterable[Todo]]) -> bool:
    """Return True if any todo is neither completed nor cancelled."""
    if not todos:
        return False
    return any(todo.status not in FINISHED_TODO_STATUSES for todo in todos)


def parse_todo_response(payload: Any) -> list[Todo]:
    """Parse a todo response body.

    The OpenCode server returns a bare list; SDK-style wrappers put the list
    under "data". A null body means no todos.
    """
    if isinstance(payload, dict):
        payload = payload.get("data")
    if payload is None:
        return []
    return _TODO_LIST.validate_python(payload)


class OpenCodeTodoChecker:
    """Query the OpenCode server for a session's todo list.

    Example:
        >>> checker = OpenCodeTodoChecker("http://127.0.0.1:4096")
        >>> await checker.has_incomplete_todos("ses_abc123")
        False
        >>> await checker.close()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """Initialize the checker.

        Args:
            base_url: OpenCode server URL (e.g., http://127.0.0.1:4096)
            timeout: Request timeout in seconds
            session: Optional shared client session. If None, one is created
                lazily and closed by close().
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def todo_url(self, session_id: str) -> str:
        """Return the todo endpoint for a session."""
        return f"{self.base_url}/session/{session_id}/todo"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def fetch_todos(self, session_id: str) -> list[Todo]:
        """Fetch and parse the todo list for a session.

        Raises:
            aiohttp.ClientError: On connection failures or non-2xx status.
            pydantic.ValidationError: If the body is not a todo list.
        """
        session = await self._get_session()
        async with session.get(self.todo_url(session_id), timeout=self.timeout) as response:
            response.raise_for_status()
            payload = await response.json(content_type=None)
        return parse_todo_response(payload)

    async def has_incomplete_todos(self, session_id: str) -> bool:
        """Return True if the session has unfinished todos.

        Any failure is reported as False (fail-open).
        """
        try:
            todos = await self.fetch_todos(session_id)
        except Exception as e:
            logger.debug(f"Session {session_id}: todo check failed, assuming none open: {e}")
            return False

        pending = has_incomplete_work(todos)
        if pending:
            logger.debug(f"Session {session_id}: has incomplete todos")
        return pending

    async def close(self) -> None:
        """Close the client session if this checker created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
