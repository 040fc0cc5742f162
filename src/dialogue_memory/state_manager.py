"""Per-session application state kept in memory."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from .errors import MemoryStorageError
from .models import ApplicationState


class StateManager(Protocol):
    async def get_state(self, session_id: str) -> ApplicationState: ...

    async def update_state(self, session_id: str, **changes: Any) -> ApplicationState: ...


class InMemoryStateManager:
    """Stores one ApplicationState per session.

    Updates for the same session are serialized; unknown sessions read as a
    default state without being created.
    """

    def __init__(self):
        self._states: dict[str, ApplicationState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def get_state(self, session_id: str) -> ApplicationState:
        state = self._states.get(session_id)
        return state.model_copy(deep=True) if state else ApplicationState()

    async def update_state(self, session_id: str, **changes: Any) -> ApplicationState:
        """Merge ``changes`` into the session's state.

        Returns:
            The new state

        Raises:
            MemoryStorageError: If the changes do not validate
        """
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            current = self._states.get(session_id) or ApplicationState()
            try:
                updated = current.with_updates(**changes)
            except ValidationError as e:
                logger.error(f"Failed to update state for session {session_id}: {e}")
                raise MemoryStorageError(f"Failed to update state: {e}") from e
            self._states[session_id] = updated
        logger.debug(f"Updated state for session {session_id}: {sorted(changes)}")
        return updated.model_copy(deep=True)

    async def clear_state(self, session_id: str) -> None:
        self._states.pop(session_id, None)
        self._locks.pop(session_id, None)

    def sessions(self) -> list[str]:
        return list(self._states)
