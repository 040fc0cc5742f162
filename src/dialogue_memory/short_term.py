"""Short-term memory: a bounded window of recent interactions per session.

Each session owns a FIFO buffer of at most ``max_turns`` interactions.
Appending to a full buffer evicts the oldest interaction first.

Key features:
- Lazy per-session creation on first append or read
- One lock per session, so writers on different sessions never contend
- Reads return copies, never the live buffer
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterable

from loguru import logger

from .models import Interaction


class _SessionWindow:
    __slots__ = ("lock", "turns")

    def __init__(self, max_turns: int):
        self.lock = threading.Lock()
        self.turns: deque[Interaction] = deque(maxlen=max_turns)


class ShortTermMemoryStore:
    """Per-session bounded ordered sequence of recent interactions.

    Attributes:
        max_turns: Maximum number of interactions retained per session
    """

    def __init__(self, max_turns: int = 10) -> None:
        """Initialize the store.

        Args:
            max_turns: Maximum interactions kept per session (must be >= 1)
        """
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns
        self._windows: dict[str, _SessionWindow] = {}
        # Guards creation and removal of per-session slots only
        self._registry_lock = threading.Lock()

        logger.debug(f"ShortTermMemoryStore initialized with max_turns={max_turns}")

    def _window(self, session_id: str) -> _SessionWindow:
        window = self._windows.get(session_id)
        if window is not None:
            return window
        with self._registry_lock:
            window = self._windows.get(session_id)
            if window is None:
                window = _SessionWindow(self.max_turns)
                self._windows[session_id] = window
                logger.debug(f"Created short-term window for session {session_id}")
        return window

    def append(self, session_id: str, interaction: Interaction) -> Interaction | None:
        """Append an interaction, evicting the oldest one if the window is full.

        Args:
            session_id: Session identifier
            interaction: Interaction to append

        Returns:
            The evicted interaction, or None if nothing was evicted
        """
        window = self._window(session_id)
        with window.lock:
            evicted = None
            if len(window.turns) == window.turns.maxlen:
                evicted = window.turns[0]
            window.turns.append(interaction)
            size = len(window.turns)

        logger.debug(
            f"Appended interaction to session {session_id}: "
            f"window={size}/{self.max_turns}, evicted={evicted is not None}"
        )
        return evicted

    def read(self, session_id: str) -> list[Interaction]:
        """Return the session's window, oldest first. Empty for unknown sessions."""
        window = self._window(session_id)
        with window.lock:
            return list(window.turns)

    def replace(self, session_id: str, interactions: Iterable[Interaction]) -> None:
        """Replace a session's window, keeping only the newest ``max_turns``."""
        window = self._window(session_id)
        with window.lock:
            window.turns.clear()
            window.turns.extend(interactions)

    def clear(self, session_id: str) -> None:
        """Drop a session's window. Unknown sessions are ignored."""
        with self._registry_lock:
            removed = self._windows.pop(session_id, None)
        if removed is not None:
            logger.debug(f"Cleared short-term window for session {session_id}")

    def sessions(self) -> list[str]:
        with self._registry_lock:
            return list(self._windows)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._windows
