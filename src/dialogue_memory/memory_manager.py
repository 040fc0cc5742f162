"""Memory Manager - facade over short-term and long-term memory.

This module provides the main MemoryManager class that consuming applications
use. It owns per-session memory lifecycle: context retrieval, interaction
storage with background long-term ingestion, rolling summaries, session
eviction, and export/import for persistence across restarts.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol

from loguru import logger
from pydantic import ValidationError

from .config import CoreConfig
from .embedding import create_embedder
from .errors import MemoryStorageError
from .long_term import LongTermMemoryStore
from .models import Interaction, MemoryContext, MemoryEntry, MemorySnapshot
from .short_term import ShortTermMemoryStore
from .summarizer import HeuristicSummarizer, Summarizer
from .token_counter import TokenCounter

LONG_INPUT_CHARS = 100
LONG_RESPONSE_CHARS = 200


class MemoryManagerInterface(Protocol):
    """Protocol defining the memory API consumed by the pipeline."""

    async def get_context(self, session_id: str, query: str) -> MemoryContext:
        """Get history, relevant memories and summary for a session."""
        ...

    async def store_interaction(
        self, session_id: str, interaction: Interaction
    ) -> None:
        """Store a completed interaction."""
        ...


def build_memory_entries(interaction: Interaction) -> list[MemoryEntry]:
    """Split an interaction into user and assistant long-term entries.

    Importance starts at 1.0 and is raised for long inputs, questions
    (both sides) and long responses.
    """
    user_importance = 1.0
    response_importance = 1.0
    if len(interaction.input) > LONG_INPUT_CHARS:
        user_importance += 0.2
    if "?" in interaction.input:
        user_importance += 0.3
        response_importance += 0.3
    if len(interaction.response) > LONG_RESPONSE_CHARS:
        response_importance += 0.2

    return [
        MemoryEntry(
            content=f"User: {interaction.input}",
            created_at=interaction.timestamp,
            tags=["user_input"],
            importance=user_importance,
        ),
        MemoryEntry(
            content=f"Assistant: {interaction.response}",
            created_at=interaction.timestamp,
            tags=["assistant_response"],
            importance=response_importance,
        ),
    ]


class _SessionState:
    """Runtime bookkeeping for one live session.

    The object itself identifies the session generation: once dropped, a new
    session with the same ID gets a new state, and work captured against the
    old one is discarded.
    """

    __slots__ = (
        "last_access", "summary", "pending_summary", "turn_count",
        "store_lock", "ingest_lock",
    )

    def __init__(self, now: float):
        self.last_access = now
        self.summary: str | None = None
        self.pending_summary: list[Interaction] = []
        self.turn_count = 0
        self.store_lock = asyncio.Lock()
        self.ingest_lock = asyncio.Lock()


class MemoryManager:
    """Main memory facade.

    Provides:
    - Context retrieval (recent history + relevant memories + summary)
    - Ordered per-session interaction storage
    - Fire-and-forget long-term ingestion (failures are logged)
    - Rolling summaries every ``summarize_after_turns`` turns
    - Optional idle-TTL and capacity eviction of whole sessions
    - Export/import of a session as a JSON blob
    """

    def __init__(
        self,
        config: CoreConfig | None = None,
        short_term: ShortTermMemoryStore | None = None,
        long_term: LongTermMemoryStore | None = None,
        summarizer: Summarizer | None = None,
        token_counter: TokenCounter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize memory manager.

        Args:
            config: Core configuration (uses defaults if not provided)
            short_term: Short-term store (built from config if omitted)
            long_term: Long-term store (built from config if omitted)
            summarizer: Summary generator (HeuristicSummarizer by default)
            token_counter: Counter used by estimate_token_count
            clock: Monotonic clock used for session idle tracking
        """
        self.config = config or CoreConfig()
        self._short_term = short_term or ShortTermMemoryStore(
            max_turns=self.config.short_term.max_turns
        )
        self._long_term = long_term or LongTermMemoryStore(
            embedder=create_embedder(self.config.embedding),
            max_entries=self.config.long_term.max_entries,
        )
        self._summarizer = summarizer or HeuristicSummarizer()
        self._token_counter = token_counter or TokenCounter()
        self._clock = clock

        self._sessions: dict[str, _SessionState] = {}
        self._pending: set[asyncio.Task] = set()

        logger.info(
            f"MemoryManager initialized: max_turns={self.config.short_term.max_turns}, "
            f"embedding={self.config.embedding.provider}, "
            f"top_k={self.config.retrieval.top_k}"
        )

    @property
    def short_term(self) -> ShortTermMemoryStore:
        return self._short_term

    @property
    def long_term(self) -> LongTermMemoryStore:
        return self._long_term

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _touch(self, session_id: str) -> _SessionState:
        session = self._sessions.get(session_id)
        if session is None:
            max_sessions = self.config.session.max_sessions
            if max_sessions is not None:
                while len(self._sessions) >= max_sessions:
                    lru = min(self._sessions, key=lambda s: self._sessions[s].last_access)
                    logger.info(
                        f"Session cap {max_sessions} reached, evicting "
                        f"least recently used session {lru}"
                    )
                    self._drop_session(lru)
            session = _SessionState(self._clock())
            self._sessions[session_id] = session
        else:
            session.last_access = self._clock()
        return session

    def _is_current(self, session_id: str, session: _SessionState) -> bool:
        return self._sessions.get(session_id) is session

    def _drop_session(self, session_id: str) -> None:
        # Unregister first so in-flight ingestion sees the session as gone
        # before the stores are wiped
        self._sessions.pop(session_id, None)
        self._short_term.clear(session_id)
        self._long_term.clear(session_id)

    def active_sessions(self) -> list[str]:
        return list(self._sessions)

    def evict_idle_sessions(self, now: float | None = None) -> list[str]:
        """Drop sessions idle for longer than ``session.idle_ttl_seconds``.

        Args:
            now: Clock reading to compare against (defaults to the clock)

        Returns:
            IDs of evicted sessions (empty when no TTL is configured)
        """
        ttl = self.config.session.idle_ttl_seconds
        if ttl is None:
            return []
        now = self._clock() if now is None else now
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_access > ttl
        ]
        for session_id in expired:
            self._drop_session(session_id)
        if expired:
            logger.info(f"Evicted {len(expired)} idle sessions: {expired}")
        return expired

    # ------------------------------------------------------------------
    # Retrieval and storage
    # ------------------------------------------------------------------

    async def get_context(self, session_id: str, query: str) -> MemoryContext:
        """Build the memory context for a query.

        Args:
            session_id: Session identifier
            query: Current user query, used for relevance ranking

        Returns:
            MemoryContext with history (oldest first), memories and summary

        Raises:
            MemoryStorageError: If either store fails
        """
        session = self._touch(session_id)
        try:
            history = self._short_term.read(session_id)
            memories = await asyncio.to_thread(
                self._long_term.retrieve,
                session_id,
                query,
                self.config.retrieval.top_k,
                self.config.retrieval.min_score,
            )
        except Exception as e:
            logger.error(f"Failed to get context for session {session_id}: {e}")
            raise MemoryStorageError(
                f"Failed to retrieve memory context: {e}"
            ) from e

        context = MemoryContext(
            history=history,
            memories=memories,
            summary=session.summary,
        )
        logger.debug(
            f"Context for session {session_id}: history={len(history)}, "
            f"memories={len(memories)}, summary={context.summary is not None}"
        )
        return context

    async def store_interaction(
        self, session_id: str, interaction: Interaction
    ) -> None:
        """Store an interaction.

        The short-term write happens before this coroutine returns. Long-term
        ingestion runs in the background; call :meth:`flush` to wait for it.

        Args:
            session_id: Session identifier
            interaction: Completed interaction

        Raises:
            MemoryStorageError: If the short-term write fails
        """
        session = self._touch(session_id)
        async with session.store_lock:
            try:
                self._short_term.append(session_id, interaction)
            except Exception as e:
                logger.error(
                    f"Failed to store interaction for session {session_id}: {e}"
                )
                raise MemoryStorageError(f"Failed to store interaction: {e}") from e

            session.turn_count += 1
            self._maybe_summarize(session_id, session, interaction)
            self._schedule_ingestion(session_id, session, interaction)

    def _maybe_summarize(
        self, session_id: str, session: _SessionState, interaction: Interaction
    ) -> None:
        if not self.config.summary.enabled:
            return
        session.pending_summary.append(interaction)
        if len(session.pending_summary) < self.config.summary.summarize_after_turns:
            return
        pending, session.pending_summary = session.pending_summary, []
        try:
            summary = self._summarizer.summarize(pending)
        except Exception as e:
            logger.warning(f"Failed to generate summary for session {session_id}: {e}")
            return
        if summary:
            session.summary = summary
            logger.info(f"Generated summary for session {session_id}")

    def _schedule_ingestion(
        self, session_id: str, session: _SessionState, interaction: Interaction
    ) -> None:
        task = asyncio.create_task(
            self._ingest(session_id, session, interaction),
            name=f"ingest-{session_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _ingest(
        self, session_id: str, session: _SessionState, interaction: Interaction
    ) -> None:
        async with session.ingest_lock:
            if not self._is_current(session_id, session):
                logger.debug(
                    f"Skipping ingestion for session {session_id}: cleared meanwhile"
                )
                return
            try:
                stored = await asyncio.to_thread(
                    self._long_term.add_entries,
                    session_id,
                    build_memory_entries(interaction),
                    lambda: self._is_current(session_id, session),
                )
            except Exception as e:
                logger.error(
                    f"Long-term ingestion failed for session {session_id}: {e}"
                )
                return
            if not stored:
                logger.debug(
                    f"Discarded ingestion for session {session_id}: cleared meanwhile"
                )

    async def flush(self) -> None:
        """Wait for every pending long-term ingestion task."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.flush()
        logger.info("MemoryManager closed")

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def clear_memory(self, session_id: str) -> None:
        """Wipe both stores and the summary for a session. Idempotent."""
        self._drop_session(session_id)
        logger.info(f"Cleared memory for session {session_id}")

    async def export_memory(self, session_id: str) -> str:
        """Serialize a session's memory to a JSON blob.

        Pending ingestion is awaited first so the blob reflects every stored
        interaction.
        """
        await self.flush()
        session = self._sessions.get(session_id)
        snapshot = MemorySnapshot(
            session_id=session_id,
            short_term=self._short_term.read(session_id),
            long_term=self._long_term.entries(session_id),
            summary=session.summary if session else None,
            pending_summary=list(session.pending_summary) if session else [],
            turn_count=session.turn_count if session else 0,
        )
        logger.debug(
            f"Exported session {session_id}: short_term={len(snapshot.short_term)}, "
            f"long_term={len(snapshot.long_term)}"
        )
        return snapshot.model_dump_json()

    async def import_memory(self, session_id: str, blob: str | bytes) -> None:
        """Replace a session's memory with the contents of an exported blob.

        Raises:
            MemoryStorageError: If the blob is not a valid snapshot
        """
        try:
            snapshot = MemorySnapshot.model_validate_json(blob)
        except ValidationError as e:
            raise MemoryStorageError(f"Invalid memory snapshot: {e}") from e

        await self.flush()
        self._drop_session(session_id)
        session = self._touch(session_id)
        try:
            self._short_term.replace(session_id, snapshot.short_term)
            await asyncio.to_thread(
                self._long_term.add_entries, session_id, snapshot.long_term
            )
        except Exception as e:
            raise MemoryStorageError(f"Failed to import memory: {e}") from e

        session.summary = snapshot.summary
        session.pending_summary = list(snapshot.pending_summary)
        session.turn_count = snapshot.turn_count
        logger.info(
            f"Imported memory for session {session_id} "
            f"(from {snapshot.session_id}, short_term={len(snapshot.short_term)}, "
            f"long_term={len(snapshot.long_term)})"
        )

    def estimate_token_count(self, context: MemoryContext) -> int:
        return self._token_counter.count_context(context)
