"""Long-term memory: per-session fragments ranked by semantic similarity.

Fragments are embedded on insert and kept in a per-session matrix. A query is
embedded with the same backend and ranked by cosine similarity:

  order = descending score, then insertion order for ties

so retrieval is deterministic for a given store state.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence

import numpy as np
from loguru import logger

from .embedding import Embedder, HashingEmbedder
from .models import MemoryEntry, ScoredMemory


class _SessionIndex:
    __slots__ = ("lock", "entries", "vectors")

    def __init__(self, dimension: int):
        self.lock = threading.Lock()
        self.entries: list[MemoryEntry] = []
        self.vectors = np.zeros((0, dimension), dtype=np.float32)


class LongTermMemoryStore:
    """Stores memory fragments per session and retrieves them by relevance.

    Attributes:
        max_entries: Optional per-session cap. When exceeded, the least
            important entries are dropped (ties: fewer accesses, then older).
    """

    def __init__(
        self,
        embedder: Embedder | None = None,
        max_entries: int | None = None,
    ):
        """Initialize the store.

        Args:
            embedder: Embedding backend (defaults to HashingEmbedder)
            max_entries: Optional per-session cap, None for unbounded
        """
        self._embedder = embedder or HashingEmbedder()
        self.max_entries = max_entries
        self._indexes: dict[str, _SessionIndex] = {}
        self._registry_lock = threading.Lock()

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    def _embed(self, texts: Sequence[str]) -> np.ndarray:
        vectors = np.asarray(self._embedder.encode(list(texts)), dtype=np.float32)
        return vectors.reshape(len(texts), -1)

    def add(
        self,
        session_id: str,
        text: str,
        *,
        importance: float = 1.0,
        tags: Iterable[str] = (),
        source: str = "conversation",
        metadata: dict | None = None,
    ) -> MemoryEntry:
        """Embed and store one memory fragment. No deduplication is done.

        Args:
            session_id: Session identifier
            text: Fragment content
            importance: Weight used when the session is over capacity
            tags: Free-form tags
            source: Where the fragment came from
            metadata: Extra key/value data

        Returns:
            The stored entry
        """
        entry = MemoryEntry(
            content=text,
            importance=importance,
            tags=list(tags),
            source=source,
            metadata=metadata or {},
        )
        self.add_entries(session_id, [entry])
        return entry

    def add_entries(
        self,
        session_id: str,
        entries: Sequence[MemoryEntry],
        guard: Callable[[], bool] | None = None,
    ) -> bool:
        """Embed and append several entries in insertion order.

        Args:
            session_id: Session identifier
            entries: Entries to store
            guard: Optional check run under the session lock right before
                the write. If it returns False nothing is stored.

        Returns:
            True if the entries were stored
        """
        if not entries:
            return True
        vectors = self._embed([e.content for e in entries])

        with self._registry_lock:
            if guard is not None and not guard():
                return False
            index = self._indexes.get(session_id)
            if index is None:
                index = _SessionIndex(self._embedder.dimension)
                self._indexes[session_id] = index

        with index.lock:
            if guard is not None and not guard():
                return False
            index.entries.extend(entries)
            index.vectors = (
                np.vstack([index.vectors, vectors]) if len(index.vectors) else vectors
            )
            dropped = self._enforce_capacity(index)
            total = len(index.entries)

        logger.debug(
            f"Stored {len(entries)} long-term entries for session {session_id} "
            f"(total={total}, dropped={dropped})"
        )
        return True

    def _enforce_capacity(self, index: _SessionIndex) -> int:
        if self.max_entries is None or len(index.entries) <= self.max_entries:
            return 0
        overflow = len(index.entries) - self.max_entries
        ranked = sorted(
            range(len(index.entries)),
            key=lambda i: (
                index.entries[i].importance,
                index.entries[i].access_count,
                i,
            ),
        )
        drop = set(ranked[:overflow])
        keep = [i for i in range(len(index.entries)) if i not in drop]
        index.entries = [index.entries[i] for i in keep]
        index.vectors = index.vectors[keep]
        return overflow

    def search(
        self,
        session_id: str,
        query: str,
        top_k: int,
        min_score: float | None = None,
    ) -> list[ScoredMemory]:
        """Rank the session's fragments against ``query``.

        Args:
            session_id: Session identifier
            query: Query text
            top_k: Maximum number of results
            min_score: Optional minimum cosine similarity

        Returns:
            Up to ``top_k`` scored entries, best first
        """
        index = self._indexes.get(session_id)
        if top_k <= 0 or index is None:
            return []

        query_vector = self._embed([query])[0]
        now = datetime.now(timezone.utc)

        with index.lock:
            if not index.entries:
                return []
            scores = index.vectors @ query_vector
            positions = np.arange(len(index.entries))
            # lexsort: last key is primary
            order = np.lexsort((positions, -scores))

            results: list[ScoredMemory] = []
            for position in order:
                score = float(scores[position])
                if min_score is not None and score < min_score:
                    continue
                entry = index.entries[position]
                entry.access_count += 1
                entry.last_accessed = now
                results.append(
                    ScoredMemory(entry=entry, score=score, position=int(position))
                )
                if len(results) >= top_k:
                    break

        logger.debug(
            f"Retrieved {len(results)}/{len(index.entries)} long-term entries "
            f"for session {session_id}"
        )
        return results

    def retrieve(
        self,
        session_id: str,
        query: str,
        top_k: int,
        min_score: float | None = None,
    ) -> list[str]:
        """Return up to ``top_k`` fragment texts ranked by relevance to ``query``."""
        return [
            result.entry.content
            for result in self.search(session_id, query, top_k, min_score)
        ]

    def entries(self, session_id: str) -> list[MemoryEntry]:
        """Copies of the session's entries in insertion order."""
        index = self._indexes.get(session_id)
        if index is None:
            return []
        with index.lock:
            return [entry.model_copy(deep=True) for entry in index.entries]

    def clear(self, session_id: str) -> None:
        with self._registry_lock:
            self._indexes.pop(session_id, None)

    def sessions(self) -> list[str]:
        with self._registry_lock:
            return list(self._indexes)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._indexes
