"""SQLite store for memory snapshots.

Holds the JSON blobs produced by ``MemoryManager.export_memory`` so a session
can be restored with ``MemoryManager.import_memory`` after a restart. One row
per session; saving again overwrites.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
from loguru import logger
from pydantic import ValidationError

from ..errors import MemoryStorageError
from ..models import MemorySnapshot


class SnapshotStore:
    """aiosqlite-backed snapshot storage, WAL mode."""

    def __init__(self, db_path: str = "./memory/dialogue_memory.db"):
        """Initialize snapshot store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        logger.info(f"SnapshotStore initialized with db_path: {db_path}")

    async def initialize(self) -> None:
        """Open the database and create the table if it doesn't exist."""
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS memory_snapshots (
                session_id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                turn_count INTEGER DEFAULT 0,
                blob TEXT NOT NULL,
                save_seq INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await self._migrate_snapshots()
        await self._db.commit()
        logger.info("Snapshot database initialized successfully")

    async def _migrate_snapshots(self) -> None:
        """Add columns introduced after the first release if missing."""
        async with self._db.execute("PRAGMA table_info(memory_snapshots)") as cursor:
            cols = await cursor.fetchall()
        existing = {c[1] for c in cols}
        if "save_seq" not in existing:
            await self._db.execute(
                "ALTER TABLE memory_snapshots ADD COLUMN save_seq INTEGER NOT NULL DEFAULT 0"
            )
        logger.debug("memory_snapshots migration check complete")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Snapshot database connection closed")

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._db

    async def save(self, session_id: str, blob: str) -> None:
        """Insert or replace the snapshot for a session.

        Raises:
            MemoryStorageError: If ``blob`` is not a valid snapshot
        """
        db = self._conn()
        try:
            snapshot = MemorySnapshot.model_validate_json(blob)
        except ValidationError as e:
            raise MemoryStorageError(f"Refusing to save invalid snapshot: {e}") from e

        await db.execute(
            """
            INSERT INTO memory_snapshots (
                session_id, version, turn_count, blob, save_seq, updated_at
            )
            VALUES (
                ?, ?, ?, ?,
                (SELECT COALESCE(MAX(save_seq), 0) + 1 FROM memory_snapshots),
                CURRENT_TIMESTAMP
            )
            ON CONFLICT(session_id) DO UPDATE SET
                version = excluded.version,
                turn_count = excluded.turn_count,
                blob = excluded.blob,
                save_seq = excluded.save_seq,
                updated_at = CURRENT_TIMESTAMP
            """,
            (session_id, snapshot.version, snapshot.turn_count, blob),
        )
        await db.commit()
        logger.debug(f"Snapshot saved: {session_id} ({len(blob)} bytes)")

    async def load(self, session_id: str) -> str | None:
        """Return the stored blob, or None if the session has none."""
        db = self._conn()
        async with db.execute(
            "SELECT blob FROM memory_snapshots WHERE session_id = ?",
            (session_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def delete(self, session_id: str) -> bool:
        """Delete a session's snapshot.

        Returns:
            True if a snapshot was deleted, False if not found
        """
        db = self._conn()
        cursor = await db.execute(
            "DELETE FROM memory_snapshots WHERE session_id = ?",
            (session_id,),
        )
        await db.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug(f"Snapshot deleted: {session_id}")
        return deleted

    async def list_sessions(self) -> list[str]:
        """Session IDs with a stored snapshot, most recently saved first."""
        db = self._conn()
        async with db.execute(
            "SELECT session_id FROM memory_snapshots "
            "ORDER BY save_seq DESC, updated_at DESC, session_id"
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]
