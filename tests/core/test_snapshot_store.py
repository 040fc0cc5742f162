"""Tests for the aiosqlite snapshot store."""

import aiosqlite
import pytest

from dialogue_memory.errors import MemoryStorageError
from dialogue_memory.memory_manager import MemoryManager
from dialogue_memory.models import Interaction, MemorySnapshot
from dialogue_memory.storage import SnapshotStore


@pytest.fixture
async def store(tmp_path):
    s = SnapshotStore(db_path=str(tmp_path / "memory" / "snapshots.db"))
    await s.initialize()
    yield s
    await s.close()


def make_blob(session_id: str, turn_count: int = 0) -> str:
    return MemorySnapshot(session_id=session_id, turn_count=turn_count).model_dump_json()


@pytest.mark.asyncio
async def test_table_exists_in_wal_mode(store):
    async with store._db.execute("PRAGMA journal_mode") as cursor:
        mode = (await cursor.fetchone())[0]
    assert mode.lower() == "wal"
    async with store._db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='memory_snapshots'"
    ) as cursor:
        rows = await cursor.fetchall()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_save_and_load(store):
    blob = make_blob("s1", turn_count=3)
    await store.save("s1", blob)
    assert await store.load("s1") == blob
    assert await store.load("missing") is None


@pytest.mark.asyncio
async def test_save_overwrites(store):
    await store.save("s1", make_blob("s1", 1))
    await store.save("s1", make_blob("s1", 2))
    loaded = MemorySnapshot.model_validate_json(await store.load("s1"))
    assert loaded.turn_count == 2
    assert await store.list_sessions() == ["s1"]


@pytest.mark.asyncio
async def test_rejects_invalid_blob(store):
    with pytest.raises(MemoryStorageError):
        await store.save("s1", "not a snapshot")
    assert await store.load("s1") is None


@pytest.mark.asyncio
async def test_delete(store):
    await store.save("s1", make_blob("s1"))
    assert await store.delete("s1") is True
    assert await store.delete("s1") is False
    assert await store.list_sessions() == []


@pytest.mark.asyncio
async def test_list_sessions(store):
    for session_id in ["a", "b", "c"]:
        await store.save(session_id, make_blob(session_id))
    assert await store.list_sessions() == ["c", "b", "a"]


@pytest.mark.asyncio
async def test_list_sessions_resave_moves_to_front(store):
    for session_id in ["a", "b", "c"]:
        await store.save(session_id, make_blob(session_id))
    await store.save("a", make_blob("a", turn_count=5))
    assert await store.list_sessions() == ["a", "c", "b"]


@pytest.mark.asyncio
async def test_initialize_adds_save_order_column(tmp_path):
    db_path = tmp_path / "legacy.db"
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            """
            CREATE TABLE memory_snapshots (
                session_id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                turn_count INTEGER DEFAULT 0,
                blob TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        await db.commit()

    s = SnapshotStore(db_path=str(db_path))
    await s.initialize()
    try:
        await s.save("a", make_blob("a"))
        await s.save("b", make_blob("b"))
        assert await s.list_sessions() == ["b", "a"]
    finally:
        await s.close()


@pytest.mark.asyncio
async def test_uninitialized_store_raises(tmp_path):
    s = SnapshotStore(db_path=str(tmp_path / "x.db"))
    with pytest.raises(RuntimeError):
        await s.load("s1")


@pytest.mark.asyncio
async def test_restore_manager_across_restart(store, core_config):
    before = MemoryManager(config=core_config)
    await before.store_interaction("s1", Interaction(input="I like jazz", response="Noted."))
    await store.save("s1", await before.export_memory("s1"))
    await before.close()

    after = MemoryManager(config=core_config)
    await after.import_memory("s1", await store.load("s1"))
    context = await after.get_context("s1", "music")
    await after.close()

    assert [t.input for t in context.history] == ["I like jazz"]
    assert "User: I like jazz" in context.memories
