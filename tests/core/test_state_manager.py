import asyncio

import pytest

from dialogue_memory.errors import MemoryStorageError
from dialogue_memory.models import ApplicationState
from dialogue_memory.state_manager import InMemoryStateManager


@pytest.fixture
def state_manager():
    return InMemoryStateManager()


@pytest.mark.asyncio
async def test_unknown_session_gets_default_state(state_manager):
    assert await state_manager.get_state("nobody") == ApplicationState()
    assert state_manager.sessions() == []


@pytest.mark.asyncio
async def test_update_merges_changes(state_manager):
    await state_manager.update_state("s1", current_topic="cats")
    await state_manager.update_state("s1", last_response="Meow", mood="playful")

    state = await state_manager.get_state("s1")

    assert state.current_topic == "cats"
    assert state.last_response == "Meow"
    assert state.extensions == {"mood": "playful"}


@pytest.mark.asyncio
async def test_returned_state_is_a_copy(state_manager):
    await state_manager.update_state("s1", preferences={"lang": "en"})
    state = await state_manager.get_state("s1")
    state.preferences["lang"] = "fr"
    assert (await state_manager.get_state("s1")).preferences == {"lang": "en"}


@pytest.mark.asyncio
async def test_invalid_update(state_manager):
    with pytest.raises(MemoryStorageError):
        await state_manager.update_state("s1", available_tools="not a list")


@pytest.mark.asyncio
async def test_concurrent_updates(state_manager):
    await asyncio.gather(*(
        state_manager.update_state("s1", **{f"key{i}": i}) for i in range(20)
    ))
    state = await state_manager.get_state("s1")
    assert len(state.extensions) == 20


@pytest.mark.asyncio
async def test_clear_state(state_manager):
    await state_manager.update_state("s1", current_topic="x")
    await state_manager.clear_state("s1")
    await state_manager.clear_state("s1")
    assert await state_manager.get_state("s1") == ApplicationState()
