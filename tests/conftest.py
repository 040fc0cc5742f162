"""
dialogue-memory test fixtures
"""
import pytest
from unittest.mock import AsyncMock

from dialogue_memory.config import CoreConfig, MonitorConfig
from dialogue_memory.memory_manager import MemoryManager
from dialogue_memory.models import Interaction
from dialogue_memory.performance_monitor import PerformanceMonitor


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def count_x(text: str) -> int:
    """Token estimator that counts the letter 'x'.

    Prompt scaffolding contains no 'x', so sizes can be set exactly by
    filling content with 'x' characters.
    """
    return text.count("x")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_interaction():
    """Factory for interactions with predictable content."""

    def _make(label: str, response: str | None = None) -> Interaction:
        return Interaction(input=f"input {label}", response=response or f"response {label}")

    return _make


@pytest.fixture
def core_config():
    """Config with summaries off so tests opt into them explicitly."""
    return CoreConfig(summary={"enabled": False})


@pytest.fixture
async def manager(core_config, clock):
    mm = MemoryManager(config=core_config, clock=clock)
    yield mm
    await mm.close()


@pytest.fixture
def monitor(clock):
    m = PerformanceMonitor(config=MonitorConfig(max_metrics_entries=5), clock=clock)
    m.init()
    yield m
    if m.is_running:
        m.shutdown()


@pytest.fixture
def mock_llm():
    """Mock LLM callable returning a fixed reply."""
    return AsyncMock(return_value="This is a mock LLM response.")


@pytest.fixture
def x_estimator():
    return count_x
