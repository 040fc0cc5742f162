"""
dialogue_memory - conversation memory and prompt construction

Per-session short-term history, relevance-ranked long-term memory, rolling
summaries, token-bounded prompt assembly and request performance tracking.
"""

from .agent import ConversationAgent
from .config import CoreConfig, load_config
from .embedding import HashingEmbedder, SentenceTransformerEmbedder, create_embedder
from .error_handler import ErrorHandler, MonitoredError
from .errors import (
    ContextWindowExceededError,
    ContractViolationError,
    DialogueMemoryError,
    InputValidationError,
    LLMAPIError,
    MemoryStorageError,
)
from .long_term import LongTermMemoryStore
from .memory_manager import MemoryManager, MemoryManagerInterface
from .models import (
    ApplicationState,
    Interaction,
    MemoryContext,
    MemoryEntry,
    MemorySnapshot,
    RequestMetrics,
    RequestStatus,
    ToolDescription,
)
from .performance_monitor import PerformanceMonitor
from .prompt_manager import PromptManager
from .short_term import ShortTermMemoryStore
from .state_manager import InMemoryStateManager
from .summarizer import HeuristicSummarizer
from .token_counter import TokenCounter, estimate_tokens

__all__ = [
    "ApplicationState",
    "ContextWindowExceededError",
    "ContractViolationError",
    "ConversationAgent",
    "CoreConfig",
    "DialogueMemoryError",
    "ErrorHandler",
    "HashingEmbedder",
    "HeuristicSummarizer",
    "InMemoryStateManager",
    "InputValidationError",
    "Interaction",
    "LLMAPIError",
    "LongTermMemoryStore",
    "MemoryContext",
    "MemoryEntry",
    "MemoryManager",
    "MemoryManagerInterface",
    "MemorySnapshot",
    "MemoryStorageError",
    "MonitoredError",
    "PerformanceMonitor",
    "PromptManager",
    "RequestMetrics",
    "RequestStatus",
    "SentenceTransformerEmbedder",
    "ShortTermMemoryStore",
    "TokenCounter",
    "ToolDescription",
    "create_embedder",
    "estimate_tokens",
    "load_config",
]
