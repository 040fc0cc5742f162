"""Exception hierarchy for the dialogue memory core."""

from __future__ import annotations


class DialogueMemoryError(Exception):
    """Base class for all errors raised by this package."""


class InputValidationError(DialogueMemoryError):
    """Raised when a caller supplies unusable input (e.g. an empty turn)."""


class MemoryStorageError(DialogueMemoryError):
    """Raised when a memory store fails during a read or write.

    Surfaced to the caller and never retried internally.
    """

    def __init__(self, message: str):
        super().__init__(f"Memory Storage Error: {message}")


class ContextWindowExceededError(DialogueMemoryError):
    """Raised when a prompt cannot fit within the token budget.

    Attributes:
        attempted_tokens: Estimated size of the smallest prompt that was tried
        limit: Configured maximum token count
    """

    def __init__(self, message: str, attempted_tokens: int, limit: int):
        self.attempted_tokens = attempted_tokens
        self.limit = limit
        super().__init__(
            f"Context window exceeded: {message}. "
            f"Token count: {attempted_tokens}, Max allowed: {limit}"
        )


class ContractViolationError(DialogueMemoryError, AssertionError):
    """Raised when an API is used in a way its contract forbids.

    Examples: ending a request twice, a negative request duration, or using a
    performance monitor that has not been initialised.
    """


class LLMAPIError(DialogueMemoryError):
    """Raised when the injected LLM callable fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(f"LLM API Error: {message}")
