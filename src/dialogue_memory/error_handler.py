"""Translates exceptions into user-facing messages.

Only the request pipeline uses this; the memory and prompt APIs always
propagate their exceptions.
"""

from __future__ import annotations

import json
import traceback
import uuid
from dataclasses import dataclass
from typing import Any

from loguru import logger

from .errors import (
    ContextWindowExceededError,
    DialogueMemoryError,
    InputValidationError,
    LLMAPIError,
    MemoryStorageError,
)

GENERIC_MESSAGE = (
    "Sorry, I encountered an unexpected error while processing your request."
)


@dataclass(frozen=True)
class MonitoredError:
    """Result of handling an error.

    Attributes:
        user_facing_message: Safe to show to the end user, ends with a
            short reference to ``error_id``
        internal_details: Diagnostic text for logs
        error_id: Unique identifier for correlating logs
    """

    user_facing_message: str
    internal_details: str
    error_id: str


def _format_context(context: dict[str, Any]) -> str:
    return json.dumps(context, default=str, ensure_ascii=False)


class ErrorHandler:
    """Maps each error type to a message and logs the details."""

    def handle(
        self, error: BaseException, context: dict[str, Any] | None = None
    ) -> MonitoredError:
        context = context or {}
        ctx = _format_context(context)

        if isinstance(error, InputValidationError):
            message = f"Input validation error: {error}"
            details = f"Validation error: {error}\nContext: {ctx}"
        elif isinstance(error, LLMAPIError):
            message = (
                "Sorry, there was an issue connecting to the AI service. "
                "Please try again in a moment."
            )
            details = (
                f"LLM API error: {error}\nStatus: {error.status_code}\nContext: {ctx}"
            )
        elif isinstance(error, ContextWindowExceededError):
            message = (
                "Sorry, the conversation has grown too long for me to process. "
                "Try starting a new conversation or summarizing the current topic."
            )
            details = (
                f"Context window exceeded: {error}\n"
                f"Tokens: {error.attempted_tokens}/{error.limit}\nContext: {ctx}"
            )
        elif isinstance(error, MemoryStorageError):
            message = "Sorry, I encountered an issue accessing conversation history."
            details = f"Memory storage error: {error}\nContext: {ctx}"
        elif isinstance(error, DialogueMemoryError):
            message = f"Sorry, an error occurred: {error}"
            details = f"{type(error).__name__}: {error}\nContext: {ctx}"
        else:
            message = GENERIC_MESSAGE
            stack = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
            details = (
                f"Unexpected {type(error).__name__}: {error}\n"
                f"Context: {ctx}\nStack: {stack}"
            )

        error_id = uuid.uuid4().hex
        logger.error(f"Error occurred [{error_id}]: {details}")
        return MonitoredError(
            user_facing_message=f"{message} (Ref: {error_id[:8]})",
            internal_details=details,
            error_id=error_id,
        )
