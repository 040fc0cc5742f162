"""Conversation agent: the request pipeline tying the components together."""

from __future__ import annotations

from typing import Awaitable, Callable

from loguru import logger

from .error_handler import ErrorHandler
from .errors import ContractViolationError, InputValidationError, LLMAPIError
from .memory_manager import MemoryManagerInterface
from .models import Interaction
from .performance_monitor import PerformanceMonitor
from .prompt_manager import PromptManager
from .state_manager import StateManager

LLMCallable = Callable[[str], Awaitable[str]]

PROMPT_PREVIEW_CHARS = 100


class ConversationAgent:
    """Handles one user request end to end.

    Pipeline:
        validate -> state + memory context -> prompt -> LLM
        -> update state -> store interaction

    Any failure is recorded on the request metrics and turned into a
    user-facing message; the metrics are always finalized.
    """

    def __init__(
        self,
        memory_manager: MemoryManagerInterface,
        prompt_manager: PromptManager,
        state_manager: StateManager,
        monitor: PerformanceMonitor,
        llm: LLMCallable,
        error_handler: ErrorHandler | None = None,
    ):
        self.memory_manager = memory_manager
        self.prompt_manager = prompt_manager
        self.state_manager = state_manager
        self.monitor = monitor
        self.llm = llm
        self.error_handler = error_handler or ErrorHandler()

    async def handle_request(self, user_input: str, session_id: str) -> str:
        """Process a user request.

        Args:
            user_input: Raw user text
            session_id: Session identifier

        Returns:
            The assistant response, or a user-facing error message
        """
        metrics = self.monitor.start_request(session_id)
        response: str | None = None
        try:
            if not isinstance(user_input, str) or not user_input.strip():
                raise InputValidationError(
                    "Invalid user input received: Input is empty."
                )

            state = await self.state_manager.get_state(session_id)
            context = await self.memory_manager.get_context(session_id, user_input)

            prompt = self.prompt_manager.construct_prompt(user_input, context, state)
            metrics.prompt_tokens = self.prompt_manager.estimate_tokens(prompt)

            reply = await self._call_llm(prompt)

            await self.state_manager.update_state(session_id, last_response=reply)
            await self.memory_manager.store_interaction(
                session_id, Interaction(input=user_input, response=reply)
            )
            response = reply
            return reply
        except Exception as e:
            self.monitor.record_error(metrics, e)
            handled = self.error_handler.handle(
                e, {"user_input": user_input, "session_id": session_id}
            )
            return handled.user_facing_message
        finally:
            try:
                self.monitor.end_request(metrics, response)
            except ContractViolationError as e:
                logger.error(f"Could not end request {metrics.request_id}: {e}")

    async def _call_llm(self, prompt: str) -> str:
        logger.debug(f"Calling LLM with prompt: {prompt[:PROMPT_PREVIEW_CHARS]}...")
        try:
            reply = await self.llm(prompt)
        except LLMAPIError:
            raise
        except Exception as e:
            logger.error(f"LLM call failed: {e}")
            raise LLMAPIError(
                f"LLM API call failed: {e}",
                status_code=getattr(e, "status_code", None),
            ) from e
        if not isinstance(reply, str):
            raise LLMAPIError(
                f"LLM returned {type(reply).__name__} instead of str"
            )
        return reply
