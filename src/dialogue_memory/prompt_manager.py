"""Prompt manager.

Assembles a single prompt string from system instructions, the memory context
and the current input, under a hard token ceiling.

Sections always appear in this order:
  system prompt -> summary -> memories -> history -> current input

If the full prompt is over budget it is rebuilt without the history. If that
is still over budget, ContextWindowExceededError is raised; nothing else is
truncated.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from .config import PromptConfig
from .errors import ContextWindowExceededError
from .models import ApplicationState, Interaction, MemoryContext
from .token_counter import TokenEstimator, estimate_tokens


@dataclass
class PromptSections:
    """Rendered prompt sections. Empty strings are omitted sections."""

    system: str
    summary: str = ""
    memories: str = ""
    history: str = ""
    current_input: str = ""

    def join(self, include_history: bool = True) -> str:
        parts = [self.system, self.summary, self.memories]
        if include_history:
            parts.append(self.history)
        parts.append(self.current_input)
        return "".join(parts)


class ChatTemplate:
    """Plain conversational layout."""

    name = "chat"

    def render(
        self,
        system_prompt: str,
        user_input: str,
        context: MemoryContext,
        state: ApplicationState,
    ) -> PromptSections:
        summary = (
            f"Previous conversation summary: {context.summary}\n\n"
            if context.summary
            else ""
        )
        memories = (
            "Relevant information from previous conversations:\n"
            + "\n".join(context.memories)
            + "\n\n"
            if context.memories
            else ""
        )
        history = (
            "\n\n".join(self._format_turn(turn) for turn in context.history) + "\n\n"
            if context.history
            else ""
        )
        return PromptSections(
            system=f"{system_prompt}\n\n",
            summary=summary,
            memories=memories,
            history=history,
            current_input=f"User: {user_input}\nAssistant:",
        )

    @staticmethod
    def _format_turn(turn: Interaction) -> str:
        return f"User: {turn.input}\nAssistant: {turn.response}"


class StructuredTemplate:
    """Markdown sections, with tool descriptions and the last function call."""

    name = "structured"

    def render(
        self,
        system_prompt: str,
        user_input: str,
        context: MemoryContext,
        state: ApplicationState,
    ) -> PromptSections:
        system = f"### System Instructions\n{system_prompt}\n\n"
        if state.available_tools:
            tools = "\n".join(
                f"- {tool.name}: {tool.description}" for tool in state.available_tools
            )
            system += f"### Available Tools\n{tools}\n\n"

        summary = (
            f"### Conversation Summary\n{context.summary}\n\n"
            if context.summary
            else ""
        )

        memories = ""
        if context.memories:
            lines = [f"[{i}] {memory}" for i, memory in enumerate(context.memories, 1)]
            memories = "### Relevant Information\n" + "\n".join(lines) + "\n\n"

        history = ""
        if context.history:
            turns = [
                f"Turn {i}:\nUser: {turn.input}\nAssistant: {turn.response}\n\n"
                for i, turn in enumerate(context.history, 1)
            ]
            history = "### Conversation History\n" + "".join(turns)

        current_input = ""
        if state.last_function_call:
            current_input += f"### Last Function Call\n{state.last_function_call}\n\n"
        current_input += f"### Current User Input\n{user_input}\n\n### Assistant Response\n"

        return PromptSections(
            system=system,
            summary=summary,
            memories=memories,
            history=history,
            current_input=current_input,
        )


TEMPLATES = {
    ChatTemplate.name: ChatTemplate,
    StructuredTemplate.name: StructuredTemplate,
}


class PromptManager:
    """Builds token-bounded prompts.

    Explicit constructor arguments override ``config``; ``config`` overrides
    the defaults in :class:`PromptConfig`.
    """

    def __init__(
        self,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        token_count_estimator: TokenEstimator | None = None,
        template: str | None = None,
        config: PromptConfig | None = None,
    ):
        config = config or PromptConfig()
        self.system_prompt = system_prompt or config.system_prompt
        self.max_tokens = max_tokens or config.max_tokens
        self.token_count_estimator = token_count_estimator or estimate_tokens
        template_name = template or config.template
        if template_name not in TEMPLATES:
            raise ValueError(
                f"Unknown prompt template {template_name!r}, "
                f"expected one of {sorted(TEMPLATES)}"
            )
        self._template = TEMPLATES[template_name]()

        logger.debug(
            f"PromptManager initialized: max_tokens={self.max_tokens}, "
            f"template={template_name}"
        )

    @property
    def template(self) -> str:
        return self._template.name

    def set_system_prompt(self, system_prompt: str) -> None:
        self.system_prompt = system_prompt

    def set_max_tokens(self, max_tokens: int) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        self.max_tokens = max_tokens

    def set_template(self, template: str) -> None:
        if template not in TEMPLATES:
            raise ValueError(f"Unknown prompt template {template!r}")
        self._template = TEMPLATES[template]()

    def estimate_tokens(self, text: str) -> int:
        return self.token_count_estimator(text)

    def will_fit_in_context(self, prompt: str) -> bool:
        return self.estimate_tokens(prompt) <= self.max_tokens

    def construct_prompt(
        self,
        user_input: str,
        context: MemoryContext,
        state: ApplicationState | None = None,
    ) -> str:
        """Construct a prompt for the LLM.

        Args:
            user_input: Current user input
            context: Memory context from the memory manager
            state: Current application state

        Returns:
            The assembled prompt

        Raises:
            ContextWindowExceededError: If the prompt does not fit even
                without the conversation history
        """
        sections = self._template.render(
            self.system_prompt, user_input, context, state or ApplicationState()
        )

        prompt = sections.join(include_history=True)
        tokens = self.estimate_tokens(prompt)
        if tokens <= self.max_tokens:
            logger.debug(f"Prompt assembled: {tokens}/{self.max_tokens} tokens")
            return prompt

        reduced = sections.join(include_history=False)
        reduced_tokens = self.estimate_tokens(reduced)
        if reduced_tokens > self.max_tokens:
            logger.error(
                f"Prompt too large without history: "
                f"{reduced_tokens}/{self.max_tokens} tokens"
            )
            raise ContextWindowExceededError(
                "Prompt is too large even with reduced context",
                reduced_tokens,
                self.max_tokens,
            )

        logger.warning(
            f"Prompt size reduced - removed conversation history "
            f"({tokens} -> {reduced_tokens}/{self.max_tokens} tokens, "
            f"{len(context.history)} turns dropped)"
        )
        return reduced
