"""Core data models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SNAPSHOT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Interaction(BaseModel):
    """One user input and the system response to it. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    input: str
    response: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)


class MemoryContext(BaseModel):
    """Read-only retrieval result handed to prompt construction."""

    model_config = ConfigDict(frozen=True)

    history: list[Interaction] = Field(default_factory=list)
    """Most recent interactions, oldest first."""

    memories: list[str] = Field(default_factory=list)
    """Relevant long-term fragments, most relevant first."""

    summary: str | None = None


class MemoryEntry(BaseModel):
    """A stored long-term memory fragment."""

    content: str
    created_at: datetime = Field(default_factory=_utcnow)
    tags: list[str] = Field(default_factory=list)
    source: str = "conversation"
    importance: float = 1.0
    access_count: int = 0
    last_accessed: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScoredMemory(BaseModel):
    """A long-term entry with its relevance score for one query."""

    entry: MemoryEntry
    score: float
    position: int  # insertion index within the session


class ToolParameter(BaseModel):
    type: str = "any"
    description: str = ""


class ToolDescription(BaseModel):
    """A tool the assistant may call, rendered into structured prompts."""

    name: str
    description: str = ""
    parameters: dict[str, ToolParameter] = Field(default_factory=dict)


class ApplicationState(BaseModel):
    """Per-session state that accompanies prompt construction.

    Named fields cover the common keys. Anything else lives in ``extensions``.
    """

    preferences: dict[str, Any] = Field(default_factory=dict)
    current_topic: str | None = None
    last_response: str | None = None
    language: str | None = None
    available_tools: list[ToolDescription] = Field(default_factory=list)
    last_function_call: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    def with_updates(self, **changes: Any) -> "ApplicationState":
        """Return a copy with ``changes`` applied.

        Keys that are not declared fields are merged into ``extensions``.
        """
        known = {k: v for k, v in changes.items() if k in type(self).model_fields}
        extra = {k: v for k, v in changes.items() if k not in type(self).model_fields}
        data = self.model_dump()
        data.update(known)
        if extra:
            data["extensions"] = {**data.get("extensions", {}), **extra}
        return type(self).model_validate(data)


class RequestStatus(str, Enum):
    STARTED = "started"
    ENDED = "ended"


class RequestMetrics(BaseModel):
    """Timing and outcome of one monitored request."""

    request_id: str
    session_id: str
    start_time: float  # monotonic seconds
    started_at: datetime = Field(default_factory=_utcnow)
    end_time: float | None = None
    duration_ms: float | None = None
    status: RequestStatus = RequestStatus.STARTED
    error_occurred: bool = False
    error_type: str | None = None
    prompt_tokens: int | None = None
    response_tokens: int | None = None


class MemorySnapshot(BaseModel):
    """Serializable state of one session's memory."""

    version: int = SNAPSHOT_VERSION
    session_id: str
    short_term: list[Interaction] = Field(default_factory=list)
    long_term: list[MemoryEntry] = Field(default_factory=list)
    summary: str | None = None
    pending_summary: list[Interaction] = Field(default_factory=list)
    """Interactions stored since the last summary was generated."""

    turn_count: int = 0
