"""Configuration models for the dialogue memory core."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")


class ShortTermConfig(BaseModel):
    """Recent-turn window configuration."""

    max_turns: int = 10

    @field_validator("max_turns")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_turns must be at least 1")
        return value


class LongTermConfig(BaseModel):
    """Long-term fragment store configuration."""

    # None keeps every fragment for the life of the session
    max_entries: int | None = None

    @field_validator("max_entries")
    @classmethod
    def _positive(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("max_entries must be at least 1 or None")
        return value


class EmbeddingConfig(BaseModel):
    """Embedding model configuration."""

    provider: Literal["hashing", "sentence_transformers"] = "hashing"
    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    dimension: int = 256
    trust_remote_code: bool = False

    @field_validator("dimension")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 8:
            raise ValueError("dimension must be at least 8")
        return value


class RetrievalConfig(BaseModel):
    """Relevance retrieval configuration."""

    top_k: int = 5
    min_score: float | None = None


class SummaryConfig(BaseModel):
    """Rolling conversation summary configuration."""

    enabled: bool = True
    summarize_after_turns: int = 15

    @field_validator("summarize_after_turns")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("summarize_after_turns must be at least 1")
        return value


class SessionConfig(BaseModel):
    """Session eviction knobs. Both are disabled unless set explicitly."""

    idle_ttl_seconds: float | None = None
    max_sessions: int | None = None

    @model_validator(mode="after")
    def _validate_limits(self) -> "SessionConfig":
        if self.idle_ttl_seconds is not None and self.idle_ttl_seconds <= 0:
            raise ValueError("idle_ttl_seconds must be positive or None")
        if self.max_sessions is not None and self.max_sessions < 1:
            raise ValueError("max_sessions must be at least 1 or None")
        return self


class PromptConfig(BaseModel):
    """Prompt assembly configuration."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_tokens: int = 8000
    template: Literal["chat", "structured"] = "chat"

    @field_validator("max_tokens")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_tokens must be at least 1")
        return value


class MonitorConfig(BaseModel):
    """Performance monitor configuration."""

    max_metrics_entries: int = 100
    slow_request_ms: float = 2000.0

    @field_validator("max_metrics_entries")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_metrics_entries must be at least 1")
        return value


class CoreConfig(BaseModel):
    """Top-level configuration."""

    short_term: ShortTermConfig = Field(default_factory=ShortTermConfig)
    long_term: LongTermConfig = Field(default_factory=LongTermConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    prompt: PromptConfig = Field(default_factory=PromptConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)


def _substitute_env(content: str) -> str:
    def replacer(match: re.Match) -> str:
        return os.getenv(match.group(1), match.group(0))

    return _ENV_PATTERN.sub(replacer, content)


def read_yaml(config_path: str | Path) -> dict[str, Any]:
    """Read a YAML file, replacing ``${VAR}`` with environment values.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Configuration data as a dictionary (empty for an empty file).

    Raises:
        FileNotFoundError: If the configuration file is not found.
        yaml.YAMLError: If the file is not valid YAML.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    content = _substitute_env(path.read_text(encoding="utf-8"))

    try:
        return yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.critical(f"Error parsing YAML file: {e}")
        raise


def load_config(config_path: str | Path) -> CoreConfig:
    """Load and validate a :class:`CoreConfig` from a YAML file."""
    data = read_yaml(config_path)
    config = CoreConfig.model_validate(data)
    logger.debug(f"Loaded config from {config_path}: {config.model_dump()}")
    return config
