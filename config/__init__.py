# config/__init__.py
"""Expose advisory pipeline configuration as stable module-level constants.

This package provides a facade over the Pydantic settings model defined in
[`config.settings`](config/settings.py:1). The primary API is the `settings`
singleton plus a set of module-level constants mirroring its fields.

Configuration precedence and lifecycle:
- On initial import, configuration is loaded by importing `config.settings`,
  which constructs the `settings` singleton.
- Values come from the process environment and may be sourced from a `.env` file.
- [`reload()`](config/__init__.py:95) re-reads `.env` with override enabled, then
  replaces this module's exported values (see `config.loader.reload_settings()`).

Notes:
    Call sites read constants as `config.NAME` at call time rather than importing
    the names, so tests can monkeypatch them.
"""

from typing import Any

from .settings import (
    rich_formatter as rich_formatter,
)
from .settings import (
    settings as settings,
)
from .settings import (
    simple_formatter as simple_formatter,
)

LLM_SERVICE = settings.LLM_SERVICE
OPENAI_API_BASE = settings.OPENAI_API_BASE
OPENAI_API_KEY = settings.OPENAI_API_KEY
OPENAI_MODEL = settings.OPENAI_MODEL
ANTHROPIC_API_BASE = settings.ANTHROPIC_API_BASE
ANTHROPIC_API_KEY = settings.ANTHROPIC_API_KEY
ANTHROPIC_MODEL = settings.ANTHROPIC_MODEL
ANTHROPIC_VERSION = settings.ANTHROPIC_VERSION
OLLAMA_API_BASE = settings.OLLAMA_API_BASE
OLLAMA_MODEL = settings.OLLAMA_MODEL

HTTPX_TIMEOUT = settings.HTTPX_TIMEOUT
LLM_RETRY_ATTEMPTS = settings.LLM_RETRY_ATTEMPTS
LLM_RETRY_DELAY_SECONDS = settings.LLM_RETRY_DELAY_SECONDS
MAX_CONCURRENT_LLM_CALLS = settings.MAX_CONCURRENT_LLM_CALLS
DEFAULT_MAX_TOKENS = settings.DEFAULT_MAX_TOKENS

TEMPERATURE_EXPERT = settings.TEMPERATURE_EXPERT
MAX_CONTENT_CHARS = settings.MAX_CONTENT_CHARS
MAX_RAG_CHUNK_CHARS = settings.MAX_RAG_CHUNK_CHARS
MAX_ENTITY_DESCRIPTION_CHARS = settings.MAX_ENTITY_DESCRIPTION_CHARS
MAX_SUGGESTION_DESCRIPTION_CHARS = settings.MAX_SUGGESTION_DESCRIPTION_CHARS
CANON_MAX_TOKENS = settings.CANON_MAX_TOKENS
GRAPH_MAX_TOKENS = settings.GRAPH_MAX_TOKENS

AGENT_TIMEOUT_SECONDS = settings.AGENT_TIMEOUT_SECONDS
PIPELINE_CONCURRENT_AGENTS = settings.PIPELINE_CONCURRENT_AGENTS

ONTOLOGY_SCHEMA_DIR = settings.ONTOLOGY_SCHEMA_DIR

BASE_OUTPUT_DIR = settings.BASE_OUTPUT_DIR
LOG_LEVEL_STR = settings.LOG_LEVEL_STR
LOG_FORMAT = settings.LOG_FORMAT
LOG_DATE_FORMAT = settings.LOG_DATE_FORMAT
LOG_FILE = settings.LOG_FILE
ENABLE_RICH_PROGRESS = settings.ENABLE_RICH_PROGRESS
SIMPLE_LOGGING_MODE = settings.SIMPLE_LOGGING_MODE


def get(key: str) -> Any:
    """Return the value of a configuration attribute from `settings`.

    Raises:
        AttributeError: If `key` is not a valid attribute on `settings`.
    """
    return getattr(settings, key)


def set(key: str, value: Any) -> None:
    """Set a configuration attribute at runtime.

    This mutates the in-memory settings instance and the mirrored module constant.
    It does not persist to `.env`.

    Raises:
        AttributeError: If `key` is not a valid attribute on `settings`.
    """
    if key not in type(settings).model_fields:
        raise AttributeError(key)
    setattr(settings, key, value)
    globals()[key] = value


def reload() -> bool:
    """Reload configuration and refresh this package's exported constants.

    Returns:
        True when the reload succeeded.
    """
    from .loader import reload_settings

    return reload_settings()
