# config/settings.py
"""
Configuration settings for the campaign advisory pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import logging as stdlib_logging
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()

_DEFAULT_ONTOLOGY_DIR = str(Path(__file__).resolve().parent.parent / "ontology" / "schema")


class AdvisorSettings(BaseSettings):
    """Full configuration for the advisory pipeline."""

    # LLM service selection: "openai", "anthropic" or "ollama"
    LLM_SERVICE: str = "openai"

    # OpenAI-compatible endpoint
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"

    # Anthropic endpoint
    ANTHROPIC_API_BASE: str = "https://api.anthropic.com/v1"
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"
    ANTHROPIC_VERSION: str = "2023-06-01"

    # Local Ollama endpoint
    OLLAMA_API_BASE: str = "http://127.0.0.1:11434"
    OLLAMA_MODEL: str = "llama3.1"

    # LLM Call Settings & Fallbacks
    HTTPX_TIMEOUT: float = 120.0
    LLM_RETRY_ATTEMPTS: int = 4
    LLM_RETRY_DELAY_SECONDS: float = 1.0
    MAX_CONCURRENT_LLM_CALLS: int = 4
    DEFAULT_MAX_TOKENS: int = 4096

    # Expert prompt budgets
    TEMPERATURE_EXPERT: float = 0.2
    MAX_CONTENT_CHARS: int = 6000
    MAX_RAG_CHUNK_CHARS: int = 500
    MAX_ENTITY_DESCRIPTION_CHARS: int = 200
    MAX_SUGGESTION_DESCRIPTION_CHARS: int = 100
    CANON_MAX_TOKENS: int = 4096
    GRAPH_MAX_TOKENS: int = 2048

    # Pipeline execution
    AGENT_TIMEOUT_SECONDS: float | None = None
    PIPELINE_CONCURRENT_AGENTS: bool = False

    # Ontology source artifacts
    ONTOLOGY_SCHEMA_DIR: str = _DEFAULT_ONTOLOGY_DIR

    # Output
    BASE_OUTPUT_DIR: str = "output"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="LOG_LEVEL")
    LOG_FORMAT: str = "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = "advisor_run.log"
    ENABLE_RICH_PROGRESS: bool = True
    # Minimal logging mode: console only, no rotation/Rich
    SIMPLE_LOGGING_MODE: bool = False

    @model_validator(mode="after")
    def clamp_budgets(self) -> AdvisorSettings:
        # Non-positive budgets would silently drop all prompt content.
        if self.MAX_CONTENT_CHARS <= 0:
            object.__setattr__(self, "MAX_CONTENT_CHARS", 6000)
        if self.AGENT_TIMEOUT_SECONDS is not None and self.AGENT_TIMEOUT_SECONDS <= 0:
            object.__setattr__(self, "AGENT_TIMEOUT_SECONDS", None)
        return self

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")


settings = AdvisorSettings()


# Update module level variables for backward compatibility
for _field in AdvisorSettings.model_fields:
    globals()[_field] = getattr(settings, _field)


# Configure structlog to integrate with standard logging and output human‑readable messages
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


def filter_internal_keys(logger: Any, name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Remove internal structlog fields from event dict."""
    keys_to_remove = [k for k in event_dict.keys() if k.startswith("_")]
    for key in keys_to_remove:
        event_dict.pop(key, None)
    return event_dict


def _format_context(event_dict: MutableMapping[str, Any], markup: bool) -> str | None:
    context_parts = []
    for key, value in event_dict.items():
        if key.startswith("_"):
            continue
        if isinstance(value, str) and len(value) > 50:
            value_str = f"{value[:47]}..."
        else:
            value_str = str(value)
        context_parts.append(f"[dim]{key}[/dim]={value_str}" if markup else f"{key}={value_str}")
    if not context_parts:
        return None
    return f"({', '.join(context_parts)})"


def simple_log_format_rich(logger: Any, name: str, event_dict: MutableMapping[str, Any]) -> str:
    """Simple human-readable log formatter with Rich markup for console output."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)

    level = event_dict.pop("level", "INFO")
    timestamp = event_dict.pop("timestamp", "")
    logger_name = event_dict.pop("logger", "")
    event = event_dict.pop("event", "")

    parts = []
    if timestamp:
        parts.append(f"{timestamp}")
    if logger_name:
        short_name = logger_name.split(".")[-1] if "." in logger_name else logger_name
        parts.append(f"[cyan]{short_name}[/cyan]")

    level_upper = level.upper()
    if level_upper in ("ERROR", "CRITICAL"):
        parts.append(f"[red]{level_upper}[/red]")
    elif level_upper == "WARNING":
        parts.append(f"[yellow]{level_upper}[/yellow]")
    elif level_upper == "INFO":
        parts.append(f"[green]{level_upper}[/green]")
    else:
        parts.append(level_upper)

    parts.append(f"[bold]{event}[/bold]" if event else "")

    context = _format_context(event_dict, markup=True)
    if context:
        parts.append(context)

    return " ".join(parts)


def simple_log_format_plain(logger: Any, name: str, event_dict: MutableMapping[str, Any]) -> str:
    """Simple human-readable log formatter without markup for file output."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)

    level = event_dict.pop("level", "INFO")
    timestamp = event_dict.pop("timestamp", "")
    logger_name = event_dict.pop("logger", "")
    event = event_dict.pop("event", "")

    parts = []
    if timestamp:
        parts.append(f"{timestamp}")
    if logger_name:
        short_name = logger_name.split(".")[-1] if "." in logger_name else logger_name
        parts.append(f"[{short_name}]")

    parts.append(level.upper())
    parts.append(event if event else "")

    context = _format_context(event_dict, markup=False)
    if context:
        parts.append(context)

    return " ".join(parts)


# Formatter for file output (plain text, no Rich markup)
simple_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ],
    processors=[
        filter_internal_keys,
        simple_log_format_plain,
    ],
)

# Formatter for Rich console output (with color markup)
rich_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ],
    processors=[
        filter_internal_keys,
        simple_log_format_rich,
    ],
)

root_logger = stdlib_logging.getLogger()
root_logger.setLevel(settings.LOG_LEVEL_STR)
