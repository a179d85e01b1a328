# config/validator.py
"""
Configuration validation utilities for the advisory pipeline.

This module provides a single public function `validate_all()` that:
1. Reads the current `AdvisorSettings` object (field types were already
   validated by Pydantic when it was created).
2. Performs cross-field sanity checks that cannot be expressed purely with
   Pydantic field validators (provider credentials, token budgets, paths).
3. Returns a structured health report dictionary.

The report layout:

{
    "overall_health": "healthy" | "warning" | "error",
    "issues": {
        "errors":   [{ "field": "<field>", "message": "<msg>" }, ...],
        "warnings": [{ "field": "<field>", "message": "<msg>" }, ...],
        "info":     [{ "field": "<field>", "message": "<msg>" }, ...],
    }
}
"""

from __future__ import annotations

from pathlib import Path

_SUPPORTED_SERVICES = ("openai", "anthropic", "ollama")
_KEYED_SERVICES = {"openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY"}


def _add_issue(
    issues: dict[str, list[dict[str, str]]],
    severity: str,
    field: str,
    message: str,
) -> None:
    """Utility to append an issue entry to the report."""
    issues.setdefault(severity, []).append({"field": field, "message": message})


def validate_all(require_credentials: bool = True) -> dict:
    """
    Validate the current configuration state.

    Args:
        require_credentials: When False, a missing API key for the selected
            service is reported as info instead of an error (dry runs).

    Returns a health-report dict with overall status and detailed issue lists.
    """
    from . import settings as current_settings

    issues: dict[str, list[dict[str, str]]] = {"errors": [], "warnings": [], "info": []}

    if current_settings is None:
        _add_issue(issues, "errors", "settings", "Configuration object not initialized.")
        return {"overall_health": "error", "issues": issues}

    # Provider selection and credentials
    service = current_settings.LLM_SERVICE.strip().lower()
    if service not in _SUPPORTED_SERVICES:
        _add_issue(
            issues,
            "errors",
            "LLM_SERVICE",
            f"LLM_SERVICE '{current_settings.LLM_SERVICE}' is not one of {', '.join(_SUPPORTED_SERVICES)}.",
        )
    elif service in _KEYED_SERVICES:
        key_field = _KEYED_SERVICES[service]
        if not getattr(current_settings, key_field):
            _add_issue(
                issues,
                "errors" if require_credentials else "info",
                key_field,
                f"{key_field} is required when LLM_SERVICE is '{service}'.",
            )

    # Retry and concurrency
    if current_settings.LLM_RETRY_ATTEMPTS < 1:
        _add_issue(
            issues,
            "errors",
            "LLM_RETRY_ATTEMPTS",
            f"LLM_RETRY_ATTEMPTS must be >= 1; got {current_settings.LLM_RETRY_ATTEMPTS}.",
        )
    if current_settings.MAX_CONCURRENT_LLM_CALLS < 1:
        _add_issue(
            issues,
            "errors",
            "MAX_CONCURRENT_LLM_CALLS",
            f"MAX_CONCURRENT_LLM_CALLS must be >= 1; got {current_settings.MAX_CONCURRENT_LLM_CALLS}.",
        )

    # Token budgets
    for name in ("CANON_MAX_TOKENS", "GRAPH_MAX_TOKENS", "DEFAULT_MAX_TOKENS"):
        value = getattr(current_settings, name)
        if value <= 0:
            _add_issue(issues, "errors", name, f"{name} must be positive; got {value}.")

    # Prompt truncation limits
    for name in ("MAX_RAG_CHUNK_CHARS", "MAX_ENTITY_DESCRIPTION_CHARS", "MAX_SUGGESTION_DESCRIPTION_CHARS"):
        value = getattr(current_settings, name)
        if value <= 3:
            _add_issue(
                issues,
                "warnings",
                name,
                f"{name} = {value} leaves no room for text once truncated.",
            )

    if not (0.0 <= current_settings.TEMPERATURE_EXPERT <= 2.0):
        _add_issue(
            issues,
            "warnings",
            "TEMPERATURE_EXPERT",
            f"TEMPERATURE_EXPERT = {current_settings.TEMPERATURE_EXPERT} is outside the recommended range 0.0-2.0.",
        )

    # An agent timeout shorter than one HTTP attempt cancels every slow call.
    timeout = current_settings.AGENT_TIMEOUT_SECONDS
    if timeout is not None and timeout < current_settings.HTTPX_TIMEOUT:
        _add_issue(
            issues,
            "info",
            "AGENT_TIMEOUT_SECONDS",
            (
                f"AGENT_TIMEOUT_SECONDS ({timeout}) is shorter than HTTPX_TIMEOUT "
                f"({current_settings.HTTPX_TIMEOUT}); retries may never complete."
            ),
        )

    if not Path(current_settings.ONTOLOGY_SCHEMA_DIR).is_dir():
        _add_issue(
            issues,
            "errors",
            "ONTOLOGY_SCHEMA_DIR",
            f"ONTOLOGY_SCHEMA_DIR '{current_settings.ONTOLOGY_SCHEMA_DIR}' is not a directory.",
        )

    overall = "healthy"
    if issues["errors"]:
        overall = "error"
    elif issues["warnings"]:
        overall = "warning"

    return {
        "overall_health": overall,
        "issues": issues,
    }
