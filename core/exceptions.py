# core/exceptions.py
"""Define standardized exception types for the advisory core.

This module provides a small exception hierarchy and helpers used across the
pipeline to propagate actionable error details without losing the original
exception.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from models.analysis_models import ContentAnalysisItem


class AdvisorCoreError(Exception):
    """Base exception for all advisory core errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class LLMServiceError(AdvisorCoreError):
    """Errors related to LLM service operations."""


class ProviderTransportError(LLMServiceError):
    """A provider call failed at the transport or API level.

    `retryable` tells the job runner whether resubmitting the job later may
    succeed (rate limits, outages, timeouts).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = True,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.retryable = retryable


class QuotaExceededError(ProviderTransportError):
    """The provider account is out of quota or credit. Never retried."""

    def __init__(self, message: str, *, status_code: int | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=status_code, retryable=False, details=details)


class LLMTimeoutError(ProviderTransportError):
    """A completion did not finish before the calling agent's deadline."""

    def __init__(self, timeout: float, details: dict[str, Any] | None = None):
        super().__init__(f"timed out after {timeout}s", retryable=True, details=details)
        self.timeout = timeout


class ResponseParseError(AdvisorCoreError):
    """An LLM response body could not be parsed into the expected JSON shape."""


class OntologyLoadError(AdvisorCoreError):
    """Ontology YAML artifacts are missing, malformed or internally inconsistent."""


class OntologyStoreError(AdvisorCoreError):
    """Reading or writing campaign-scoped ontology tables failed."""


class AgentPartialFailureError(AdvisorCoreError):
    """An agent failed part-way but produced findings worth keeping.

    The orchestrator records the failure and keeps `partial_findings`.
    """

    def __init__(
        self,
        message: str,
        *,
        partial_findings: Sequence[ContentAnalysisItem] = (),
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.partial_findings = list(partial_findings)
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return bool(getattr(self.cause, "retryable", False))


class PipelineConfigurationError(AdvisorCoreError):
    """The agent list handed to the pipeline is invalid."""


class AgentDependencyCycleError(PipelineConfigurationError):
    """Agent dependencies form a cycle.

    `cycle` lists the agent names along the cycle, first name repeated last.
    """

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(
            f"Agent dependency cycle detected: {' -> '.join(self.cycle)}",
            details={"cycle": self.cycle},
        )


def create_error_context(**kwargs: Any) -> dict[str, Any]:
    """Build a context dictionary for structured errors.

    Args:
        **kwargs: Key-value pairs to include.

    Returns:
        A dictionary containing only keys whose values are not `None`.
    """
    return {k: v for k, v in kwargs.items() if v is not None}


def is_retryable(error: BaseException) -> bool:
    """Return whether a failed agent run may succeed if the job is resubmitted."""
    if isinstance(error, TimeoutError):
        return True
    return bool(getattr(error, "retryable", False))
