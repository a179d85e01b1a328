# agents/response_parsing.py
"""Parse and normalize the JSON the semantic experts get back from the LLM.

Both experts share the same contract:

- the body is fence-stripped and must be a JSON object, otherwise
  `ResponseParseError` is raised and the caller degrades to no findings;
- each finding object is validated on its own, so one malformed entry never
  rejects the rest;
- text is trimmed, findings missing required text are dropped, and category
  values are mapped case-insensitively onto a fixed set with a conservative
  default.
"""

from __future__ import annotations

from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.exceptions import ResponseParseError
from models.analysis_models import DetectionType
from utils.json_utils import parse_json_object

logger = structlog.get_logger(__name__)

ContradictionType = Literal["factual", "temporal", "character"]
Severity = Literal["info", "warning", "error"]
GraphFindingType = Literal["redundant_edge", "implied_edge"]

_CONTRADICTION_ALIASES: dict[str, ContradictionType] = {
    "factual": "factual",
    "attribute": "factual",
    "temporal": "temporal",
    "timeline": "temporal",
    "character": "character",
    "behavior": "character",
}
_SEVERITIES = ("info", "warning", "error")
_GRAPH_FINDING_TYPES = ("redundant_edge", "implied_edge")

_CONTRADICTION_DETECTION: dict[str, DetectionType] = {
    "factual": DetectionType.CANON_CONTRADICTION,
    "attribute": DetectionType.CANON_CONTRADICTION,
    "temporal": DetectionType.TEMPORAL_INCONSISTENCY,
    "timeline": DetectionType.TEMPORAL_INCONSISTENCY,
    "character": DetectionType.CHARACTER_INCONSISTENCY,
    "behavior": DetectionType.CHARACTER_INCONSISTENCY,
}


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ValueError("expected text, got a nested structure")
    return str(value).strip()


class _LLMFinding(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class CanonContradiction(_LLMFinding):
    contradiction_type: ContradictionType = Field("factual", alias="contradictionType")
    severity: Severity = "warning"
    conflicting_text: str = Field("", alias="conflictingText")
    established_fact: str = Field("", alias="establishedFact")
    source: str = ""
    description: str = ""
    suggestion: str = ""

    @field_validator("conflicting_text", "established_fact", "source", "description", "suggestion", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return _clean_text(value)

    @field_validator("contradiction_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        raw = _clean_text(value) if not isinstance(value, (dict, list)) else ""
        normalized = _CONTRADICTION_ALIASES.get(raw.lower())
        if normalized is None:
            logger.debug(f"Normalising unknown contradiction type {raw!r} to 'factual'")
            return "factual"
        return normalized

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> str:
        raw = _clean_text(value).lower() if not isinstance(value, (dict, list)) else ""
        return raw if raw in _SEVERITIES else "warning"

    def to_payload(self) -> dict[str, str]:
        return {
            "contradiction_type": self.contradiction_type,
            "severity": self.severity,
            "established_fact": self.established_fact,
            "source": self.source,
            "conflicting_text": self.conflicting_text,
            "description": self.description,
            "suggestion": self.suggestion,
        }


class GraphFinding(_LLMFinding):
    finding_type: GraphFindingType = Field("redundant_edge", alias="findingType")
    description: str = ""
    involved_entities: list[str] = Field(default_factory=list, alias="involvedEntities")
    suggestion: str = ""

    @field_validator("description", "suggestion", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return _clean_text(value)

    @field_validator("finding_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        raw = _clean_text(value).lower() if not isinstance(value, (dict, list)) else ""
        if raw not in _GRAPH_FINDING_TYPES:
            logger.debug(f"Normalising unknown finding type {raw!r} to 'redundant_edge'")
            return "redundant_edge"
        return raw

    @field_validator("involved_entities", mode="before")
    @classmethod
    def _names(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ValueError("involvedEntities must be a list")
        return [name for name in (_clean_text(v) for v in value if not isinstance(v, (dict, list))) if name]

    def to_payload(self) -> dict[str, Any]:
        return {
            "findingType": self.finding_type,
            "description": self.description,
            "involvedEntities": list(self.involved_entities),
            "suggestion": self.suggestion,
        }


def _finding_list(obj: dict[str, Any], key: str) -> list[Any]:
    items = obj.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ResponseParseError(f"'{key}' must be a JSON array", details={"type": type(items).__name__})
    return items


def parse_canon_response(raw: str) -> list[CanonContradiction]:
    """Parse a canon expert response into normalized contradictions.

    Raises:
        ResponseParseError: The body is empty, not JSON, not an object, or its
            `contradictions` member is not an array.
    """
    obj = parse_json_object(raw)

    contradictions: list[CanonContradiction] = []
    for index, item in enumerate(_finding_list(obj, "contradictions")):
        try:
            contradiction = CanonContradiction.model_validate(item)
        except ValidationError as e:
            logger.warning("Skipping malformed contradiction", index=index, errors=e.error_count())
            continue

        if not contradiction.description:
            logger.info("Skipping contradiction with empty description", index=index)
            continue
        if not contradiction.conflicting_text:
            logger.info("Skipping contradiction with empty conflictingText", index=index)
            continue
        contradictions.append(contradiction)
    return contradictions


def parse_graph_response(raw: str) -> list[GraphFinding]:
    """Parse a graph expert response into normalized findings.

    Raises:
        ResponseParseError: The body is empty, not JSON, not an object, or its
            `findings` member is not an array.
    """
    obj = parse_json_object(raw)

    findings: list[GraphFinding] = []
    for index, item in enumerate(_finding_list(obj, "findings")):
        try:
            finding = GraphFinding.model_validate(item)
        except ValidationError as e:
            logger.warning("Skipping malformed graph finding", index=index, errors=e.error_count())
            continue

        if not finding.description:
            logger.info("Skipping graph finding with empty description", index=index, finding_type=finding.finding_type)
            continue
        findings.append(finding)
    return findings


def contradiction_detection_type(contradiction_type: str) -> DetectionType:
    return _CONTRADICTION_DETECTION.get(contradiction_type.strip().lower(), DetectionType.CANON_CONTRADICTION)


def graph_detection_type(finding_type: str) -> DetectionType:
    if finding_type.strip().lower() in _GRAPH_FINDING_TYPES:
        return DetectionType.REDUNDANT_EDGE
    return DetectionType.GRAPH_WARNING
