# models/analysis_models.py
"""Define advisory finding models and the override acknowledgement row."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DetectionType(str, Enum):
    """Kinds of advisory findings the pipeline can emit."""

    # Structural (ontology validation)
    ORPHAN_WARNING = "orphan_warning"
    INVALID_TYPE_PAIR = "invalid_type_pair"
    CARDINALITY_VIOLATION = "cardinality_violation"
    MISSING_REQUIRED = "missing_required"
    # Semantic, graph expert
    REDUNDANT_EDGE = "redundant_edge"
    GRAPH_WARNING = "graph_warning"
    # Semantic, canon expert
    CANON_CONTRADICTION = "canon_contradiction"
    TEMPORAL_INCONSISTENCY = "temporal_inconsistency"
    CHARACTER_INCONSISTENCY = "character_inconsistency"


# Detection types a GM can acknowledge with a ConstraintOverride.
OVERRIDABLE_DETECTION_TYPES: frozenset[DetectionType] = frozenset(
    {
        DetectionType.INVALID_TYPE_PAIR,
        DetectionType.CARDINALITY_VIOLATION,
        DetectionType.MISSING_REQUIRED,
    }
)


class Resolution(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DISMISSED = "dismissed"


class AnalysisPhase(str, Enum):
    ANALYSIS = "analysis"
    ENRICHMENT = "enrichment"


class ContentAnalysisItem(BaseModel):
    """A single advisory finding.

    Findings are strictly advisory; nothing in the pipeline applies them.
    `suggested_content` carries the structured detail the UI and the override
    filter read (see `core.override_filter`). `agent_name` is stamped by the
    pipeline after the agent returns.
    """

    model_config = ConfigDict(frozen=True)

    job_id: str
    detection_type: DetectionType
    matched_text: str = ""
    entity_id: str | None = None
    suggested_content: dict[str, Any] = Field(default_factory=dict)
    resolution: Resolution = Resolution.PENDING
    phase: AnalysisPhase = AnalysisPhase.ANALYSIS
    agent_name: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConstraintOverride(BaseModel):
    """A GM's acknowledgement that a structural violation is intentional."""

    model_config = ConfigDict(frozen=True)

    campaign_id: str
    detection_type: DetectionType
    override_key: str
