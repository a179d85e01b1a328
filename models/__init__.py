# models/__init__.py
"""Export commonly used advisory model types.

This package exposes a stable import surface for the Pydantic models used across
the pipeline.
"""

from .analysis_models import (
    OVERRIDABLE_DETECTION_TYPES,
    AnalysisPhase,
    ConstraintOverride,
    ContentAnalysisItem,
    DetectionType,
    Resolution,
)
from .kg_models import (
    CardinalityConstraint,
    Entity,
    Relationship,
    RelationshipSuggestion,
    RelationshipTone,
    RelationshipType,
    RequiredRelationship,
    SourceConfidence,
    TypePairConstraint,
)
from .pipeline_models import (
    JobStatus,
    PipelineInput,
    PipelineResult,
    RAGContext,
    SearchResult,
    SourceScope,
)

__all__ = [
    "OVERRIDABLE_DETECTION_TYPES",
    "AnalysisPhase",
    "CardinalityConstraint",
    "ConstraintOverride",
    "ContentAnalysisItem",
    "DetectionType",
    "Entity",
    "JobStatus",
    "PipelineInput",
    "PipelineResult",
    "RAGContext",
    "Relationship",
    "RelationshipSuggestion",
    "RelationshipTone",
    "RelationshipType",
    "RequiredRelationship",
    "SearchResult",
    "SourceConfidence",
    "SourceScope",
]
