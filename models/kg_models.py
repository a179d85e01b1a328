# models/kg_models.py
"""Define campaign knowledge-graph data models.

This module provides the in-memory representations of the campaign graph the
advisory pipeline reads:
- entities and the typed relationships between them,
- relationship types with their inverse and display metadata, and
- the constraint rows (type pairs, cardinality, required relationships) that the
  ontology validation checks evaluate against.

Notes:
- Every model here is frozen. The pipeline reads the graph snapshot it is given
  and never mutates it; relationship writes belong to the storage layer.
- `entity_type` is always a concrete leaf type. Abstract types exist only in the
  ontology YAML and are expanded at load time.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SourceConfidence(str, Enum):
    DRAFT = "DRAFT"
    AUTHORITATIVE = "AUTHORITATIVE"
    SUPERSEDED = "SUPERSEDED"


class RelationshipTone(str, Enum):
    FRIENDLY = "friendly"
    HOSTILE = "hostile"
    NEUTRAL = "neutral"
    ROMANTIC = "romantic"
    PROFESSIONAL = "professional"
    FEARFUL = "fearful"
    RESPECTFUL = "respectful"
    UNKNOWN = "unknown"


class Entity(BaseModel):
    """A campaign entity (NPC, location, faction, ...)."""

    model_config = ConfigDict(frozen=True)

    id: str
    campaign_id: str = ""
    entity_type: str
    name: str
    description: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    source_confidence: SourceConfidence = SourceConfidence.DRAFT
    version: int = 1


class Relationship(BaseModel):
    """A stored, directed relationship between two entities.

    The storage layer keeps exactly one row per logical connection; the inverse
    direction is derived from the relationship type at display time. The
    `source_entity_*` / `target_entity_*` name and type fields are joined display
    fields and may be empty when the caller only has ids.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    campaign_id: str = ""
    source_entity_id: str
    target_entity_id: str
    relationship_type: str
    tone: RelationshipTone | None = None
    strength: int | None = None
    description: str = ""
    source_entity_name: str = ""
    source_entity_type: str = ""
    target_entity_name: str = ""
    target_entity_type: str = ""
    display_label: str = ""


class RelationshipType(BaseModel):
    """A relationship type in the ontology vocabulary.

    `campaign_id` is None for system templates; campaign-scoped copies carry the
    owning campaign.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    inverse_name: str
    is_symmetric: bool = False
    display_label: str
    inverse_display_label: str
    description: str = ""
    genre: list[str] = Field(default_factory=list)
    campaign_id: str | None = None


class RelationshipSuggestion(BaseModel):
    """A relationship proposed by the enrichment stage and not yet stored."""

    model_config = ConfigDict(frozen=True)

    source_entity_id: str
    source_entity_name: str = ""
    target_entity_id: str
    target_entity_name: str = ""
    relationship_type: str
    description: str = ""


class TypePairConstraint(BaseModel):
    """Allowed (source type, target type) pairs for one relationship type.

    Pairs hold concrete types only. A relationship type without a constraint row
    is unconstrained.
    """

    model_config = ConfigDict(frozen=True)

    relationship_type: str
    allowed_pairs: frozenset[tuple[str, str]]

    def allows(self, source_type: str, target_type: str) -> bool:
        return (source_type, target_type) in self.allowed_pairs


class CardinalityConstraint(BaseModel):
    """Per-entity maximum counts for one relationship type. None means unlimited."""

    model_config = ConfigDict(frozen=True)

    relationship_type: str
    max_source: int | None = None
    max_target: int | None = None


class RequiredRelationship(BaseModel):
    """Entities of `entity_type` must take part in at least one `relationship_type` edge."""

    model_config = ConfigDict(frozen=True)

    entity_type: str
    relationship_type: str
