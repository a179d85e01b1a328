# core/ontology_validation/cardinality.py
"""Per-entity cardinality limits.

Counts stored plus proposed edges for each (entity, relationship type,
direction) and reports every count above a configured maximum. A `None` maximum
means unlimited.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from core.ontology_validation.graph_snapshot import iter_edges, index_entities
from models.kg_models import CardinalityConstraint, Entity, Relationship, RelationshipSuggestion

Direction = Literal["source", "target"]


@dataclass(frozen=True)
class CardinalityViolation:
    entity_id: str
    entity_name: str
    entity_type: str
    relationship_type: str
    direction: Direction
    current_count: int
    max_allowed: int

    @property
    def override_key(self) -> str:
        return f"{self.relationship_type}:{self.entity_id}:{self.direction}"

    @property
    def description(self) -> str:
        return (
            f"Entity {self.entity_name} would have {self.current_count} {self.relationship_type} "
            f"relationships as {self.direction}, exceeding the limit of {self.max_allowed}."
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "entityName": self.entity_name,
            "entityType": self.entity_type,
            "relationshipType": self.relationship_type,
            "direction": self.direction,
            "currentCount": self.current_count,
            "maxAllowed": self.max_allowed,
            "description": self.description,
        }


def check_cardinality(
    relationships: Sequence[Relationship],
    proposed: Sequence[RelationshipSuggestion],
    entities: Sequence[Entity],
    limits: Mapping[str, CardinalityConstraint],
) -> list[CardinalityViolation]:
    """Return violations sorted by (relationship type, entity id, direction)."""
    if not limits:
        return []

    counts: Counter[tuple[str, str, Direction]] = Counter()
    for edge in iter_edges(relationships, proposed):
        if edge.relationship_type not in limits:
            continue
        counts[(edge.relationship_type, edge.source_id, "source")] += 1
        counts[(edge.relationship_type, edge.target_id, "target")] += 1

    entity_by_id = index_entities(entities)
    violations: list[CardinalityViolation] = []
    for (rel_type, entity_id, direction), count in sorted(counts.items()):
        limit = limits[rel_type]
        max_allowed = limit.max_source if direction == "source" else limit.max_target
        if max_allowed is None or count <= max_allowed:
            continue

        entity = entity_by_id.get(entity_id)
        violations.append(
            CardinalityViolation(
                entity_id=entity_id,
                entity_name=entity.name if entity else f"entity-{entity_id}",
                entity_type=entity.entity_type if entity else "unknown",
                relationship_type=rel_type,
                direction=direction,
                current_count=count,
                max_allowed=max_allowed,
            )
        )
    return violations
