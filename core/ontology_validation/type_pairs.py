# core/ontology_validation/type_pairs.py
"""Domain/range validation for relationships.

A relationship type with a constraint row only allows the (source type, target
type) pairs listed in it. Types without a row are unconstrained. Constraint rows
already hold concrete types, so no hierarchy walk happens here.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from core.ontology_validation.graph_snapshot import iter_edges, index_entities
from models.kg_models import Entity, Relationship, RelationshipSuggestion, TypePairConstraint

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TypePairViolation:
    relationship_type: str
    source_entity_id: str
    source_entity_name: str
    source_entity_type: str
    target_entity_id: str
    target_entity_name: str
    target_entity_type: str
    valid_pairs: tuple[tuple[str, str], ...]

    @property
    def override_key(self) -> str:
        return f"{self.relationship_type}:{self.source_entity_type}:{self.target_entity_type}"

    @property
    def description(self) -> str:
        return (
            f"Relationship type {self.relationship_type} is not valid between "
            f"{self.source_entity_type} and {self.target_entity_type}."
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "sourceEntityId": self.source_entity_id,
            "sourceEntityName": self.source_entity_name,
            "sourceEntityType": self.source_entity_type,
            "targetEntityId": self.target_entity_id,
            "targetEntityName": self.target_entity_name,
            "targetEntityType": self.target_entity_type,
            "relationshipType": self.relationship_type,
            "validPairs": format_valid_pairs(self.valid_pairs),
            "description": self.description,
        }


def format_valid_pairs(pairs: Iterable[tuple[str, str]]) -> str:
    """Render allowed pairs as "src -> tgt, ..." or "none"."""
    rendered = [f"{src} -> {tgt}" for src, tgt in sorted(pairs)]
    return ", ".join(rendered) if rendered else "none"


def check_type_pairs(
    relationships: Sequence[Relationship],
    proposed: Sequence[RelationshipSuggestion],
    entities: Sequence[Entity],
    constraints: Mapping[str, TypePairConstraint],
) -> list[TypePairViolation]:
    """Return one violation per offending (type, source type, target type) combination.

    Both stored and proposed relationships are checked. A relationship whose
    endpoint types cannot be determined is skipped. Results are sorted by
    override key.
    """
    if not constraints:
        return []

    entity_by_id = index_entities(entities)
    violations: dict[str, TypePairViolation] = {}

    for edge in iter_edges(relationships, proposed):
        constraint = constraints.get(edge.relationship_type)
        if constraint is None:
            continue

        source = entity_by_id.get(edge.source_id)
        target = entity_by_id.get(edge.target_id)
        source_type = source.entity_type if source else edge.source_type
        target_type = target.entity_type if target else edge.target_type
        if not source_type or not target_type:
            logger.debug(
                "Skipping type-pair check for unresolved endpoint",
                relationship_type=edge.relationship_type,
                source_id=edge.source_id,
                target_id=edge.target_id,
            )
            continue

        if constraint.allows(source_type, target_type):
            continue

        violation = TypePairViolation(
            relationship_type=edge.relationship_type,
            source_entity_id=edge.source_id,
            source_entity_name=source.name if source else edge.source_name,
            source_entity_type=source_type,
            target_entity_id=edge.target_id,
            target_entity_name=target.name if target else edge.target_name,
            target_entity_type=target_type,
            valid_pairs=tuple(sorted(constraint.allowed_pairs)),
        )
        violations.setdefault(violation.override_key, violation)

    return [violations[key] for key in sorted(violations)]
