# core/ontology_validation/required.py
"""Required-relationship rules.

An entity satisfies a rule when it is either endpoint of at least one stored or
proposed relationship of the required type. Rules are advisory.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from core.ontology_validation.graph_snapshot import iter_edges
from models.kg_models import Entity, Relationship, RelationshipSuggestion, RequiredRelationship


@dataclass(frozen=True)
class RequiredViolation:
    entity_id: str
    entity_name: str
    entity_type: str
    missing_relationship_type: str

    @property
    def override_key(self) -> str:
        return f"{self.entity_type}:{self.missing_relationship_type}"

    @property
    def description(self) -> str:
        return (
            f"Entity {self.entity_name} ({self.entity_type}) is missing a required "
            f"{self.missing_relationship_type} relationship."
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "entityName": self.entity_name,
            "entityType": self.entity_type,
            "missingRelationshipType": self.missing_relationship_type,
            "description": self.description,
        }


def _rules_by_entity_type(rules: Iterable[RequiredRelationship]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = defaultdict(list)
    for rule in rules:
        if rule.relationship_type not in grouped[rule.entity_type]:
            grouped[rule.entity_type].append(rule.relationship_type)
    return {entity_type: sorted(rel_types) for entity_type, rel_types in grouped.items()}


def check_required_relationships(
    entities: Sequence[Entity],
    relationships: Sequence[Relationship],
    proposed: Sequence[RelationshipSuggestion],
    rules: Sequence[RequiredRelationship],
) -> list[RequiredViolation]:
    """Return violations in entity input order, then by relationship type."""
    if not rules or not entities:
        return []

    required = _rules_by_entity_type(rules)
    present: set[tuple[str, str]] = set()
    for edge in iter_edges(relationships, proposed):
        present.add((edge.source_id, edge.relationship_type))
        present.add((edge.target_id, edge.relationship_type))

    violations: list[RequiredViolation] = []
    for entity in entities:
        for rel_type in required.get(entity.entity_type, ()):
            if (entity.id, rel_type) in present:
                continue
            violations.append(
                RequiredViolation(
                    entity_id=entity.id,
                    entity_name=entity.name,
                    entity_type=entity.entity_type,
                    missing_relationship_type=rel_type,
                )
            )
    return violations
