# core/ontology_validation/orphans.py
"""Entities that take part in no relationship at all."""

from __future__ import annotations

from collections.abc import Sequence

from core.ontology_validation.graph_snapshot import iter_edges
from models.kg_models import Entity, Relationship, RelationshipSuggestion

ORPHAN_DESCRIPTION = (
    "Entity has no relationships. Consider adding connections to other entities "
    "or verifying that this entity is relevant."
)


def check_orphaned_entities(
    entities: Sequence[Entity],
    relationships: Sequence[Relationship],
    proposed: Sequence[RelationshipSuggestion] = (),
) -> list[Entity]:
    """Return entities that are neither source nor target of any edge, in input order."""
    if not entities:
        return []

    connected: set[str] = set()
    for edge in iter_edges(relationships, proposed):
        connected.add(edge.source_id)
        connected.add(edge.target_id)

    return [entity for entity in entities if entity.id not in connected]


def orphan_payload(entity: Entity) -> dict[str, str]:
    return {
        "entityId": entity.id,
        "entityName": entity.name,
        "entityType": entity.entity_type,
        "description": ORPHAN_DESCRIPTION,
    }
