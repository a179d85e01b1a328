# core/ontology_validation/graph_snapshot.py
"""Shared helpers for reading a graph snapshot plus a proposed batch."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import NamedTuple

from models.kg_models import Entity, Relationship, RelationshipSuggestion


class Edge(NamedTuple):
    """A relationship reduced to what the structural checks need.

    `source_type` / `target_type` carry the joined display types of stored
    relationships and are empty for proposed ones.
    """

    source_id: str
    target_id: str
    relationship_type: str
    source_name: str
    target_name: str
    source_type: str
    target_type: str
    proposed: bool


def iter_edges(
    relationships: Iterable[Relationship],
    proposed: Iterable[RelationshipSuggestion] = (),
) -> Iterator[Edge]:
    """Yield stored relationships first, then proposed ones, in input order."""
    for rel in relationships:
        yield Edge(
            source_id=rel.source_entity_id,
            target_id=rel.target_entity_id,
            relationship_type=rel.relationship_type,
            source_name=rel.source_entity_name,
            target_name=rel.target_entity_name,
            source_type=rel.source_entity_type,
            target_type=rel.target_entity_type,
            proposed=False,
        )
    for suggestion in proposed:
        yield Edge(
            source_id=suggestion.source_entity_id,
            target_id=suggestion.target_entity_id,
            relationship_type=suggestion.relationship_type,
            source_name=suggestion.source_entity_name,
            target_name=suggestion.target_entity_name,
            source_type="",
            target_type="",
            proposed=True,
        )


def index_entities(entities: Iterable[Entity]) -> dict[str, Entity]:
    return {entity.id: entity for entity in entities}
