# tests/fakes/graph_builders.py
"""Terse constructors for graph snapshot fixtures."""

from __future__ import annotations

from typing import Any

from models.kg_models import Entity, Relationship, RelationshipSuggestion
from models.pipeline_models import PipelineInput, RAGContext, SearchResult


def entity(entity_id: str, entity_type: str, name: str | None = None, **kwargs: Any) -> Entity:
    return Entity(id=entity_id, entity_type=entity_type, name=name or f"{entity_type}-{entity_id}", **kwargs)


def relationship(source: Entity, target: Entity, relationship_type: str, rel_id: str | None = None, **kwargs: Any) -> Relationship:
    return Relationship(
        id=rel_id or f"{source.id}-{relationship_type}-{target.id}",
        source_entity_id=source.id,
        target_entity_id=target.id,
        relationship_type=relationship_type,
        source_entity_name=source.name,
        source_entity_type=source.entity_type,
        target_entity_name=target.name,
        target_entity_type=target.entity_type,
        **kwargs,
    )


def suggestion(source: Entity, target: Entity, relationship_type: str, description: str = "") -> RelationshipSuggestion:
    return RelationshipSuggestion(
        source_entity_id=source.id,
        source_entity_name=source.name,
        target_entity_id=target.id,
        target_entity_name=target.name,
        relationship_type=relationship_type,
        description=description,
    )


def rag_context(*chunks: str, game_system_yaml: str = "") -> RAGContext:
    return RAGContext(
        campaign_results=[
            SearchResult(
                source_table="entities",
                source_id=str(index),
                source_name=f"Source {index}",
                chunk_content=chunk,
                similarity=0.9,
            )
            for index, chunk in enumerate(chunks, start=1)
        ],
        game_system_yaml=game_system_yaml,
    )


def pipeline_input(**kwargs: Any) -> PipelineInput:
    values: dict[str, Any] = {"campaign_id": "camp-1", "job_id": "job-1", "source_table": "chapters", "source_id": "7"}
    values.update(kwargs)
    return PipelineInput(**values)
