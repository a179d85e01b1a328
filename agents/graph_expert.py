# agents/graph_expert.py
"""Check the campaign graph for structural and semantic hygiene problems.

The graph expert runs in two stages:

1. Structural checks that need no LLM: orphaned entities, then type-pair,
   cardinality and required-relationship validation against the campaign's
   constraint tables in the ontology store.
2. A semantic pass where the LLM looks for redundant or implied edges among the
   stored and proposed relationships. It only runs when there is at least one
   relationship to look at.

Structural findings always come first. If the LLM call fails, including when
the agent deadline passes first, the structural findings travel with the raised
`AgentPartialFailureError` so the pipeline can keep them.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog

import config
from agents.response_parsing import graph_detection_type, parse_graph_response
from core.exceptions import AgentPartialFailureError, LLMServiceError, OntologyStoreError, ResponseParseError
from core.llm_provider import CompletionRequest, LLMProvider
from core.ontology_validation import (
    check_cardinality,
    check_orphaned_entities,
    check_required_relationships,
    check_type_pairs,
    orphan_payload,
)
from core.ontology_validation.graph_snapshot import index_entities
from models.analysis_models import AnalysisPhase, ContentAnalysisItem, DetectionType, Resolution
from models.kg_models import RelationshipType
from models.pipeline_models import PipelineInput
from ontology.store import OntologyStore
from prompts.prompt_renderer import get_system_prompt, render_prompt
from utils.json_utils import truncate_for_log, truncate_string

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class GraphExpert:
    """Structural and semantic graph hygiene checks for one job snapshot."""

    name = "graph-expert"
    depends_on: tuple[str, ...] = ()

    def __init__(self, ontology_store: OntologyStore, depends_on: tuple[str, ...] = ()):
        self.ontology_store = ontology_store
        self.depends_on = tuple(depends_on)

    async def run(self, provider: LLMProvider, pipeline_input: PipelineInput) -> list[ContentAnalysisItem]:
        """Return structural findings followed by the LLM's semantic findings.

        Raises:
            AgentPartialFailureError: The LLM call failed; carries the
                structural findings.
        """
        if not pipeline_input.entities:
            logger.debug("Graph check skipped: no entities", job_id=pipeline_input.job_id)
            return []

        structural = await self.structural_findings(pipeline_input)

        if not pipeline_input.relationships and not pipeline_input.proposed_relationships:
            logger.info(
                "Graph check complete (structural only, no relationships)",
                job_id=pipeline_input.job_id,
                structural=len(structural),
            )
            return structural

        try:
            semantic = await self._semantic_findings(provider, pipeline_input)
        except LLMServiceError as e:
            logger.error(
                f"Graph expert LLM call failed for job {pipeline_input.job_id}; keeping structural findings",
                job_id=pipeline_input.job_id,
                structural=len(structural),
                error=str(e),
            )
            raise AgentPartialFailureError(
                f"graph-expert semantic check failed: {e.message}",
                partial_findings=structural,
                cause=e,
                details={"job_id": pipeline_input.job_id},
            ) from e

        logger.info(
            "Graph check complete",
            job_id=pipeline_input.job_id,
            structural=len(structural),
            semantic=len(semantic),
        )
        return structural + semantic

    async def _load(self, table: str, loader: Awaitable[T], campaign_id: str) -> T | None:
        try:
            return await loader
        except OntologyStoreError as e:
            logger.warning(
                f"Could not load {table} for campaign {campaign_id}; skipping that check",
                campaign_id=campaign_id,
                error=str(e),
            )
            return None

    async def structural_findings(self, pipeline_input: PipelineInput) -> list[ContentAnalysisItem]:
        """Run every structural check and return findings in check order."""
        job_id = pipeline_input.job_id
        campaign_id = pipeline_input.campaign_id
        entities = pipeline_input.entities
        relationships = pipeline_input.relationships
        proposed = pipeline_input.proposed_relationships
        findings: list[ContentAnalysisItem] = []

        for orphan in check_orphaned_entities(entities, relationships, proposed):
            findings.append(
                _structural_item(job_id, DetectionType.ORPHAN_WARNING, orphan.name, orphan.id, orphan_payload(orphan))
            )

        type_pairs = await self._load(
            "type-pair constraints", self.ontology_store.get_type_pair_constraints(campaign_id), campaign_id
        )
        if type_pairs is not None:
            for violation in check_type_pairs(relationships, proposed, entities, type_pairs):
                findings.append(
                    _structural_item(
                        job_id,
                        DetectionType.INVALID_TYPE_PAIR,
                        violation.relationship_type,
                        None,
                        violation.to_payload(),
                    )
                )

        limits = await self._load(
            "cardinality limits", self.ontology_store.get_cardinality_limits(campaign_id), campaign_id
        )
        if limits is not None:
            for violation in check_cardinality(relationships, proposed, entities, limits):
                findings.append(
                    _structural_item(
                        job_id,
                        DetectionType.CARDINALITY_VIOLATION,
                        violation.relationship_type,
                        violation.entity_id,
                        violation.to_payload(),
                    )
                )

        rules = await self._load("required rules", self.ontology_store.get_required_rules(campaign_id), campaign_id)
        if rules is not None:
            for violation in check_required_relationships(entities, relationships, proposed, rules):
                findings.append(
                    _structural_item(
                        job_id,
                        DetectionType.MISSING_REQUIRED,
                        violation.missing_relationship_type,
                        violation.entity_id,
                        violation.to_payload(),
                    )
                )

        return findings

    async def _semantic_findings(
        self, provider: LLMProvider, pipeline_input: PipelineInput
    ) -> list[ContentAnalysisItem]:
        vocabulary = await self._load(
            "relationship types",
            self.ontology_store.get_relationship_types(pipeline_input.campaign_id),
            pipeline_input.campaign_id,
        )

        request = CompletionRequest(
            system_prompt=get_system_prompt("graph_expert"),
            user_prompt=build_user_prompt(pipeline_input, vocabulary or []),
            max_tokens=config.GRAPH_MAX_TOKENS,
            temperature=config.TEMPERATURE_EXPERT,
        )
        response = await provider.complete(request)

        try:
            parsed = parse_graph_response(response.content)
        except ResponseParseError as e:
            logger.warning(
                f"Graph expert could not parse LLM response for job {pipeline_input.job_id}: {e.message}",
                job_id=pipeline_input.job_id,
                excerpt=truncate_for_log(response.content, 200),
            )
            return []

        return [
            ContentAnalysisItem(
                job_id=pipeline_input.job_id,
                detection_type=graph_detection_type(finding.finding_type),
                matched_text=finding.description,
                suggested_content=finding.to_payload(),
                resolution=Resolution.PENDING,
                phase=AnalysisPhase.ANALYSIS,
            )
            for finding in parsed
        ]


def _structural_item(
    job_id: str,
    detection_type: DetectionType,
    matched_text: str,
    entity_id: str | None,
    payload: dict[str, Any],
) -> ContentAnalysisItem:
    return ContentAnalysisItem(
        job_id=job_id,
        detection_type=detection_type,
        matched_text=matched_text,
        entity_id=entity_id,
        suggested_content=payload,
        resolution=Resolution.PENDING,
        phase=AnalysisPhase.ANALYSIS,
    )


def build_user_prompt(pipeline_input: PipelineInput, vocabulary: list[RelationshipType]) -> str:
    entity_by_id = index_entities(pipeline_input.entities)

    def entity_type(entity_id: str, joined: str) -> str:
        if joined:
            return joined
        entity = entity_by_id.get(entity_id)
        return entity.entity_type if entity else "unknown"

    relationships = [
        {
            "source": rel.source_entity_name or rel.source_entity_id,
            "source_type": entity_type(rel.source_entity_id, rel.source_entity_type),
            "label": rel.display_label or rel.relationship_type,
            "target": rel.target_entity_name or rel.target_entity_id,
            "target_type": entity_type(rel.target_entity_id, rel.target_entity_type),
        }
        for rel in pipeline_input.relationships
    ]
    proposed = [
        {
            "source": suggestion.source_entity_name or suggestion.source_entity_id,
            "relationship_type": suggestion.relationship_type,
            "target": suggestion.target_entity_name or suggestion.target_entity_id,
            "description": truncate_string(suggestion.description, config.MAX_SUGGESTION_DESCRIPTION_CHARS),
        }
        for suggestion in pipeline_input.proposed_relationships
    ]
    entities = [
        {"name": entity.name, "entity_type": entity.entity_type, "id": entity.id}
        for entity in pipeline_input.entities
    ]

    return render_prompt(
        "graph_expert/user_prompt.j2",
        {
            "relationships": relationships,
            "proposed": proposed,
            "entities": entities,
            "vocabulary": vocabulary,
        },
    )
