# agents/canon_expert.py
"""Detect contradictions between new content and established campaign canon.

The expert compares the job's content against reference material retrieved for
the campaign (RAG results, current entity descriptions, relationships and the
game system schema) and reports factual, temporal and character
contradictions. Without reference material there is nothing to compare, so the
expert returns no findings and makes no LLM call.
"""

from __future__ import annotations

from typing import Any

import structlog

import config
from agents.response_parsing import contradiction_detection_type, parse_canon_response
from core.exceptions import ResponseParseError
from core.llm_provider import CompletionRequest, LLMProvider
from models.analysis_models import AnalysisPhase, ContentAnalysisItem, Resolution
from models.pipeline_models import PipelineInput
from prompts.prompt_renderer import get_system_prompt, render_prompt
from utils.json_utils import truncate_for_log, truncate_string

logger = structlog.get_logger(__name__)


class CanonExpert:
    """Compare job content against established campaign canon."""

    name = "canon-expert"
    depends_on: tuple[str, ...] = ()

    def __init__(self, depends_on: tuple[str, ...] = ()):
        self.depends_on = tuple(depends_on)

    async def run(self, provider: LLMProvider, pipeline_input: PipelineInput) -> list[ContentAnalysisItem]:
        """Ask the LLM for contradictions between the content and reference material.

        Returns an empty list without calling the provider when there is no
        content or no retrieved campaign material. Provider errors propagate.
        """
        if not pipeline_input.content.strip():
            logger.debug("Canon check skipped: empty content", job_id=pipeline_input.job_id)
            return []
        if pipeline_input.context is None or not pipeline_input.context.campaign_results:
            logger.debug("Canon check skipped: no established facts", job_id=pipeline_input.job_id)
            return []

        request = CompletionRequest(
            system_prompt=get_system_prompt("canon_expert"),
            user_prompt=build_user_prompt(pipeline_input),
            max_tokens=config.CANON_MAX_TOKENS,
            temperature=config.TEMPERATURE_EXPERT,
        )

        # Transport and quota errors propagate to the pipeline.
        response = await provider.complete(request)

        try:
            contradictions = parse_canon_response(response.content)
        except ResponseParseError as e:
            logger.warning(
                f"Canon expert could not parse LLM response for job {pipeline_input.job_id}: {e.message}",
                job_id=pipeline_input.job_id,
                excerpt=truncate_for_log(response.content, 200),
            )
            return []

        findings = [
            ContentAnalysisItem(
                job_id=pipeline_input.job_id,
                detection_type=contradiction_detection_type(c.contradiction_type),
                matched_text=c.conflicting_text,
                suggested_content=c.to_payload(),
                resolution=Resolution.PENDING,
                phase=AnalysisPhase.ANALYSIS,
            )
            for c in contradictions
        ]

        logger.info(
            "Canon check complete",
            job_id=pipeline_input.job_id,
            findings=len(findings),
            tokens_used=response.tokens_used,
        )
        return findings


def build_user_prompt(pipeline_input: PipelineInput) -> str:
    content = pipeline_input.content
    max_chars = config.MAX_CONTENT_CHARS
    content_truncated = len(content) > max_chars
    if content_truncated:
        content = content[:max_chars]

    context = pipeline_input.context
    facts: list[dict[str, Any]] = []
    game_system_yaml = ""
    if context is not None:
        facts = [
            {
                "name": result.source_name,
                "table": result.source_table,
                "chunk": truncate_string(result.chunk_content, config.MAX_RAG_CHUNK_CHARS),
            }
            for result in context.campaign_results
        ]
        game_system_yaml = context.game_system_yaml.strip()

    entities = [
        {
            "name": entity.name,
            "entity_type": entity.entity_type,
            "confidence": entity.source_confidence.value,
            "description": truncate_string(entity.description, config.MAX_ENTITY_DESCRIPTION_CHARS),
        }
        for entity in pipeline_input.entities
    ]
    relationships = [
        {"source": rel.source_entity_name, "target": rel.target_entity_name, "label": rel.display_label}
        for rel in pipeline_input.relationships
    ]

    return render_prompt(
        "canon_expert/user_prompt.j2",
        {
            "content": content,
            "content_truncated": content_truncated,
            "max_content_chars": max_chars,
            "facts": facts,
            "entities": entities,
            "relationships": relationships,
            "game_system_yaml": game_system_yaml,
            "source_table": pipeline_input.source_table,
            "source_id": pipeline_input.source_id,
            "source_field": pipeline_input.source_field,
        },
    )
