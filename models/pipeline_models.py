# models/pipeline_models.py
"""Define the advisory pipeline's input and result containers.

`PipelineInput` is the immutable job snapshot every agent reads. Its collections
are tuples so the snapshot cannot be changed in place either. Agents never see
each other's findings; they only read this object and the ontology store.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from models.analysis_models import ContentAnalysisItem, DetectionType
from models.kg_models import Entity, Relationship, RelationshipSuggestion


class SourceScope(str, Enum):
    CAMPAIGN = "campaign"
    CHAPTER = "chapter"
    SESSION = "session"
    ENTITY = "entity"


class SearchResult(BaseModel):
    """One retrieval hit from the campaign's indexed content."""

    model_config = ConfigDict(frozen=True)

    source_table: str
    source_id: str
    source_name: str = ""
    chunk_content: str = ""
    similarity: float = 0.0


class RAGContext(BaseModel):
    """Reference material gathered before the pipeline runs."""

    model_config = ConfigDict(frozen=True)

    campaign_results: tuple[SearchResult, ...] = ()
    game_system_yaml: str = ""


class PipelineInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    campaign_id: str
    job_id: str
    source_table: str = ""
    source_id: str = ""
    source_field: str = ""
    source_scope: SourceScope = SourceScope.CAMPAIGN
    content: str = ""
    entities: tuple[Entity, ...] = ()
    relationships: tuple[Relationship, ...] = ()
    proposed_relationships: tuple[RelationshipSuggestion, ...] = ()
    context: RAGContext | None = None


class JobStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class PipelineResult(BaseModel):
    """Outcome of one advisory pass.

    `agent_errors` maps agent name to error message for agents that failed.
    `retryable` is True when at least one failure may clear on resubmission.
    """

    job_id: str
    findings: list[ContentAnalysisItem] = Field(default_factory=list)
    agent_errors: dict[str, str] = Field(default_factory=dict)
    agent_finding_counts: dict[str, int] = Field(default_factory=dict)
    status: JobStatus = JobStatus.COMPLETED
    retryable: bool = False
    overrides_applied: bool = True
    filtered_count: int = 0

    def findings_of(self, detection_type: DetectionType) -> list[ContentAnalysisItem]:
        return [f for f in self.findings if f.detection_type == detection_type]
