# agents/base.py
"""The contract every advisory agent fulfils."""

from typing import Protocol, runtime_checkable

from core.llm_provider import LLMProvider
from models.analysis_models import ContentAnalysisItem
from models.pipeline_models import PipelineInput


@runtime_checkable
class AdvisoryAgent(Protocol):
    """An agent the advisory pipeline can schedule.

    `depends_on` names agents that must run first. Dependencies only order
    execution; an agent never sees another agent's findings.
    """

    name: str
    depends_on: tuple[str, ...]

    async def run(self, provider: LLMProvider, pipeline_input: PipelineInput) -> list[ContentAnalysisItem]:
        """Analyze the job snapshot and return findings.

        Hard failures (provider transport errors) are raised, never returned.
        """
        ...
