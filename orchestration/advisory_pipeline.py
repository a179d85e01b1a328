# orchestration/advisory_pipeline.py
"""Schedule advisory agents, collect their findings and apply overrides.

The pipeline is built once from an explicit list of agent instances. Their
execution order is resolved at construction, so a dependency cycle or a bad
agent list fails at startup rather than in the middle of a job.

Failure policy is isolate-and-continue: an agent that raises is recorded in
`PipelineResult.agent_errors` and contributes nothing (or only the partial
findings carried by `AgentPartialFailureError`), while every other agent still
runs. Dependencies order execution only; no agent reads another's findings.

With an agent timeout configured, each agent's LLM calls fail with
`LLMTimeoutError` once its deadline passes, which lets the graph expert return
its structural findings as a partial failure. An agent still running shortly
after the deadline is cancelled outright.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

import structlog

import config
from agents.base import AdvisoryAgent
from agents.canon_expert import CanonExpert
from agents.graph_expert import GraphExpert
from core.exceptions import (
    AgentDependencyCycleError,
    AgentPartialFailureError,
    LLMTimeoutError,
    PipelineConfigurationError,
    is_retryable,
)
from core.llm_provider import CompletionRequest, CompletionResponse, LLMProvider
from core.override_filter import filter_overridden_findings
from models.analysis_models import ContentAnalysisItem
from models.pipeline_models import JobStatus, PipelineInput, PipelineResult
from ontology.store import OntologyStore

logger = structlog.get_logger(__name__)

_CANCEL_GRACE_SECONDS = 1.0


def resolve_execution_order(agents: Sequence[AdvisoryAgent]) -> list[AdvisoryAgent]:
    """Return `agents` in dependency order, ties broken by registration order.

    Raises:
        PipelineConfigurationError: Duplicate or empty agent names, or a
            dependency on an agent that is not registered.
        AgentDependencyCycleError: The dependencies form a cycle.
    """
    by_name: dict[str, AdvisoryAgent] = {}
    for agent in agents:
        if not agent.name:
            raise PipelineConfigurationError("Agent registered without a name")
        if agent.name in by_name:
            raise PipelineConfigurationError(
                f"Duplicate agent name '{agent.name}'", details={"agent": agent.name}
            )
        by_name[agent.name] = agent

    for agent in agents:
        for dependency in agent.depends_on:
            if dependency not in by_name:
                raise PipelineConfigurationError(
                    f"Agent '{agent.name}' depends on unregistered agent '{dependency}'",
                    details={"agent": agent.name, "dependency": dependency},
                )

    ordered: list[AdvisoryAgent] = []
    placed: set[str] = set()
    remaining = list(agents)
    while remaining:
        ready = next((a for a in remaining if all(dep in placed for dep in a.depends_on)), None)
        if ready is None:
            raise AgentDependencyCycleError(_find_cycle(remaining))
        ordered.append(ready)
        placed.add(ready.name)
        remaining.remove(ready)
    return ordered


def _find_cycle(agents: Sequence[AdvisoryAgent]) -> list[str]:
    """Return one dependency cycle among `agents`, first name repeated last."""
    deps = {agent.name: list(agent.depends_on) for agent in agents}
    visiting: list[str] = []
    done: set[str] = set()

    def visit(name: str) -> list[str] | None:
        if name in visiting:
            return visiting[visiting.index(name) :] + [name]
        if name in done or name not in deps:
            return None
        visiting.append(name)
        for dep in deps[name]:
            cycle = visit(dep)
            if cycle:
                return cycle
        visiting.pop()
        done.add(name)
        return None

    for agent in agents:
        cycle = visit(agent.name)
        if cycle:
            return cycle
    return [agent.name for agent in agents]


def group_into_levels(ordered: Sequence[AdvisoryAgent]) -> list[list[AdvisoryAgent]]:
    """Group topologically ordered agents so each level only depends on earlier ones."""
    level_of: dict[str, int] = {}
    levels: list[list[AdvisoryAgent]] = []
    for agent in ordered:
        level = 1 + max((level_of[dep] for dep in agent.depends_on), default=-1)
        level_of[agent.name] = level
        if level == len(levels):
            levels.append([])
        levels[level].append(agent)
    return levels


class _DeadlineProvider:
    """Provider wrapper that fails completions running past an agent's deadline.

    The agent sees `LLMTimeoutError` from `complete` instead of being cancelled,
    so work it finished before the call (structural findings) survives.
    """

    def __init__(self, provider: LLMProvider, timeout: float):
        self._provider = provider
        self._timeout = timeout
        self._deadline = time.monotonic() + timeout

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise LLMTimeoutError(self._timeout)
        try:
            return await asyncio.wait_for(self._provider.complete(request), timeout=remaining)
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(self._timeout) from e


class _AgentOutcome:
    __slots__ = ("findings", "error")

    def __init__(self, findings: list[ContentAnalysisItem], error: BaseException | None = None):
        self.findings = findings
        self.error = error


class AdvisoryPipeline:
    """Run a fixed set of advisory agents over one job snapshot."""

    def __init__(
        self,
        agents: Sequence[AdvisoryAgent],
        ontology_store: OntologyStore,
        *,
        concurrent: bool = False,
        agent_timeout: float | None = None,
    ):
        self.ontology_store = ontology_store
        self.concurrent = concurrent
        self.agent_timeout = agent_timeout if agent_timeout and agent_timeout > 0 else None
        self._order = resolve_execution_order(agents)
        self._levels = group_into_levels(self._order)
        logger.info(
            "Advisory pipeline configured",
            execution_order=[agent.name for agent in self._order],
            concurrent=concurrent,
            agent_timeout=self.agent_timeout,
        )

    @property
    def execution_order(self) -> list[str]:
        return [agent.name for agent in self._order]

    @property
    def levels(self) -> list[list[str]]:
        return [[agent.name for agent in level] for level in self._levels]

    async def _run_agent(
        self, agent: AdvisoryAgent, provider: LLMProvider, pipeline_input: PipelineInput
    ) -> _AgentOutcome:
        started = time.monotonic()
        try:
            if self.agent_timeout is not None:
                # LLM calls fail at the deadline; the grace only cancels agents stuck elsewhere.
                bounded = _DeadlineProvider(provider, self.agent_timeout)
                findings = await asyncio.wait_for(
                    agent.run(bounded, pipeline_input),
                    timeout=self.agent_timeout + min(self.agent_timeout, _CANCEL_GRACE_SECONDS),
                )
            else:
                findings = await agent.run(provider, pipeline_input)
        except AgentPartialFailureError as e:
            logger.error(
                f"Agent '{agent.name}' failed part-way for job {pipeline_input.job_id}",
                agent=agent.name,
                job_id=pipeline_input.job_id,
                kept_findings=len(e.partial_findings),
                exc_info=True,
            )
            return _AgentOutcome(self._stamp(agent, e.partial_findings), e)
        except asyncio.TimeoutError:
            logger.error(
                f"Agent '{agent.name}' timed out after {self.agent_timeout}s for job {pipeline_input.job_id}",
                agent=agent.name,
                job_id=pipeline_input.job_id,
            )
            return _AgentOutcome([], TimeoutError(f"timed out after {self.agent_timeout}s"))
        except Exception as e:
            logger.error(
                f"Agent '{agent.name}' failed for job {pipeline_input.job_id}: {e}",
                agent=agent.name,
                job_id=pipeline_input.job_id,
                exc_info=True,
            )
            return _AgentOutcome([], e)

        logger.debug(
            f"Agent '{agent.name}' finished",
            job_id=pipeline_input.job_id,
            findings=len(findings),
            duration_seconds=round(time.monotonic() - started, 3),
        )
        return _AgentOutcome(self._stamp(agent, findings))

    @staticmethod
    def _stamp(agent: AdvisoryAgent, findings: Sequence[ContentAnalysisItem]) -> list[ContentAnalysisItem]:
        return [finding.model_copy(update={"agent_name": agent.name}) for finding in findings]

    async def run(self, provider: LLMProvider, pipeline_input: PipelineInput) -> PipelineResult:
        """Run every agent, then drop findings the GM has already acknowledged.

        Cancelling the task running this coroutine aborts the whole job.
        """
        started = time.monotonic()
        outcomes: dict[str, _AgentOutcome] = {}

        if self.concurrent:
            for level in self._levels:
                results = await asyncio.gather(
                    *(self._run_agent(agent, provider, pipeline_input) for agent in level)
                )
                for agent, outcome in zip(level, results):
                    outcomes[agent.name] = outcome
        else:
            for agent in self._order:
                outcomes[agent.name] = await self._run_agent(agent, provider, pipeline_input)

        findings: list[ContentAnalysisItem] = []
        agent_errors: dict[str, str] = {}
        finding_counts: dict[str, int] = {}
        retryable = False
        for agent in self._order:
            outcome = outcomes[agent.name]
            findings.extend(outcome.findings)
            finding_counts[agent.name] = len(outcome.findings)
            if outcome.error is not None:
                agent_errors[agent.name] = str(outcome.error) or type(outcome.error).__name__
                retryable = retryable or is_retryable(outcome.error)

        overrides_applied = True
        total_before_filter = len(findings)
        try:
            overrides = await self.ontology_store.get_overrides(pipeline_input.campaign_id)
        except Exception:
            overrides_applied = False
            logger.error(
                f"Could not load constraint overrides for campaign {pipeline_input.campaign_id}; "
                "returning findings unfiltered",
                job_id=pipeline_input.job_id,
                exc_info=True,
            )
        else:
            findings = filter_overridden_findings(findings, overrides)

        if not agent_errors:
            status = JobStatus.COMPLETED
        elif len(agent_errors) == len(self._order):
            status = JobStatus.FAILED
        else:
            status = JobStatus.PARTIAL

        result = PipelineResult(
            job_id=pipeline_input.job_id,
            findings=findings,
            agent_errors=agent_errors,
            agent_finding_counts=finding_counts,
            status=status,
            retryable=retryable,
            overrides_applied=overrides_applied,
            filtered_count=total_before_filter - len(findings),
        )

        logger.info(
            "Advisory pipeline run complete",
            job_id=pipeline_input.job_id,
            campaign_id=pipeline_input.campaign_id,
            agents=len(self._order),
            finding_counts=finding_counts,
            findings=len(findings),
            filtered=result.filtered_count,
            status=status.value,
            retryable=retryable,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        return result


def build_default_pipeline(ontology_store: OntologyStore) -> AdvisoryPipeline:
    """Build the canon and graph experts with settings from `config`."""
    return AdvisoryPipeline(
        [CanonExpert(), GraphExpert(ontology_store)],
        ontology_store,
        concurrent=config.PIPELINE_CONCURRENT_AGENTS,
        agent_timeout=config.AGENT_TIMEOUT_SECONDS,
    )
