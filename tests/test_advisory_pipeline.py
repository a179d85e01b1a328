# tests/test_advisory_pipeline.py
import asyncio

import httpx
import pytest

import config
from agents.canon_expert import CanonExpert
from agents.graph_expert import GraphExpert
from core.exceptions import (
    AgentDependencyCycleError,
    AgentPartialFailureError,
    PipelineConfigurationError,
    ProviderTransportError,
    QuotaExceededError,
)
from core.http_client_service import HTTPClientService
from core.llm_provider import OpenAIProvider
from models.analysis_models import ConstraintOverride, ContentAnalysisItem, DetectionType
from models.pipeline_models import JobStatus
from orchestration.advisory_pipeline import (
    AdvisoryPipeline,
    build_default_pipeline,
    group_into_levels,
    resolve_execution_order,
)
from tests.fakes.fake_ontology_store import FakeOntologyStore
from tests.fakes.fake_provider import FakeProvider
from tests.fakes.graph_builders import entity, pipeline_input, rag_context, relationship


def _item(text: str, detection_type: DetectionType = DetectionType.GRAPH_WARNING, **payload) -> ContentAnalysisItem:
    return ContentAnalysisItem(
        job_id="job-1", detection_type=detection_type, matched_text=text, suggested_content=payload
    )


class StubAgent:
    """Agent returning canned findings, raising, or sleeping; records run order."""

    def __init__(
        self,
        name: str,
        depends_on: tuple[str, ...] = (),
        findings: list[ContentAnalysisItem] | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
        log: list[str] | None = None,
    ):
        self.name = name
        self.depends_on = depends_on
        self.findings = findings if findings is not None else [_item(f"{name}-finding")]
        self.error = error
        self.delay = delay
        self.log = log if log is not None else []

    async def run(self, provider, pipeline_input):
        self.log.append(f"start:{self.name}")
        if self.delay:
            await asyncio.sleep(self.delay)
        self.log.append(f"end:{self.name}")
        if self.error is not None:
            raise self.error
        return list(self.findings)


class TestExecutionOrder:
    def test_dependencies_run_first(self) -> None:
        agents = [StubAgent("b", ("a",)), StubAgent("a"), StubAgent("c", ("b",))]
        assert [a.name for a in resolve_execution_order(agents)] == ["a", "b", "c"]

    def test_ties_follow_registration_order(self) -> None:
        agents = [StubAgent("graph"), StubAgent("canon"), StubAgent("summary", ("canon",)), StubAgent("lint")]
        assert [a.name for a in resolve_execution_order(agents)] == ["graph", "canon", "summary", "lint"]

    def test_cycle_is_reported_with_its_path(self) -> None:
        agents = [StubAgent("x"), StubAgent("a", ("b",)), StubAgent("b", ("c",)), StubAgent("c", ("a",))]
        with pytest.raises(AgentDependencyCycleError) as exc_info:
            resolve_execution_order(agents)
        assert exc_info.value.cycle == ["a", "b", "c", "a"]
        assert "a -> b -> c -> a" in str(exc_info.value)

    def test_self_dependency_is_a_cycle(self) -> None:
        with pytest.raises(AgentDependencyCycleError) as exc_info:
            resolve_execution_order([StubAgent("a", ("a",))])
        assert exc_info.value.cycle == ["a", "a"]

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(PipelineConfigurationError, match="Duplicate"):
            resolve_execution_order([StubAgent("a"), StubAgent("a")])

    def test_unknown_dependency_rejected(self) -> None:
        with pytest.raises(PipelineConfigurationError, match="unregistered"):
            resolve_execution_order([StubAgent("a", ("ghost",))])

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(PipelineConfigurationError):
            resolve_execution_order([StubAgent("")])

    def test_cycle_fails_at_construction(self) -> None:
        with pytest.raises(AgentDependencyCycleError):
            AdvisoryPipeline([StubAgent("a", ("b",)), StubAgent("b", ("a",))], FakeOntologyStore())

    def test_levels_group_independent_agents(self) -> None:
        ordered = resolve_execution_order(
            [StubAgent("a"), StubAgent("b"), StubAgent("c", ("a",)), StubAgent("d", ("c", "b"))]
        )
        assert [[a.name for a in level] for level in group_into_levels(ordered)] == [["a", "b"], ["c"], ["d"]]


@pytest.mark.asyncio
class TestPipelineRun:
    async def test_findings_concatenated_in_execution_order_and_stamped(self) -> None:
        log: list[str] = []
        pipeline = AdvisoryPipeline(
            [StubAgent("second", ("first",), log=log), StubAgent("first", log=log)], FakeOntologyStore()
        )
        result = await pipeline.run(FakeProvider(), pipeline_input())

        assert pipeline.execution_order == ["first", "second"]
        assert log == ["start:first", "end:first", "start:second", "end:second"]
        assert [f.matched_text for f in result.findings] == ["first-finding", "second-finding"]
        assert [f.agent_name for f in result.findings] == ["first", "second"]
        assert result.status == JobStatus.COMPLETED
        assert result.agent_finding_counts == {"first": 1, "second": 1}
        assert result.agent_errors == {}

    async def test_failing_agent_is_isolated(self) -> None:
        pipeline = AdvisoryPipeline(
            [StubAgent("canon", error=ProviderTransportError("upstream 503", status_code=503)), StubAgent("graph")],
            FakeOntologyStore(),
        )
        result = await pipeline.run(FakeProvider(), pipeline_input())

        assert [f.agent_name for f in result.findings] == ["graph"]
        assert "upstream 503" in result.agent_errors["canon"]
        assert result.agent_finding_counts == {"canon": 0, "graph": 1}
        assert result.status == JobStatus.PARTIAL
        assert result.retryable is True

    async def test_quota_failure_is_not_retryable(self) -> None:
        pipeline = AdvisoryPipeline(
            [StubAgent("canon", error=QuotaExceededError("out of credit", status_code=402))], FakeOntologyStore()
        )
        result = await pipeline.run(FakeProvider(), pipeline_input())
        assert result.status == JobStatus.FAILED
        assert result.retryable is False

    async def test_partial_failure_keeps_partial_findings(self) -> None:
        partial = AgentPartialFailureError(
            "semantic check failed",
            partial_findings=[_item("structural", DetectionType.ORPHAN_WARNING)],
            cause=ProviderTransportError("timeout"),
        )
        pipeline = AdvisoryPipeline([StubAgent("graph", error=partial), StubAgent("canon")], FakeOntologyStore())
        result = await pipeline.run(FakeProvider(), pipeline_input())

        assert [(f.agent_name, f.matched_text) for f in result.findings] == [
            ("graph", "structural"),
            ("canon", "canon-finding"),
        ]
        assert result.agent_finding_counts["graph"] == 1
        assert "graph" in result.agent_errors
        assert result.status == JobStatus.PARTIAL

    async def test_timeout_is_recorded_as_retryable_failure(self) -> None:
        pipeline = AdvisoryPipeline(
            [StubAgent("slow", delay=5), StubAgent("fast")], FakeOntologyStore(), agent_timeout=0.05
        )
        result = await pipeline.run(FakeProvider(), pipeline_input())

        assert result.agent_errors["slow"] == "timed out after 0.05s"
        assert [f.agent_name for f in result.findings] == ["fast"]
        assert result.retryable is True

    async def test_concurrent_mode_matches_sequential(self) -> None:
        def agents():
            return [
                StubAgent("c", ("a",), delay=0.01),
                StubAgent("a", delay=0.02),
                StubAgent("b", error=ProviderTransportError("nope")),
                StubAgent("d", ("b", "c")),
            ]

        sequential = await AdvisoryPipeline(agents(), FakeOntologyStore()).run(FakeProvider(), pipeline_input())
        concurrent = await AdvisoryPipeline(agents(), FakeOntologyStore(), concurrent=True).run(
            FakeProvider(), pipeline_input()
        )

        def summary(result):
            return [(f.agent_name, f.matched_text) for f in result.findings], result.agent_errors, result.status

        assert summary(concurrent) == summary(sequential)
        assert [name for name, _ in summary(concurrent)[0]] == ["a", "c", "d"]

    async def test_concurrent_mode_runs_a_level_together(self) -> None:
        log: list[str] = []
        pipeline = AdvisoryPipeline(
            [StubAgent("a", delay=0.02, log=log), StubAgent("b", delay=0.02, log=log)],
            FakeOntologyStore(),
            concurrent=True,
        )
        await pipeline.run(FakeProvider(), pipeline_input())
        assert log[:2] == ["start:a", "start:b"]

    async def test_overrides_filter_structural_findings(self) -> None:
        store = FakeOntologyStore(
            overrides=[
                ConstraintOverride(
                    campaign_id="camp-1", detection_type=DetectionType.MISSING_REQUIRED, override_key="npc:located_at"
                )
            ]
        )
        required = _item(
            "located_at", DetectionType.MISSING_REQUIRED, entityType="npc", missingRelationshipType="located_at"
        )
        orphan = _item("Hermit", DetectionType.ORPHAN_WARNING, entityType="npc")
        pipeline = AdvisoryPipeline([StubAgent("graph", findings=[required, orphan])], store)

        result = await pipeline.run(FakeProvider(), pipeline_input())

        assert [f.matched_text for f in result.findings] == ["Hermit"]
        assert result.filtered_count == 1
        assert result.overrides_applied is True
        assert result.agent_finding_counts == {"graph": 2}

    async def test_override_load_failure_returns_unfiltered(self) -> None:
        store = FakeOntologyStore()
        store.fail("overrides")
        pipeline = AdvisoryPipeline([StubAgent("graph")], store)

        result = await pipeline.run(FakeProvider(), pipeline_input())

        assert len(result.findings) == 1
        assert result.overrides_applied is False
        assert result.status == JobStatus.COMPLETED

    async def test_cancellation_propagates(self) -> None:
        pipeline = AdvisoryPipeline([StubAgent("slow", delay=5)], FakeOntologyStore())
        task = asyncio.create_task(pipeline.run(FakeProvider(), pipeline_input()))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_default_pipeline_uses_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config, "PIPELINE_CONCURRENT_AGENTS", True)
        monkeypatch.setattr(config, "AGENT_TIMEOUT_SECONDS", 30.0)
        pipeline = build_default_pipeline(FakeOntologyStore())
        assert pipeline.execution_order == ["canon-expert", "graph-expert"]
        assert pipeline.levels == [["canon-expert", "graph-expert"]]
        assert pipeline.concurrent is True
        assert pipeline.agent_timeout == 30.0


def _graph_job():
    mira = entity("e1", "npc", "Mira")
    tomas = entity("e2", "npc", "Tomas")
    hermit = entity("e3", "npc", "Hermit")
    return pipeline_input(entities=[mira, tomas, hermit], relationships=[relationship(mira, tomas, "knows")])


@pytest.mark.asyncio
class TestExpertsUnderFailure:
    async def test_slow_llm_keeps_graph_structural_findings(self) -> None:
        store = FakeOntologyStore()
        pipeline = AdvisoryPipeline([GraphExpert(store)], store, agent_timeout=0.1)
        provider = FakeProvider(delay=5)

        result = await pipeline.run(provider, _graph_job())

        assert provider.call_count == 1
        assert [f.matched_text for f in result.findings_of(DetectionType.ORPHAN_WARNING)] == ["Hermit"]
        assert all(f.agent_name == "graph-expert" for f in result.findings)
        assert "timed out after 0.1s" in result.agent_errors["graph-expert"]
        assert result.retryable is True

    async def test_slow_llm_fails_canon_but_not_graph(self) -> None:
        store = FakeOntologyStore()
        pipeline = AdvisoryPipeline([CanonExpert(), GraphExpert(store)], store, agent_timeout=0.1, concurrent=True)
        job = _graph_job().model_copy(
            update={"content": "Mira has never met Tomas.", "context": rag_context("Mira and Tomas are siblings.")}
        )

        result = await pipeline.run(FakeProvider(delay=5), job)

        assert result.agent_errors["canon-expert"] == "timed out after 0.1s"
        assert result.agent_finding_counts["canon-expert"] == 0
        assert result.findings_of(DetectionType.ORPHAN_WARNING)
        assert result.status == JobStatus.FAILED

    async def test_llm_within_deadline_is_unaffected(self) -> None:
        store = FakeOntologyStore()
        pipeline = AdvisoryPipeline([GraphExpert(store)], store, agent_timeout=5)

        result = await pipeline.run(FakeProvider(delay=0.01), _graph_job())

        assert result.agent_errors == {}
        assert result.status == JobStatus.COMPLETED
        assert result.findings_of(DetectionType.ORPHAN_WARNING)

    async def test_malformed_provider_reply_keeps_graph_structural_findings(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": ["oops"]}))
        provider = OpenAIProvider("sk-test", http_client=HTTPClientService(transport=transport))
        store = FakeOntologyStore()
        pipeline = AdvisoryPipeline([GraphExpert(store)], store)

        result = await pipeline.run(provider, _graph_job())
        await provider.aclose()

        assert [f.matched_text for f in result.findings_of(DetectionType.ORPHAN_WARNING)] == ["Hermit"]
        assert "malformed response" in result.agent_errors["graph-expert"]
        assert result.retryable is False
