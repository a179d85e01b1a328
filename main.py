# main.py
"""Command-line entry point for the campaign advisory pipeline.

Commands:
    analyze JOB.json [--dry-run] [--output FILE]
        Run the canon and graph experts over a job snapshot and write the
        resulting findings as JSON.
    validate-ontology [DIR]
        Load and cross-check the ontology YAML files.
    check-config [--offline]
        Report configuration problems.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError
from rich.console import Console

import config
from config.validator import validate_all
from core.exceptions import AdvisorCoreError
from core.llm_provider import OfflineProvider, create_provider
from core.logging_config import setup_logging
from models.pipeline_models import JobStatus, PipelineInput, PipelineResult
from ontology.loader import load_ontology
from ontology.store import InMemoryOntologyStore, seed_campaign
from orchestration.advisory_pipeline import build_default_pipeline

logger = structlog.get_logger(__name__)
console = Console()


def load_job(path: Path) -> PipelineInput:
    with path.open(encoding="utf-8") as fh:
        return PipelineInput.model_validate(json.load(fh))


async def command_analyze(job_path: Path, *, dry_run: bool, output: Path | None) -> int:
    pipeline_input = load_job(job_path)

    ontology = load_ontology(config.ONTOLOGY_SCHEMA_DIR)
    store = InMemoryOntologyStore()
    await seed_campaign(store, pipeline_input.campaign_id, ontology)

    pipeline = build_default_pipeline(store)
    provider = OfflineProvider() if dry_run else create_provider()
    try:
        result = await pipeline.run(provider, pipeline_input)
    finally:
        await provider.aclose()

    write_result(result, output)
    print_summary(result)
    return 2 if result.status == JobStatus.FAILED else 0


def write_result(result: PipelineResult, output: Path | None) -> None:
    document = result.model_dump(mode="json")
    if output is None:
        output = Path(config.BASE_OUTPUT_DIR) / f"findings-{result.job_id}.json"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(document, indent=2), encoding="utf-8")
    logger.info("Findings written", path=str(output), findings=len(result.findings))


def print_summary(result: PipelineResult) -> None:
    console.print(f"[bold]Job {result.job_id}[/bold]: {result.status.value}, {len(result.findings)} finding(s)")
    for agent_name, count in result.agent_finding_counts.items():
        error = result.agent_errors.get(agent_name)
        suffix = f" [red](failed: {error})[/red]" if error else ""
        console.print(f"  {agent_name}: {count}{suffix}")
    if result.filtered_count:
        console.print(f"  {result.filtered_count} finding(s) hidden by overrides")


def command_validate_ontology(directory: Path) -> int:
    ontology = load_ontology(directory)
    console.print(
        f"[green]✓[/green] Ontology in {directory} is valid: "
        f"{len(ontology.entity_types.types)} entity types, "
        f"{len(ontology.relationship_types.types)} relationship types, "
        f"{len(ontology.constraints.domain_range)} domain/range rules"
    )
    return 0


def command_check_config(*, require_credentials: bool) -> int:
    report = validate_all(require_credentials=require_credentials)
    colour = {"healthy": "green", "warning": "yellow"}.get(report["overall_health"], "red")
    console.print(f"Configuration: [{colour}]{report['overall_health']}[/{colour}]")
    for severity, label in (("errors", "error"), ("warnings", "warning"), ("info", "info")):
        for issue in report["issues"][severity]:
            console.print(f"  {label}: {issue['field']}: {issue['message']}")
    return 1 if report["overall_health"] == "error" else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Campaign advisory pipeline")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser("analyze", help="Run the advisory experts over a job file")
    analyze_parser.add_argument("job", type=Path, help="PipelineInput JSON file")
    analyze_parser.add_argument(
        "--dry-run", action="store_true", help="Skip LLM calls; only structural checks produce findings"
    )
    analyze_parser.add_argument("--output", type=Path, default=None, help="Where to write findings JSON")

    ontology_parser = subparsers.add_parser("validate-ontology", help="Load and check the ontology YAML files")
    ontology_parser.add_argument("directory", type=Path, nargs="?", default=None)

    config_parser = subparsers.add_parser("check-config", help="Report configuration problems")
    config_parser.add_argument(
        "--offline", action="store_true", help="Do not require LLM credentials (for --dry-run use)"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    setup_logging()

    try:
        if args.command == "analyze":
            return asyncio.run(command_analyze(args.job, dry_run=args.dry_run, output=args.output))
        if args.command == "check-config":
            return command_check_config(require_credentials=not args.offline)
        return command_validate_ontology(args.directory or Path(config.ONTOLOGY_SCHEMA_DIR))
    except KeyboardInterrupt:
        logger.info("Advisory run cancelled by user")
        return 130
    except (AdvisorCoreError, ValidationError, OSError, json.JSONDecodeError) as e:
        logger.error(f"Command '{args.command}' failed: {e}")
        console.print(f"[red]Error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
