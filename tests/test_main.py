# tests/test_main.py
import json
from pathlib import Path

import pytest

import config
import main


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "SIMPLE_LOGGING_MODE", True)
    monkeypatch.setattr(config, "BASE_OUTPUT_DIR", str(tmp_path / "output"))


def _write_job(tmp_path: Path, **overrides) -> Path:
    job = {
        "campaign_id": "camp-1",
        "job_id": "job-42",
        "source_table": "chapters",
        "source_id": "7",
        "content": "",
        "entities": [
            {"id": "1", "entity_type": "npc", "name": "Mira"},
            {"id": "2", "entity_type": "settlement", "name": "Oakvale"},
        ],
    }
    job.update(overrides)
    path = tmp_path / "job.json"
    path.write_text(json.dumps(job), encoding="utf-8")
    return path


@pytest.mark.integration
class TestAnalyzeCommand:
    def test_dry_run_writes_structural_findings(self, tmp_path: Path) -> None:
        output = tmp_path / "findings.json"

        exit_code = main.main(["analyze", str(_write_job(tmp_path)), "--dry-run", "--output", str(output)])

        assert exit_code == 0
        document = json.loads(output.read_text(encoding="utf-8"))
        assert document["job_id"] == "job-42"
        assert document["status"] == "completed"
        assert [f["detection_type"] for f in document["findings"]] == [
            "orphan_warning",
            "orphan_warning",
            "missing_required",
        ]
        assert all(f["agent_name"] == "graph-expert" for f in document["findings"])
        assert document["agent_finding_counts"] == {"canon-expert": 0, "graph-expert": 3}

    def test_default_output_path_uses_job_id(self, tmp_path: Path) -> None:
        assert main.main(["analyze", str(_write_job(tmp_path)), "--dry-run"]) == 0
        assert (tmp_path / "output" / "findings-job-42.json").is_file()

    def test_dry_run_relationships_reach_offline_provider(self, tmp_path: Path) -> None:
        relationships = [
            {
                "id": "r1",
                "source_entity_id": "1",
                "target_entity_id": "2",
                "relationship_type": "located_at",
            }
        ]
        output = tmp_path / "findings.json"
        job = _write_job(tmp_path, relationships=relationships)

        assert main.main(["analyze", str(job), "--dry-run", "--output", str(output)]) == 0
        assert json.loads(output.read_text(encoding="utf-8"))["findings"] == []

    def test_invalid_job_file_fails(self, tmp_path: Path) -> None:
        path = tmp_path / "job.json"
        path.write_text(json.dumps({"job_id": "no-campaign"}), encoding="utf-8")
        assert main.main(["analyze", str(path), "--dry-run"]) == 1

    def test_missing_job_file_fails(self, tmp_path: Path) -> None:
        assert main.main(["analyze", str(tmp_path / "missing.json"), "--dry-run"]) == 1


class TestOtherCommands:
    def test_validate_bundled_ontology(self, schema_dir: str) -> None:
        assert main.main(["validate-ontology", schema_dir]) == 0

    def test_validate_broken_ontology(self, tmp_path: Path) -> None:
        assert main.main(["validate-ontology", str(tmp_path)]) == 1

    def test_check_config_offline(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config.settings, "LLM_SERVICE", "openai")
        monkeypatch.setattr(config.settings, "OPENAI_API_KEY", "")
        monkeypatch.setattr(config.settings, "AGENT_TIMEOUT_SECONDS", None)
        assert main.main(["check-config", "--offline"]) == 0
        assert main.main(["check-config"]) == 1

    def test_no_command_prints_help(self) -> None:
        assert main.main([]) == 1
