# tests/conftest.py
import os
import sys

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

import config  # noqa: E402
from prompts.prompt_renderer import get_system_prompt  # noqa: E402


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom CLI options for this repo.

    --unit-stubs: skip tests marked integration or slow so only the hermetic
    unit tests run.
    """
    parser.addoption(
        "--unit-stubs",
        action="store_true",
        default=False,
        help="Run unit tests with stubs/mocks; ignore heavier suites.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """When --unit-stubs is passed, skip heavier-marked tests by default."""
    if not config.getoption("--unit-stubs"):
        return

    skip_marker = pytest.mark.skip(reason="skipped by --unit-stubs")
    heavy_markers = {"integration", "slow"}
    for item in items:
        for m in item.iter_markers():
            if m.name in heavy_markers:
                item.add_marker(skip_marker)
                break


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep retry backoff out of the test wall clock."""
    monkeypatch.setattr(config, "LLM_RETRY_DELAY_SECONDS", 0)


@pytest.fixture
def schema_dir() -> str:
    return os.path.join(repo_root, "ontology", "schema")


@pytest.fixture(autouse=True)
def clear_prompt_cache():
    get_system_prompt.cache_clear()
    yield
    get_system_prompt.cache_clear()
