# tests/test_prompt_renderer_misc.py
import pytest
from jinja2 import DictLoader, Environment, StrictUndefined, UndefinedError

import prompts.prompt_renderer


def test_render_prompt_with_custom_env(monkeypatch):
    env = Environment(loader=DictLoader({"greet.j2": "Hello {{ name }}"}), autoescape=False)
    monkeypatch.setattr(prompts.prompt_renderer, "_env", env)
    result = prompts.prompt_renderer.render_prompt("greet.j2", {"name": "Bob"})
    assert result == "Hello Bob"


def test_config_is_injected(monkeypatch):
    env = Environment(loader=DictLoader({"budget.j2": "{{ config.GRAPH_MAX_TOKENS }}"}), autoescape=False)
    monkeypatch.setattr(prompts.prompt_renderer, "_env", env)
    monkeypatch.setattr(prompts.prompt_renderer.config, "GRAPH_MAX_TOKENS", 321)
    assert prompts.prompt_renderer.render_prompt("budget.j2", {}) == "321"


def test_missing_variable_raises(monkeypatch):
    env = Environment(loader=DictLoader({"greet.j2": "Hello {{ name }}"}), undefined=StrictUndefined)
    monkeypatch.setattr(prompts.prompt_renderer, "_env", env)
    with pytest.raises(UndefinedError):
        prompts.prompt_renderer.render_prompt("greet.j2", {})


def test_system_prompts_exist_for_both_experts():
    assert '"contradictions"' in prompts.prompt_renderer.get_system_prompt("canon_expert")
    assert '"findings"' in prompts.prompt_renderer.get_system_prompt("graph_expert")


def test_unknown_agent_system_prompt_is_empty():
    assert prompts.prompt_renderer.get_system_prompt("no_such_agent") == ""
