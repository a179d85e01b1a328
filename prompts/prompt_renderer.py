# prompts/prompt_renderer.py
"""Jinja2 rendering for the experts' user prompts, plus their fixed system prompts.

Each expert owns a directory here holding `system.md` (static instructions,
including the JSON reply shape) and `user_prompt.j2` (the per-job material).
User prompts render under `StrictUndefined`, so an expert that forgets to pass a
variable fails loudly instead of sending the LLM a half-empty prompt. Campaign
text goes in unescaped; the experts truncate it before it gets here.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog
from jinja2 import Environment, FileSystemLoader, StrictUndefined

import config

logger = structlog.get_logger(__name__)

PROMPTS_DIR = Path(__file__).parent


def _build_environment(root: Path) -> Environment:
    return Environment(
        loader=FileSystemLoader(root),
        autoescape=False,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


_env = _build_environment(PROMPTS_DIR)


def render_prompt(template_name: str, context: dict[str, Any]) -> str:
    """Render `template_name` (relative to this directory) with `context`.

    Templates can read settings through `config`, which is always in scope;
    a `config` key in `context` replaces it.

    Raises:
        jinja2.TemplateNotFound: No such template.
        jinja2.UndefinedError: The template used a variable `context` lacks.
    """
    return _env.get_template(template_name).render({"config": config, **context})


@lru_cache(maxsize=16)
def get_system_prompt(agent_name: str) -> str:
    """Return the stripped text of `<agent_name>/system.md`, or "" if it cannot be read.

    Cached per process; tests that swap prompt files call `cache_clear()`.
    """
    path = PROMPTS_DIR / agent_name / "system.md"
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"No system prompt for agent '{agent_name}'", path=str(path), error=str(e))
        return ""
    return text.strip()
