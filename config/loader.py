"""
Configuration reload utilities for the advisory pipeline.

The main public function is ``reload_settings()`` which:
1. Reloads environment variables from ``.env`` (via ``dotenv.load_dotenv``).
2. Re‑creates the ``AdvisorSettings`` instance so that any changed values are applied.
3. Updates the symbols exported by the ``config`` package to reflect the new values.
"""

from __future__ import annotations

import importlib

import structlog
from dotenv import load_dotenv
from pydantic import ValidationError

logger = structlog.get_logger(__name__)


def reload_settings() -> bool:
    """
    Reload configuration from the environment and refresh the ``config`` package.

    Returns ``True`` on success, ``False`` when the new environment does not
    validate (the previous settings stay in effect).
    """
    import config as config_pkg

    settings_mod = importlib.import_module("config.settings")

    load_dotenv(override=True)

    try:
        new_settings = settings_mod.AdvisorSettings()
    except ValidationError as exc:
        logger.error("Configuration reload rejected; keeping previous settings", error=str(exc))
        return False

    settings_mod.settings = new_settings
    config_pkg.settings = new_settings

    for field_name in type(new_settings).model_fields:
        value = getattr(new_settings, field_name)
        setattr(settings_mod, field_name, value)
        if hasattr(config_pkg, field_name):
            setattr(config_pkg, field_name, value)

    logger.info("Configuration reloaded", llm_service=new_settings.LLM_SERVICE)
    return True
