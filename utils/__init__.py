# utils/__init__.py
"""General utility functions for the campaign advisory pipeline."""

from __future__ import annotations

from .json_utils import (
    extract_json_from_text,
    parse_json_object,
    strip_code_fences,
    truncate_for_log,
    truncate_string,
)

__all__ = [
    "extract_json_from_text",
    "parse_json_object",
    "strip_code_fences",
    "truncate_for_log",
    "truncate_string",
]
