# utils/json_utils.py
"""JSON sanitization and safe loading utilities for agent outputs.

Centralizes the heuristics the experts use when parsing LLM JSON: code fence
stripping, strict object loading and length limiting for prompts and logs.
"""

from __future__ import annotations

import json
from typing import Any

from core.exceptions import ResponseParseError

_FENCE = "```"


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence from an LLM response.

    Handles both ```json ... ``` and bare ``` ... ``` blocks. Text that does not
    start with a fence is only trimmed. A lone opening fence line yields "".
    """
    text = text.strip()
    if text.startswith(_FENCE):
        newline = text.find("\n")
        if newline < 0:
            return ""
        text = text[newline + 1 :].strip()
        if text.endswith(_FENCE):
            text = text[: -len(_FENCE)]
    return text.strip()


def parse_json_object(raw: str) -> dict[str, Any]:
    """Parse an LLM response body that must be a single JSON object.

    Raises:
        ResponseParseError: If the body is empty after fence stripping, is not
            valid JSON, or is valid JSON but not an object.
    """
    cleaned = strip_code_fences(raw or "")
    if not cleaned:
        raise ResponseParseError("empty response from LLM")

    try:
        obj = json.loads(cleaned)
    except json.JSONDecodeError as e:
        # Salvage an object wrapped in commentary before giving up.
        embedded = extract_json_from_text(cleaned)
        try:
            obj = json.loads(embedded) if embedded and embedded != cleaned else None
        except json.JSONDecodeError:
            obj = None
        if not isinstance(obj, dict):
            raise ResponseParseError(
                "failed to parse JSON response",
                details={"error": f"{e.msg} at pos {e.pos}", "excerpt": truncate_for_log(cleaned, 200)},
            ) from e

    if not isinstance(obj, dict):
        raise ResponseParseError(
            "JSON response must be an object",
            details={"root_type": type(obj).__name__},
        )
    return obj


def extract_json_from_text(text: str) -> str | None:
    """Extract a JSON object/array substring from arbitrary text.

    Looks for the earliest '[' or '{' and the latest ']' or '}' and
    returns the substring between them if non‑empty.
    """
    if not isinstance(text, str) or not text:
        return None

    first = min([i for i in (text.find("["), text.find("{")) if i != -1] or [len(text)])
    last = max([i for i in (text.rfind("]"), text.rfind("}")) if i != -1] or [-1])
    if first < len(text) and last != -1 and last >= first:
        candidate = text[first : last + 1]
        return candidate if candidate.strip() else None
    return None


def truncate_string(s: str, max_len: int) -> str:
    """Limit `s` to `max_len` characters, ending with "..." when cut.

    For `max_len` of 3 or less the text is cut without an ellipsis.
    """
    if len(s) <= max_len:
        return s
    if max_len <= 3:
        return s[:max_len]
    return s[: max_len - 3] + "..."


def truncate_for_log(s: str, limit: int = 300) -> str:
    """Return a truncated string for logging purposes."""
    if not isinstance(s, str):
        return ""
    return s if len(s) <= limit else s[:limit] + "..."
