"""Centralized JSON helpers.

Pre-created partial functions for common JSON serialization patterns, plus a
lenient parser for payloads that may or may not be JSON.
"""

from __future__ import annotations

import json

from collections.abc import Callable
from functools import partial
from typing import Any

# Compact JSON serialization (no spaces) with fallback to str for non-serializable types.
# Use for request bodies and re-serialized event payloads.
# Example: json_compact({"key": "value"}) -> '{"key":"value"}'
json_compact: Callable[..., str] = partial(json.dumps, separators=(",", ":"), default=str)


def try_parse_json(text: str) -> tuple[bool, Any]:
    """Parse text as JSON without raising.

    Event payloads are sometimes JSON and sometimes raw text depending on
    kind, so callers need to tell "parsed to null" apart from "not JSON".

    Args:
        text: Candidate JSON document

    Returns:
        (True, value) on success, (False, None) if text is not valid JSON

    Example:
        >>> try_parse_json('{"a": 1}')
        (True, {'a': 1})
        >>> try_parse_json("plain text")
        (False, None)
    """
    try:
        return True, json.loads(text)
    except (TypeError, ValueError):
        return False, None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Parse text as a JSON object, returning None for anything else."""
    ok, value = try_parse_json(text)
    if ok and isinstance(value, dict):
        return value
    return None
