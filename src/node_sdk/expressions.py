"""
Expression resolution for node parameters.

Parameter values may embed ``{{ $json.<dotted.path> }}`` references to the
current item's JSON payload:

    resolve_value("{{ $json.a.b }}", {"a": {"b": 5}})    -> 5
    resolve_value("x={{ $json.a.b }}", {"a": {"b": 5}})  -> "x=5"

A string that is exactly one expression keeps the referenced value's type.
Otherwise every occurrence is replaced by its string form. Unresolvable
paths never raise.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional


EXPRESSION_PATTERN = re.compile(r"\{\{\s*\$json\.([^{}]+?)\s*\}\}")
_FULL_EXPRESSION = re.compile(r"^\{\{\s*\$json\.([^{}]+?)\s*\}\}$")

# Sentinel for a path that could not be resolved
_MISSING = object()


def get_path(data: Any, path: str) -> Any:
    """
    Walk a dotted path through nested dicts (and list indices).

    Returns the sentinel ``_MISSING`` when any segment is absent.
    """
    current = data
    for key in path.strip().split("."):
        if isinstance(current, dict):
            if key not in current:
                return _MISSING
            current = current[key]
        elif isinstance(current, list) and key.isdigit():
            index = int(key)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def lookup(data: Any, path: str, default: Any = None) -> Any:
    """Public form of get_path with a caller-chosen default."""
    value = get_path(data, path)
    return default if value is _MISSING else value


def stringify(value: Any) -> str:
    """String form used when an expression is embedded in a larger string."""
    if value is _MISSING or value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, bool)):
        return json.dumps(value, default=str)
    return str(value)


def has_expression(value: Any) -> bool:
    """True if value is a string containing at least one expression."""
    return isinstance(value, str) and EXPRESSION_PATTERN.search(value) is not None


def resolve_string(template: str, item_json: Optional[Dict[str, Any]]) -> Any:
    """Resolve all expressions in a single string."""
    data = item_json or {}

    full = _FULL_EXPRESSION.match(template)
    if full:
        value = get_path(data, full.group(1))
        return None if value is _MISSING else value

    return EXPRESSION_PATTERN.sub(
        lambda match: stringify(get_path(data, match.group(1))),
        template,
    )


def resolve_value(value: Any, item_json: Optional[Dict[str, Any]]) -> Any:
    """
    Resolve expressions in a parameter value.

    Strings are resolved directly; dicts and lists are resolved recursively;
    any other value is returned unchanged.
    """
    if isinstance(value, str):
        if "{{" not in value:
            return value
        return resolve_string(value, item_json)
    if isinstance(value, dict):
        return {key: resolve_value(inner, item_json) for key, inner in value.items()}
    if isinstance(value, list):
        return [resolve_value(inner, item_json) for inner in value]
    return value


__all__ = [
    "EXPRESSION_PATTERN",
    "get_path",
    "lookup",
    "stringify",
    "has_expression",
    "resolve_string",
    "resolve_value",
]
