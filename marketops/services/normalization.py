"""
Shape normalization for pipeline output.

The generation webhooks write JSON with no fixed schema: the same field can
arrive as a JSON string or an object, with varying key casing, wrapped in an
extra envelope key or not. Every service reads rows through these helpers
instead of guessing shapes on its own.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


def parse_json_field(value: Any, default: Any = None) -> Any:
    """
    Decode a column that may hold a JSON string or an already-decoded value.

    Args:
        value: Raw column value
        default: Returned when value is None or a string that isn't valid JSON

    Returns:
        Decoded value, the value unchanged if not a string, or default
    """
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            logger.debug(f"Could not decode JSON field ({len(value)} chars)")
            return default
    return value


def as_dict(value: Any) -> Dict[str, Any]:
    """Decode value and return it if it is a dict, otherwise an empty dict."""
    parsed = parse_json_field(value, default={})
    return parsed if isinstance(parsed, dict) else {}


def as_list(value: Any) -> List[Any]:
    """Return value if it is a list, otherwise an empty list."""
    return value if isinstance(value, list) else []


def unwrap(data: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Return the first nested dict found under keys, or data itself."""
    for key in keys:
        inner = data.get(key)
        if isinstance(inner, dict):
            return inner
    return data


def get_value(data: Dict[str, Any], keys: Iterable[str]) -> Optional[Any]:
    """
    Look up the first truthy value among candidate keys.

    Each key is tried exactly first, then case-insensitively.
    """
    if not isinstance(data, dict):
        return None

    lowered = {k.lower(): k for k in data.keys() if isinstance(k, str)}
    for key in keys:
        if data.get(key):
            return data[key]
        actual = lowered.get(key.lower())
        if actual is not None and data.get(actual):
            return data[actual]
    return None


def first_text(*candidates: Any) -> Optional[str]:
    """Return the first candidate that is a non-blank string, stripped."""
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None
