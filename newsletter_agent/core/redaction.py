"""Redaction and truncation helpers for logged payloads."""

import json
import re
from typing import Any, Optional

from pydantic import BaseModel

REDACTED = "[redacted]"
TRUNCATION_MARKER = "…(truncated)"
DEFAULT_MAX_CHARS = 1500

SECRET_VALUE_PATTERN = re.compile(r"sk-[A-Za-z0-9]")
SECRET_KEY_PATTERN = re.compile(r"api[_-]?key", re.IGNORECASE)


def redact_value(value: Any, key: Optional[str] = None) -> Any:
    """Return a JSON-safe copy of ``value`` with secret-looking strings replaced.

    A string is redacted when it looks like an API key (``sk-...``) or when it
    sits under a key whose name looks like an API key field. Containers and
    pydantic models are walked recursively.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    if isinstance(value, str):
        if SECRET_VALUE_PATTERN.search(value):
            return REDACTED
        if key and SECRET_KEY_PATTERN.search(key):
            return REDACTED
        return value
    if isinstance(value, dict):
        return {str(k): redact_value(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [redact_value(v, key) for v in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, BaseException):
        return redact_value(str(value))
    return redact_value(str(value), key)


def to_truncated_string(value: Any, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Serialize ``value`` to JSON, falling back to ``str``, and cap its length."""
    try:
        text = json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = str(value)
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_MARKER
    return text
