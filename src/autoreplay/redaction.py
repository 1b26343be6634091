from __future__ import annotations

import re
from typing import Any, Callable, Mapping
from urllib.parse import urlsplit, urlunsplit

REDACTED = "[REDACTED]"
IR_STRING_LIMIT = 200

# Explicit redaction policy: (tool_name, raw_input) -> input safe to persist.
Redactor = Callable[[str, Mapping[str, Any]], dict[str, Any]]

_SECRET_KEY_PATTERN = re.compile(r"pass(word|wd)?|secret|token|api[_-]?key|auth|credential|otp", re.IGNORECASE)
_ASSERTION_TOOLS = frozenset({"assertTextPresent", "assertElementVisible"})


def truncate_string(value: str, limit: int = IR_STRING_LIMIT) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


def redact_url_credentials(url: str) -> str:
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def redact_tool_input(tool_name: str, raw: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in raw.items():
        if tool_name == "fill" and key == "text":
            result[key] = REDACTED
        elif _SECRET_KEY_PATTERN.search(key):
            result[key] = REDACTED
        elif key == "url" and isinstance(value, str):
            result[key] = redact_url_credentials(value)
        else:
            result[key] = value
    return result


def redact_tool_input_for_ir(tool_name: str, raw: Mapping[str, Any]) -> dict[str, Any]:
    """Default persistence policy for action records.

    Assertion inputs are kept verbatim because the exported test needs the
    asserted text; everything else goes through :func:`redact_tool_input`.
    """
    base = dict(raw) if tool_name in _ASSERTION_TOOLS else redact_tool_input(tool_name, raw)
    result: dict[str, Any] = {}
    for key, value in base.items():
        result[key] = truncate_string(value) if isinstance(value, str) else value
    if tool_name == "fill" and "text" in raw:
        result["textRedacted"] = True
    return result
