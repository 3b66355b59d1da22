"""Helpers for writing remote- and user-supplied values into logs.

Ticket subjects, domains and upstream error bodies all end up in log lines;
these helpers strip line breaks and control characters so a crafted value
cannot forge extra records, and long bodies are truncated.
"""

from __future__ import annotations

from typing import Any

_TRUNCATION_MARKER = "...[truncated]"


def _clean(text: str, max_length: int) -> str:
    flattened = " ".join(text.splitlines())
    printable = "".join(ch for ch in flattened if ch >= " " and ch != "\x7f")
    if len(printable) > max_length:
        return printable[:max_length] + _TRUNCATION_MARKER
    return printable


def sanitize_for_log(value: Any, max_length: int = 1000) -> Any:
    """Return ``value`` with control characters removed, recursing into containers."""
    if value is None:
        return ""
    if isinstance(value, str):
        return _clean(value, max_length)
    if isinstance(value, dict):
        return {
            _clean(str(k), max_length): sanitize_for_log(v, max_length)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item, max_length) for item in value]
    return _clean(str(value), max_length)

