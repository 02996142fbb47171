"""Names for objects and the metrics reported for them."""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["NamespacedName", "escape_string", "metric_name"]

_UNSAFE_CHARS = re.compile(r"[^-.0-9A-Za-z]")


@dataclass(frozen=True)
class NamespacedName:
    """An object name qualified by its namespace."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


def _escape_char(match: re.Match) -> str:
    return "_" + match.group(0).encode("utf-8").hex().upper().rjust(4, "0")


def escape_string(s: str) -> str:
    """Replace each unsafe character with ``_`` and its UTF-8 bytes in hex."""
    return _UNSAFE_CHARS.sub(_escape_char, s)


def metric_name(namespaced_name: NamespacedName) -> str:
    """The metric name used for the given object."""
    return escape_string(f"http-{namespaced_name}")