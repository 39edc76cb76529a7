"""Utilities to normalize identity and activity keys."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_key(value: object, *, kind: str = "key") -> str:
    """Collapse whitespace and reject empty keys."""
    if value is None:
        raise ValueError(f"{kind} is required")
    normalized = _WHITESPACE.sub(" ", str(value)).strip()
    if not normalized:
        raise ValueError(f"{kind} must not be empty")
    return normalized
