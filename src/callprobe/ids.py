"""Span and trace identifiers."""

from __future__ import annotations

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 22


def new_id(length: int = _ID_LENGTH) -> str:
    """Return a random base62 identifier (22 chars, ~131 bits by default)."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def new_trace_id() -> str:
    return new_id()


def new_span_id() -> str:
    return new_id()
