"""Bounded, never-raising display strings for captured span values.

Every argument, return value and error message that ends up on a span
goes through :func:`format_value`, which guarantees:

* the result is always a ``str`` and the function never raises;
* the result is at most ``max_length`` characters plus a trailing
  ``...`` marker when truncated;
* :data:`MISSING` (no value at all) formats to ``''`` while ``None``
  formats to ``'None'``.

Containers and objects are rendered as JSON after a sanitising pass that
replaces reference cycles with ``"[Circular]"`` and non-JSON types with
tagged summaries. When even that fails the value degrades to a type
summary such as ``<Widget len=3>`` or, as a last resort,
``[unserializable]``.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import enum
import inspect
import json
from collections.abc import Mapping
from typing import Any, Iterable

DEFAULT_MAX_LENGTH = 1000
DEFAULT_MAX_ARGS = 10
ELLIPSIS = "..."
UNSERIALIZABLE = "[unserializable]"
CIRCULAR = "[Circular]"

_MAX_DEPTH = 8


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def _truncate(text: str, max_length: int) -> str:
    if len(text) > max_length:
        return text[:max_length] + ELLIPSIS
    return text


def _callable_label(value: Any) -> str:
    name = getattr(value, "__qualname__", None) or getattr(value, "__name__", None) or "anonymous"
    if inspect.isclass(value):
        return f"[Class {name}]"
    return f"[Function {name}]"


def _sanitize(value: Any, path: set[int], depth: int) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if depth >= _MAX_DEPTH:
        return f"<{type(value).__name__}>"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"__type": type(value).__name__, "length": len(value)}
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return value.isoformat()
    if isinstance(value, _dt.timedelta):
        return value.total_seconds()
    if isinstance(value, enum.Enum):
        return str(value)
    if isinstance(value, BaseException):
        return {"name": type(value).__name__, "message": str(value)}
    if inspect.isroutine(value) or inspect.isclass(value):
        return _callable_label(value)

    marker = id(value)
    if marker in path:
        return CIRCULAR
    path.add(marker)
    try:
        if isinstance(value, Mapping):
            return {str(k): _sanitize(v, path, depth + 1) for k, v in value.items()}
        if isinstance(value, (set, frozenset)):
            return {"__type": type(value).__name__, "value": [_sanitize(v, path, depth + 1) for v in value]}
        if isinstance(value, (list, tuple)):
            return [_sanitize(v, path, depth + 1) for v in value]
        if dataclasses.is_dataclass(value):
            return {
                f.name: _sanitize(getattr(value, f.name, None), path, depth + 1)
                for f in dataclasses.fields(value)
            }
        dump = getattr(value, "model_dump", None)
        if callable(dump):
            return _sanitize(dump(), path, depth + 1)
        attrs = getattr(value, "__dict__", None)
        if isinstance(attrs, dict):
            payload = {"__type": type(value).__name__}
            payload.update({str(k): _sanitize(v, path, depth + 1) for k, v in attrs.items()})
            return payload
        return repr(value)
    finally:
        path.discard(marker)


def _summary(value: Any) -> str:
    try:
        type_name = type(value).__name__
        try:
            return f"<{type_name} len={len(value)}>"
        except Exception:
            return f"<{type_name}>"
    except Exception:
        return UNSERIALIZABLE


def format_value(value: Any, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Render ``value`` as a bounded display string. Never raises."""
    try:
        if value is MISSING:
            return ""
        if value is None:
            return "None"
        if isinstance(value, str):
            return _truncate(value, max_length)
        if isinstance(value, (bool, int, float)):
            return _truncate(str(value), max_length)
        if inspect.isroutine(value) or inspect.isclass(value):
            return _truncate(_callable_label(value), max_length)
        text = json.dumps(_sanitize(value, set(), 0), ensure_ascii=False)
        return _truncate(text, max_length)
    except Exception:
        return _summary(value)


def format_error(error: Any, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Message for a failed call: the exception text, else its type name."""
    try:
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            return _truncate(message, max_length)
        return format_value(error, max_length)
    except Exception:
        return _summary(error)


def format_args(
    args: Iterable[Any] = (),
    kwargs: Mapping[str, Any] | None = None,
    max_args: int = DEFAULT_MAX_ARGS,
    max_length: int = DEFAULT_MAX_LENGTH,
) -> list[str]:
    """Positional values first, then ``key=value`` pairs, capped at ``max_args``."""
    out: list[str] = []
    try:
        for value in args:
            if len(out) >= max_args:
                return out
            out.append(format_value(value, max_length))
        for key, value in (kwargs or {}).items():
            if len(out) >= max_args:
                return out
            out.append(f"{key}={format_value(value, max_length)}")
    except Exception:
        out.append(UNSERIALIZABLE)
    return out
