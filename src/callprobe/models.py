"""Span records and the read-time views built from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class SpanStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


STATUS_OK = SpanStatus.OK.value
STATUS_ERROR = SpanStatus.ERROR.value

KIND_FUNCTION = "function"
KIND_LOG = "log"


@dataclass(frozen=True)
class Span:
    """A finalized function invocation. Times are epoch nanoseconds."""

    trace_id: str
    span_id: str
    name: str
    start_time: int
    end_time: int
    status: str = STATUS_OK
    parent_span_id: str | None = None
    location: str = ""
    error_message: str | None = None
    args: tuple[str, ...] = ()
    return_value: str | None = None
    caller_name: str | None = None
    kind: str = KIND_FUNCTION

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration / 1_000_000

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "traceId": self.trace_id,
            "spanId": self.span_id,
            "name": self.name,
            "location": self.location,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "status": self.status,
            "kind": self.kind,
            "args": list(self.args),
        }
        if self.parent_span_id is not None:
            payload["parentSpanId"] = self.parent_span_id
        if self.error_message is not None:
            payload["errorMessage"] = self.error_message
        if self.return_value is not None:
            payload["returnValue"] = self.return_value
        if self.caller_name is not None:
            payload["callerName"] = self.caller_name
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Span":
        start = int(data["startTime"])
        end = int(data["endTime"])
        if end < start:
            raise ValueError(f"span {data.get('spanId')!r} ends before it starts")
        status = SpanStatus(str(data.get("status") or STATUS_OK)).value
        return cls(
            trace_id=str(data["traceId"]),
            span_id=str(data["spanId"]),
            name=str(data["name"]),
            start_time=start,
            end_time=end,
            status=status,
            parent_span_id=data.get("parentSpanId") or None,
            location=str(data.get("location") or ""),
            error_message=data.get("errorMessage"),
            args=tuple(str(a) for a in data.get("args") or ()),
            return_value=data.get("returnValue"),
            caller_name=data.get("callerName"),
            kind=str(data.get("kind") or KIND_FUNCTION),
        )


@dataclass(frozen=True)
class CallStackEntry:
    """An invocation that has started but not yet finished."""

    span_id: str
    trace_id: str
    name: str
    location: str
    start_time: int
    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)
    parent_span_id: str | None = None
    kind: str = KIND_FUNCTION


@dataclass(frozen=True)
class Trace:
    trace_id: str
    spans: tuple[Span, ...]
    start_time: int

    @property
    def start_time_ms(self) -> int:
        return self.start_time // 1_000_000

    def to_dict(self) -> dict[str, Any]:
        return {
            "traceId": self.trace_id,
            "type": "py",
            "spans": [span.to_dict() for span in self.spans],
            "startTimeMilli": self.start_time_ms,
        }


@dataclass
class CallTreeNode:
    span: Span
    children: list["CallTreeNode"] = field(default_factory=list)

    def walk(self):
        """Yield this node and its descendants depth-first, in child order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        payload = self.span.to_dict()
        payload["children"] = [child.to_dict() for child in self.children]
        return payload
