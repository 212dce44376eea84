"""Plain-data views of the query surface shared by the HTTP and push adapters."""

from __future__ import annotations

from datetime import datetime, UTC
from typing import Any

from ..models import Span
from ..tracer import Tracer


def iso_from_ns(value: int | None) -> str | None:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1_000_000_000, UTC).isoformat()


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def parse_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def span_payload(span: Span) -> dict[str, Any]:
    payload = span.to_dict()
    payload["startTime"] = iso_from_ns(span.start_time)
    payload["endTime"] = iso_from_ns(span.end_time)
    payload["startEpochNanos"] = span.start_time
    payload["endEpochNanos"] = span.end_time
    payload["durationMs"] = span.duration_ms
    return payload


def select_spans(
    tracer: Tracer,
    *,
    start: int | None = None,
    end: int | None = None,
    trace_id: str | None = None,
    function_name: str | None = None,
    limit: int | None = None,
) -> list[Span]:
    """Time range wins over trace id, trace id over function name."""
    if start is not None and end is not None:
        return tracer.spans_by_time_range(start, end)
    if trace_id:
        return tracer.spans_by_trace_id(trace_id)
    if function_name:
        return tracer.spans_by_name(function_name)
    return tracer.spans(limit)


def spans_result(tracer: Tracer, **query: Any) -> dict[str, Any]:
    spans = select_spans(tracer, **query)
    return {
        "spans": [span_payload(s) for s in spans],
        "total": len(spans),
        "query": {
            "startTime": query.get("start"),
            "endTime": query.get("end"),
            "traceId": query.get("trace_id"),
            "functionName": query.get("function_name"),
            "limit": query.get("limit"),
        },
    }


def traces_result(
    tracer: Tracer,
    start: int | None = None,
    end: int | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    return [t.to_dict() for t in tracer.traces(start, end, limit, named_only=True)]


def stats_result(tracer: Tracer) -> dict[str, Any]:
    stats = tracer.statistics()
    return {
        **stats,
        "oldestSpan": iso_from_ns(stats["oldestSpan"]),
        "newestSpan": iso_from_ns(stats["newestSpan"]),
        "averageDurationMs": stats["averageDuration"] / 1_000_000,
    }
