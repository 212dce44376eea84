"""Dispatcher for push-channel requests keyed by an ``action`` field."""

from __future__ import annotations

from typing import Any, Mapping

from ..logging_config import StructuredLogger
from ..tracer import Tracer, get_tracer
from .queries import now_iso, parse_int, spans_result, stats_result, traces_result

logger = StructuredLogger(__name__)


def _unwrap(message: Mapping[str, Any]) -> Mapping[str, Any]:
    # Relayed requests arrive as {source, target, data: {...}}
    data = message.get("data")
    if isinstance(data, Mapping) and "action" not in message:
        return data
    return message


def handle_action(
    message: Mapping[str, Any],
    tracer: Tracer | None = None,
    app_id: str | None = None,
) -> dict[str, Any]:
    """Answer one request; always returns a ``data_response`` envelope."""
    tracer = tracer or get_tracer()
    app_id = app_id or tracer.config.app_id
    request = _unwrap(message if isinstance(message, Mapping) else {})
    request_id = request.get("request_id")
    if not request_id:
        logger.warning("action.request_id_missing")

    data: dict[str, Any] = {"request_id": request_id, "app_id": app_id, "success": True}
    action = request.get("action")
    params = request.get("params") or {}

    try:
        if action == "get_spans":
            result = spans_result(
                tracer,
                start=parse_int(params.get("startTime")),
                end=parse_int(params.get("endTime")),
                trace_id=params.get("traceId") or None,
                function_name=params.get("functionName") or None,
                limit=parse_int(params.get("limit")),
            )
            data.update(result)
        elif action == "get_traces":
            start = parse_int(params.get("startTime"))
            end = parse_int(params.get("endTime"))
            limit = parse_int(params.get("limit"))
            traces = traces_result(tracer, start, end, limit)
            data["traces"] = traces
            data["total"] = len(traces)
            data["query"] = {"startTime": start, "endTime": end, "limit": limit}
        elif action == "get_stats":
            data["stats"] = stats_result(tracer)
        elif action == "clear_spans":
            tracer.clear()
            data["message"] = "Span cache cleared"
        else:
            data["success"] = False
            data["error"] = f"Unknown action: {action}"
    except Exception as exc:
        logger.error("action.failed", action=action, error=str(exc))
        data = {"request_id": request_id, "app_id": app_id, "success": False, "error": str(exc)}

    data["timestamp"] = now_iso()
    return {"type": "data_response", "data": data}
