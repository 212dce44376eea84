"""HTTP query endpoints over the tracer's span store."""

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..logging_config import StructuredLogger
from ..tracer import Tracer
from .actions import handle_action
from .queries import now_iso, spans_result, stats_result, traces_result

logger = StructuredLogger(__name__)
router = APIRouter()

_PREFIX = "/remote-debug"


def _tracer(request: Request) -> Tracer:
    return request.app.state.tracer


def _ok(data, endpoint: str) -> dict:
    return {"success": True, "data": data, "metadata": {"timestamp": now_iso(), "endpoint": endpoint}}


def _failure(exc: Exception, endpoint: str) -> JSONResponse:
    logger.error("query.failed", endpoint=endpoint, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc), "timestamp": now_iso()},
    )


@router.get("/health")
async def health():
    return {"status": "ok", "version": __version__, "ts": now_iso()}


@router.get(f"{_PREFIX}/spans")
async def get_spans(
    request: Request,
    startTime: int | None = Query(default=None),
    endTime: int | None = Query(default=None),
    traceId: str | None = Query(default=None),
    functionName: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=0),
):
    endpoint = f"{_PREFIX}/spans"
    try:
        result = spans_result(
            _tracer(request),
            start=startTime,
            end=endTime,
            trace_id=traceId,
            function_name=functionName,
            limit=limit,
        )
        return _ok(result, endpoint)
    except Exception as exc:
        return _failure(exc, endpoint)


@router.get(f"{_PREFIX}/traces")
async def get_traces(
    request: Request,
    startTime: int | None = Query(default=None),
    endTime: int | None = Query(default=None),
    limit: int | None = Query(default=None, ge=0),
):
    try:
        return traces_result(_tracer(request), startTime, endTime, limit)
    except Exception as exc:
        return _failure(exc, f"{_PREFIX}/traces")


@router.get(f"{_PREFIX}/traces/{{trace_id}}/tree")
async def get_call_tree(request: Request, trace_id: str):
    tree = _tracer(request).call_tree(trace_id)
    if tree is None:
        raise HTTPException(status_code=404, detail=f"Trace '{trace_id}' not found")
    if isinstance(tree, list):
        roots = [node.to_dict() for node in tree]
    else:
        roots = [tree.to_dict()]
    return _ok({"traceId": trace_id, "roots": roots}, f"{_PREFIX}/traces/tree")


@router.get(f"{_PREFIX}/spans/stats")
async def get_stats(request: Request):
    endpoint = f"{_PREFIX}/spans/stats"
    try:
        return _ok(stats_result(_tracer(request)), endpoint)
    except Exception as exc:
        return _failure(exc, endpoint)


@router.delete(f"{_PREFIX}/spans")
async def clear_spans(request: Request):
    endpoint = f"{_PREFIX}/spans"
    try:
        _tracer(request).clear()
        return {
            "success": True,
            "message": "Span cache cleared",
            "metadata": {"timestamp": now_iso(), "endpoint": endpoint},
        }
    except Exception as exc:
        return _failure(exc, endpoint)


@router.post(f"{_PREFIX}/action")
async def post_action(request: Request):
    try:
        message = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(message, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return handle_action(message, _tracer(request))
