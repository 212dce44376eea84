"""Open-call bookkeeping: parent linkage and trace identity.

Each execution context (OS thread, asyncio task) owns its own chain of
open calls through a ``ContextVar``; tasks inherit a snapshot of the
chain they were created under, so work spawned inside a traced call is
parented to it while sibling tasks never see each other's calls.

Open entries are also kept in a process-wide registry keyed by span id.
``exit`` looks entries up there, which is what lets calls close in any
order and lets a deferred result settle on a different context than the
one that opened it.
"""

from __future__ import annotations

import threading
import time
from contextvars import ContextVar
from typing import Any, Callable, Iterable, Mapping

from .formatting import (
    DEFAULT_MAX_ARGS,
    DEFAULT_MAX_LENGTH,
    MISSING,
    format_args,
    format_error,
    format_value,
)
from .ids import new_span_id, new_trace_id
from .logging_config import StructuredLogger
from .models import KIND_FUNCTION, STATUS_ERROR, STATUS_OK, CallStackEntry, Span

logger = StructuredLogger(__name__)

_EPOCH_OFFSET_NS = time.time_ns() - time.perf_counter_ns()


def now_ns() -> int:
    """Wall-clock epoch nanoseconds that never go backwards within the process."""
    return _EPOCH_OFFSET_NS + time.perf_counter_ns()


class CallStackTracker:
    def __init__(
        self,
        on_finish: Callable[[Span], None] | None = None,
        *,
        max_args: int = DEFAULT_MAX_ARGS,
        max_value_length: int = DEFAULT_MAX_LENGTH,
        clock: Callable[[], int] = now_ns,
    ):
        self._chain: ContextVar[tuple[CallStackEntry, ...]] = ContextVar(
            f"callprobe_chain_{id(self):x}", default=()
        )
        self._open: dict[str, CallStackEntry] = {}
        self._lock = threading.Lock()
        self._on_finish = on_finish
        self._clock = clock
        self.max_args = max_args
        self.max_value_length = max_value_length

    # -- context views -----------------------------------------------------

    def current_chain(self) -> tuple[CallStackEntry, ...]:
        """Open calls visible from the current context, outermost first."""
        with self._lock:
            return tuple(e for e in self._chain.get() if e.span_id in self._open)

    def current_trace_id(self) -> str | None:
        chain = self.current_chain()
        return chain[-1].trace_id if chain else None

    def current_span_id(self) -> str | None:
        chain = self.current_chain()
        return chain[-1].span_id if chain else None

    def open_entries(self) -> list[CallStackEntry]:
        with self._lock:
            return sorted(self._open.values(), key=lambda e: e.start_time)

    def is_open(self, span_id: str) -> bool:
        with self._lock:
            return span_id in self._open

    # -- enter / exit ------------------------------------------------------

    def enter(
        self,
        name: str,
        location: str = "",
        args: Iterable[Any] = (),
        kwargs: Mapping[str, Any] | None = None,
        kind: str = KIND_FUNCTION,
    ) -> str:
        """Open a call and return its span id as the closing token."""
        chain = self.current_chain()
        parent = chain[-1] if chain else None
        entry = CallStackEntry(
            span_id=new_span_id(),
            trace_id=parent.trace_id if parent else new_trace_id(),
            name=name,
            location=location or "",
            start_time=self._clock(),
            args=tuple(args),
            kwargs=dict(kwargs or {}),
            parent_span_id=parent.span_id if parent else None,
            kind=kind,
        )
        with self._lock:
            self._open[entry.span_id] = entry
        self._chain.set(chain + (entry,))
        return entry.span_id

    def exit(self, token: str, return_value: Any = MISSING, error: Any = None) -> Span | None:
        """Close the call opened under ``token``.

        Unknown or already-closed tokens are ignored. Returns the finalized
        span, or None when nothing was closed.
        """
        end_time = self._clock()
        with self._lock:
            entry = self._open.pop(token, None)
            if entry is None:
                return None
            caller = self._open.get(entry.parent_span_id) if entry.parent_span_id else None
        self.detach(token)

        span = self._finalize(
            entry,
            max(end_time, entry.start_time),
            return_value,
            error,
            caller.name if caller else None,
        )
        if self._on_finish is not None:
            try:
                self._on_finish(span)
            except Exception as exc:
                logger.debug("span.record_failed", span_id=span.span_id, error=str(exc))
        return span

    def detach(self, token: str) -> None:
        """Drop ``token`` from this context's chain without closing it."""
        chain = self._chain.get()
        if any(e.span_id == token for e in chain):
            self._chain.set(tuple(e for e in chain if e.span_id != token))

    def attach(self, token: str) -> bool:
        """Make an open call the innermost parent for the current context."""
        with self._lock:
            entry = self._open.get(token)
        if entry is None:
            return False
        chain = tuple(e for e in self._chain.get() if e.span_id != token)
        self._chain.set(chain + (entry,))
        return True

    def reset(self) -> None:
        """Forget every open call. Pending exits become no-ops."""
        with self._lock:
            self._open.clear()
        self._chain.set(())

    # -- finalization ------------------------------------------------------

    def _finalize(
        self,
        entry: CallStackEntry,
        end_time: int,
        return_value: Any,
        error: Any,
        caller_name: str | None,
    ) -> Span:
        failed = error is not None
        formatted_return = None
        if not failed and return_value is not MISSING and return_value is not None:
            formatted_return = format_value(return_value, self.max_value_length)
        return Span(
            trace_id=entry.trace_id,
            span_id=entry.span_id,
            parent_span_id=entry.parent_span_id,
            name=entry.name,
            location=entry.location,
            start_time=entry.start_time,
            end_time=end_time,
            status=STATUS_ERROR if failed else STATUS_OK,
            error_message=format_error(error, self.max_value_length) if failed else None,
            args=tuple(format_args(entry.args, entry.kwargs, self.max_args, self.max_value_length)),
            return_value=formatted_return,
            caller_name=caller_name,
            kind=entry.kind,
        )
