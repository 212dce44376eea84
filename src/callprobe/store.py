"""Bounded in-memory retention of finalized spans."""

from __future__ import annotations

import math
import threading
from typing import Any, Iterable

from .logging_config import StructuredLogger
from .models import Span

logger = StructuredLogger(__name__)

DEFAULT_MAX_SPANS = 10_000
DEFAULT_CLEANUP_THRESHOLD = 0.85
DEFAULT_EVICTION_RATIO = 0.2


def _by_start(span: Span) -> tuple[int, int]:
    return span.start_time, span.end_time


class SpanStore:
    """Spans keyed by span id, bulk-evicted oldest-first past a threshold.

    Once the store holds more than ``max_spans * cleanup_threshold`` spans,
    and always more than one, the oldest ``eviction_ratio`` of them (by
    start time) are dropped in one pass. Mutations and snapshots share a
    single lock, so readers see either the pre- or post-eviction contents.
    """

    def __init__(
        self,
        max_spans: int = DEFAULT_MAX_SPANS,
        cleanup_threshold: float = DEFAULT_CLEANUP_THRESHOLD,
        eviction_ratio: float = DEFAULT_EVICTION_RATIO,
    ):
        if max_spans < 1:
            raise ValueError("max_spans must be >= 1")
        if not 0 < cleanup_threshold <= 1:
            raise ValueError("cleanup_threshold must be in (0, 1]")
        if not 0 < eviction_ratio < 1:
            raise ValueError("eviction_ratio must be in (0, 1)")
        self.max_spans = max_spans
        self.cleanup_threshold = cleanup_threshold
        self.eviction_ratio = eviction_ratio
        self._spans: dict[str, Span] = {}
        self._lock = threading.Lock()
        self.evicted_total = 0

    @property
    def high_water_mark(self) -> float:
        # a store of any size keeps at least its newest span
        return max(1.0, self.max_spans * self.cleanup_threshold)

    def __len__(self) -> int:
        with self._lock:
            return len(self._spans)

    def add(self, span: Span) -> None:
        with self._lock:
            self._spans[span.span_id] = span
            if len(self._spans) > self.high_water_mark:
                self._evict_locked()

    def extend(self, spans: Iterable[Span]) -> int:
        count = 0
        for span in spans:
            self.add(span)
            count += 1
        return count

    def _evict_locked(self) -> None:
        ordered = sorted(self._spans.values(), key=_by_start)
        drop = max(1, math.floor(len(ordered) * self.eviction_ratio))
        for span in ordered[:drop]:
            del self._spans[span.span_id]
        self.evicted_total += drop
        logger.debug("span_store.evicted", dropped=drop, retained=len(self._spans))

    def _snapshot(self) -> list[Span]:
        with self._lock:
            spans = list(self._spans.values())
        spans.sort(key=_by_start)
        return spans

    # -- queries -----------------------------------------------------------

    def all(self, limit: int | None = None) -> list[Span]:
        """All spans by ascending start time; with ``limit``, the newest ``limit``."""
        spans = self._snapshot()
        if limit is None:
            return spans
        if limit <= 0:
            return []
        return spans[-limit:]

    def get(self, span_id: str) -> Span | None:
        with self._lock:
            return self._spans.get(span_id)

    def by_trace_id(self, trace_id: str) -> list[Span]:
        return [s for s in self._snapshot() if s.trace_id == trace_id]

    def by_name(self, name: str) -> list[Span]:
        return [s for s in self._snapshot() if s.name == name]

    def by_time_range(self, start: int, end: int) -> list[Span]:
        return [s for s in self._snapshot() if s.start_time >= start and s.end_time <= end]

    def trace_ids(
        self,
        start: int | None = None,
        end: int | None = None,
        limit: int | None = None,
    ) -> list[str]:
        """Distinct trace ids, newest trace first by each trace's earliest span."""
        spans = self._snapshot()
        earliest: dict[str, int] = {}
        for span in spans:
            if span.trace_id not in earliest:
                earliest[span.trace_id] = span.start_time

        selected = spans
        if start is not None or end is not None:
            selected = [
                s
                for s in spans
                if (start is None or s.start_time >= start) and (end is None or s.end_time <= end)
            ]
        ids = list(dict.fromkeys(s.trace_id for s in selected))
        ids.sort(key=lambda tid: earliest[tid], reverse=True)
        if limit is not None:
            ids = ids[: max(0, limit)]
        return ids

    def statistics(self) -> dict[str, Any]:
        spans = self._snapshot()
        if not spans:
            return {
                "totalSpans": 0,
                "totalTraces": 0,
                "totalFunctions": 0,
                "oldestSpan": 0,
                "newestSpan": 0,
                "averageDuration": 0,
            }
        return {
            "totalSpans": len(spans),
            "totalTraces": len({s.trace_id for s in spans}),
            "totalFunctions": len({s.name for s in spans if s.name}),
            "oldestSpan": spans[0].start_time,
            "newestSpan": max(s.start_time for s in spans),
            "averageDuration": sum(s.duration for s in spans) / len(spans),
        }

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()
            self.evicted_total = 0
