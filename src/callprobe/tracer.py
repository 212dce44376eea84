"""Tracer facade: one tracker, one store, optional sinks, query surface."""

from __future__ import annotations

import inspect
import logging
import threading
from types import ModuleType
from typing import Any, Callable, Iterable, Mapping, TypeVar

from .capture import LogSpanHandler
from .config import ProbeConfig, config_loader
from .formatting import MISSING
from .logging_config import StructuredLogger
from .models import CallTreeNode, Span, Trace
from .reconstruct import call_tree, render_call_tree, traces_with_spans
from .sinks import SpanLogWriter
from .store import SpanStore
from .tracker import CallStackTracker
from .wrapper import is_wrapped, wrap_callable

logger = StructuredLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")

SpanSink = Callable[[Span], None]


class Tracer:
    def __init__(self, config: ProbeConfig | None = None, store: SpanStore | None = None):
        self.config = config or ProbeConfig()
        self.store = store if store is not None else SpanStore(
            max_spans=self.config.max_spans,
            cleanup_threshold=self.config.cleanup_threshold,
            eviction_ratio=self.config.eviction_ratio,
        )
        self.tracker = CallStackTracker(
            self._record,
            max_args=self.config.max_args,
            max_value_length=self.config.max_value_length,
        )
        self._sinks: list[SpanSink] = []
        self._log_captures: list[tuple[logging.Logger, LogSpanHandler]] = []
        if self.config.span_log_path:
            self.add_sink(SpanLogWriter(self.config.span_log_path))
        if self.config.capture_logging:
            self.capture_logging()

    def add_sink(self, sink: SpanSink) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: SpanSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def capture_logging(
        self,
        target: logging.Logger | str | None = None,
        level: int = logging.NOTSET,
    ) -> LogSpanHandler:
        """Record every record reaching ``target`` (default: root) as a log span."""
        if not isinstance(target, logging.Logger):
            target = logging.getLogger(target)
        handler = LogSpanHandler(self.tracker, level)
        target.addHandler(handler)
        self._log_captures.append((target, handler))
        return handler

    def release_logging(self) -> None:
        for target, handler in self._log_captures:
            target.removeHandler(handler)
        self._log_captures.clear()

    def _record(self, span: Span) -> None:
        try:
            self.store.add(span)
        except Exception as exc:
            logger.debug("span_store.add_failed", span_id=span.span_id, error=str(exc))
        for sink in list(self._sinks):
            try:
                sink(span)
            except Exception as exc:
                logger.debug("span_sink.failed", span_id=span.span_id, error=str(exc))

    # -- instrumentation boundary -------------------------------------------

    def enter(
        self,
        name: str,
        location: str = "",
        args: Iterable[Any] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> str:
        return self.tracker.enter(name, location, args, kwargs)

    def exit(self, token: str, return_value: Any = MISSING, error: Any = None) -> Span | None:
        return self.tracker.exit(token, return_value, error)

    def wrap(self, fn: F, name: str | None = None, location: str | None = None) -> F:
        return wrap_callable(self.tracker, fn, name, location)

    def traced(self, fn: Any = None, *, name: str | None = None, location: str | None = None):
        """Decorator form of :meth:`wrap`.

        Usable bare (``@traced``), with a span name (``@traced("load")``)
        or with keywords (``@traced(name="load", location="jobs.py:12")``).
        """
        if isinstance(fn, str):
            name, fn = fn, None
        if fn is not None:
            return self.wrap(fn, name, location)

        def decorator(func: F) -> F:
            return self.wrap(func, name, location)

        return decorator

    def wrap_class(self, cls: type[T], name: str | None = None) -> type[T]:
        """Wrap the methods defined on ``cls`` in place as ``Class.method`` spans."""
        class_name = name or cls.__name__
        for attr, raw in list(vars(cls).items()):
            if attr.startswith("__") and attr.endswith("__"):
                continue
            span_name = f"{class_name}.{attr}"
            if isinstance(raw, staticmethod):
                setattr(cls, attr, staticmethod(self.wrap(raw.__func__, span_name)))
            elif isinstance(raw, classmethod):
                setattr(cls, attr, classmethod(self.wrap(raw.__func__, span_name)))
            elif inspect.isfunction(raw) and not is_wrapped(raw):
                setattr(cls, attr, self.wrap(raw, span_name))
        return cls

    def wrap_module(self, obj: Any, prefix: str | None = None) -> Any:
        """Wrap every public function (and class) attribute of ``obj`` in place."""
        module_name = prefix or getattr(obj, "__name__", None) or "module"
        owner = obj.__name__ if isinstance(obj, ModuleType) else None
        for key, value in list(vars(obj).items()):
            if key.startswith("_"):
                continue
            if owner is not None and getattr(value, "__module__", owner) != owner:
                continue
            if inspect.isclass(value):
                self.wrap_class(value, f"{module_name}.{key}")
            elif inspect.isfunction(value) and not is_wrapped(value):
                setattr(obj, key, self.wrap(value, f"{module_name}.{key}"))
        return obj

    # -- query surface ------------------------------------------------------

    def spans(self, limit: int | None = None) -> list[Span]:
        return self.store.all(limit)

    def spans_by_trace_id(self, trace_id: str) -> list[Span]:
        return self.store.by_trace_id(trace_id)

    def spans_by_name(self, name: str) -> list[Span]:
        return self.store.by_name(name)

    def spans_by_time_range(self, start: int, end: int) -> list[Span]:
        return self.store.by_time_range(start, end)

    def trace_ids(self, start: int | None = None, end: int | None = None, limit: int | None = None) -> list[str]:
        return self.store.trace_ids(start, end, limit)

    def statistics(self) -> dict[str, Any]:
        return self.store.statistics()

    def traces(
        self,
        start: int | None = None,
        end: int | None = None,
        limit: int | None = None,
        named_only: bool = False,
    ) -> list[Trace]:
        return traces_with_spans(self.store, start, end, limit, named_only)

    def call_tree(self, trace_id: str) -> CallTreeNode | list[CallTreeNode] | None:
        return call_tree(self.store, trace_id)

    def render(self, trace_id: str) -> str:
        return render_call_tree(self.store, trace_id)

    def clear(self) -> None:
        self.store.clear()

    def reset(self) -> None:
        """Clear stored spans and forget all open calls."""
        self.store.clear()
        self.tracker.reset()


_DEFAULT_TRACER: Tracer | None = None
_DEFAULT_LOCK = threading.Lock()


def get_tracer() -> Tracer:
    global _DEFAULT_TRACER
    if _DEFAULT_TRACER is not None:
        return _DEFAULT_TRACER
    with _DEFAULT_LOCK:
        if _DEFAULT_TRACER is None:
            _DEFAULT_TRACER = Tracer(config_loader.get_config())
    return _DEFAULT_TRACER


def set_tracer(tracer: Tracer | None) -> None:
    global _DEFAULT_TRACER
    with _DEFAULT_LOCK:
        _DEFAULT_TRACER = tracer


def wrap(fn: F, name: str | None = None, location: str | None = None) -> F:
    return get_tracer().wrap(fn, name, location)


def traced(fn: Any = None, *, name: str | None = None, location: str | None = None):
    return get_tracer().traced(fn, name=name, location=location)


def wrap_module(obj: Any, prefix: str | None = None) -> Any:
    return get_tracer().wrap_module(obj, prefix)


def enter(name: str, location: str = "", args: Iterable[Any] = (), kwargs: Mapping[str, Any] | None = None) -> str:
    return get_tracer().enter(name, location, args, kwargs)


def exit(token: str, return_value: Any = MISSING, error: Any = None) -> Span | None:
    return get_tracer().exit(token, return_value, error)


def clear_spans() -> None:
    get_tracer().clear()


def get_spans(limit: int | None = None) -> list[Span]:
    return get_tracer().spans(limit)


def get_traces(start: int | None = None, end: int | None = None, limit: int | None = None) -> list[Trace]:
    return get_tracer().traces(start, end, limit)


def get_call_tree(trace_id: str) -> CallTreeNode | list[CallTreeNode] | None:
    return get_tracer().call_tree(trace_id)


def get_statistics() -> dict[str, Any]:
    return get_tracer().statistics()
