"""callprobe - in-process function tracing and call-tree reconstruction."""

from .formatting import MISSING, format_value
from .models import CallTreeNode, Span, SpanStatus, Trace
from .store import SpanStore
from .tracker import CallStackTracker
from .tracer import (
    Tracer,
    clear_spans,
    enter,
    exit,
    get_call_tree,
    get_spans,
    get_statistics,
    get_traces,
    get_tracer,
    set_tracer,
    traced,
    wrap,
    wrap_module,
)
from .wrapper import is_wrapped, unwrap

__version__ = "0.3.0"

__all__ = [
    "Tracer",
    "get_tracer",
    "set_tracer",
    "wrap",
    "traced",
    "wrap_module",
    "enter",
    "exit",
    "clear_spans",
    "get_spans",
    "get_traces",
    "get_call_tree",
    "get_statistics",
    "is_wrapped",
    "unwrap",
    "Span",
    "SpanStatus",
    "Trace",
    "CallTreeNode",
    "SpanStore",
    "CallStackTracker",
    "MISSING",
    "format_value",
    "__version__",
]
