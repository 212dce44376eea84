"""Rebuild traces and call trees from the flat span store."""

from __future__ import annotations

from .formatting import ELLIPSIS
from .models import STATUS_ERROR, CallTreeNode, Span, Trace
from .store import SpanStore

_RENDER_VALUE_LIMIT = 80


def traces_with_spans(
    store: SpanStore,
    start: int | None = None,
    end: int | None = None,
    limit: int | None = None,
    named_only: bool = False,
) -> list[Trace]:
    """Group spans by trace, newest trace first.

    ``start``/``end`` filter on span start time. With ``named_only`` the
    anonymous spans are left out of each trace's span list.
    """
    groups: dict[str, list[Span]] = {}
    for span in store.all():
        if start is not None and span.start_time < start:
            continue
        if end is not None and span.start_time > end:
            continue
        groups.setdefault(span.trace_id, []).append(span)

    traces = []
    for trace_id, spans in groups.items():
        earliest = min(s.start_time for s in spans)
        if named_only:
            spans = [s for s in spans if s.name and s.name != "anonymous"]
        traces.append(Trace(trace_id=trace_id, spans=tuple(spans), start_time=earliest))

    traces.sort(key=lambda t: t.start_time, reverse=True)
    if limit is not None:
        traces = traces[: max(0, limit)]
    return traces


def call_tree(store: SpanStore, trace_id: str) -> CallTreeNode | list[CallTreeNode] | None:
    """Parent/child tree for one trace.

    Returns None when the trace has no spans, the root node when there is
    exactly one, and the list of roots otherwise. Spans whose parent is
    not in the store (evicted, or never recorded) become roots.
    """
    spans = store.by_trace_id(trace_id)
    if not spans:
        return None

    nodes = {span.span_id: CallTreeNode(span) for span in spans}
    roots: list[CallTreeNode] = []
    for span in spans:
        node = nodes[span.span_id]
        parent = nodes.get(span.parent_span_id) if span.parent_span_id else None
        if parent is not None and parent is not node:
            parent.children.append(node)
        else:
            roots.append(node)

    if len(roots) == 1:
        return roots[0]
    return roots


def _clip(text: str) -> str:
    if len(text) > _RENDER_VALUE_LIMIT:
        return text[:_RENDER_VALUE_LIMIT] + ELLIPSIS
    return text


def _node_label(span: Span) -> str:
    line = f"{span.name} ({span.duration_ms:.3f}ms)"
    if span.status == STATUS_ERROR:
        line += f" [ERROR: {_clip(span.error_message or '')}]"
    if span.args:
        line += f" args: [{', '.join(_clip(a) for a in span.args)}]"
    if span.return_value is not None:
        line += f" => {_clip(span.return_value)}"
    return line


def _render_node(node: CallTreeNode, prefix: str, connector: str, lines: list[str]) -> None:
    lines.append(f"{prefix}{connector}{_node_label(node.span)}")
    if connector == "`- ":
        child_prefix = prefix + "   "
    elif connector == "|- ":
        child_prefix = prefix + "|  "
    else:
        child_prefix = prefix
    for i, child in enumerate(node.children):
        last = i == len(node.children) - 1
        _render_node(child, child_prefix, "`- " if last else "|- ", lines)


def render_call_tree(store: SpanStore, trace_id: str) -> str:
    tree = call_tree(store, trace_id)
    if tree is None:
        return "No trace found"
    roots = tree if isinstance(tree, list) else [tree]
    blocks = []
    for root in roots:
        lines: list[str] = []
        _render_node(root, "", "", lines)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
