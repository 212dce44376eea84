from callprobe.models import STATUS_ERROR, Span
from callprobe.reconstruct import call_tree, render_call_tree, traces_with_spans
from callprobe.store import SpanStore


def span(span_id, name, start, parent=None, trace_id="t1", **extra):
    return Span(
        trace_id=trace_id,
        span_id=span_id,
        name=name,
        start_time=start,
        end_time=start + 1_000_000,
        parent_span_id=parent,
        **extra,
    )


def family_store():
    store = SpanStore()
    # inserted out of order on purpose
    store.add(span("4", "grandchild", 300, parent="2"))
    store.add(span("3", "childB", 400, parent="1"))
    store.add(span("1", "root", 100))
    store.add(span("2", "childA", 200, parent="1"))
    return store


class TestCallTree:
    def test_single_root_with_nested_children(self):
        tree = call_tree(family_store(), "t1")

        assert not isinstance(tree, list)
        assert tree.span.span_id == "1"
        assert [c.span.span_id for c in tree.children] == ["2", "3"]
        child_a, child_b = tree.children
        assert [c.span.span_id for c in child_a.children] == ["4"]
        assert child_b.children == []
        assert [n.span.span_id for n in tree.walk()] == ["1", "2", "4", "3"]

    def test_unknown_trace_is_none(self):
        assert call_tree(family_store(), "nope") is None

    def test_missing_parent_makes_an_extra_root(self):
        store = family_store()
        store.add(span("9", "orphan", 500, parent="evicted"))
        roots = call_tree(store, "t1")

        assert isinstance(roots, list)
        assert [r.span.span_id for r in roots] == ["1", "9"]

    def test_tree_serializes_children(self):
        payload = call_tree(family_store(), "t1").to_dict()
        assert payload["spanId"] == "1"
        assert [c["spanId"] for c in payload["children"]] == ["2", "3"]
        assert payload["children"][0]["children"][0]["name"] == "grandchild"


class TestRender:
    def test_connectors_and_nesting(self):
        text = render_call_tree(family_store(), "t1")
        assert text.splitlines() == [
            "root (1.000ms)",
            "|- childA (1.000ms)",
            "|  `- grandchild (1.000ms)",
            "`- childB (1.000ms)",
        ]

    def test_labels_include_error_args_and_return(self):
        store = SpanStore()
        store.add(span("a", "load", 0, args=("1", "mode=fast"), return_value="'ok'"))
        store.add(span("b", "save", 10, parent="a", status=STATUS_ERROR, error_message="disk full"))

        lines = render_call_tree(store, "t1").splitlines()
        assert lines[0] == "load (1.000ms) args: [1, mode=fast] => 'ok'"
        assert lines[1] == "`- save (1.000ms) [ERROR: disk full]"

    def test_long_values_are_clipped(self):
        store = SpanStore()
        store.add(span("a", "dump", 0, return_value="x" * 200))
        line = render_call_tree(store, "t1")
        assert line.endswith("x" * 80 + "...")

    def test_unknown_trace(self):
        assert render_call_tree(SpanStore(), "nope") == "No trace found"

    def test_multiple_roots_are_separated(self):
        store = SpanStore()
        store.add(span("a", "first", 0))
        store.add(span("b", "second", 10, parent="gone"))
        assert render_call_tree(store, "t1") == "first (1.000ms)\n\nsecond (1.000ms)"


class TestTracesWithSpans:
    def _store(self):
        store = SpanStore()
        store.add(span("a1", "job", 100, trace_id="A"))
        store.add(span("a2", "anonymous", 150, parent="a1", trace_id="A"))
        store.add(span("b1", "job", 200, trace_id="B"))
        store.add(span("c1", "job", 300, trace_id="C"))
        return store

    def test_newest_trace_first(self):
        traces = traces_with_spans(self._store())
        assert [t.trace_id for t in traces] == ["C", "B", "A"]
        assert len(traces[-1].spans) == 2
        assert traces[-1].start_time == 100

    def test_window_and_limit(self):
        store = self._store()
        assert [t.trace_id for t in traces_with_spans(store, start=150, end=250)] == ["B", "A"]
        assert [t.trace_id for t in traces_with_spans(store, limit=1)] == ["C"]
        assert traces_with_spans(store, start=1_000) == []

    def test_named_only_drops_anonymous_spans(self):
        traces = traces_with_spans(self._store(), named_only=True)
        trace_a = traces[-1]
        assert [s.span_id for s in trace_a.spans] == ["a1"]

    def test_trace_payload(self):
        (trace,) = traces_with_spans(self._store(), start=300)
        payload = trace.to_dict()
        assert payload["traceId"] == "C"
        assert payload["type"] == "py"
        assert payload["startTimeMilli"] == 0
        assert payload["spans"][0]["spanId"] == "c1"
