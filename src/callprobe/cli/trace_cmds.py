"""Offline inspection of a span log: spans, traces, call trees, statistics."""

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from . import app, console, load_tracer

LogOption = typer.Option(None, "--log", "-l", help="Span log file (defaults to the configured span log)")


def _clock(ns: int) -> str:
    if not ns:
        return "-"
    return datetime.fromtimestamp(ns / 1_000_000_000).strftime("%H:%M:%S.%f")[:-3]


@app.command("spans")
def list_spans(
    log: Optional[Path] = LogOption,
    trace_id: str = typer.Option("", "--trace", "-t", help="Only spans of this trace"),
    name: str = typer.Option("", "--name", "-n", help="Only spans of this function"),
    limit: int = typer.Option(50, "--limit", help="Show at most this many (newest) spans"),
):
    """List recorded spans."""
    tracer = load_tracer(log)
    if trace_id:
        spans = tracer.spans_by_trace_id(trace_id)
    elif name:
        spans = tracer.spans_by_name(name)
    else:
        spans = tracer.spans()
    spans = spans[-limit:] if limit > 0 else spans

    table = Table(title=f"Spans ({len(spans)})")
    table.add_column("Start")
    table.add_column("Name")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Status")
    table.add_column("Caller")
    table.add_column("Trace")

    for span in spans:
        status = "[green]ok[/green]" if span.status == "ok" else "[red]error[/red]"
        table.add_row(
            _clock(span.start_time),
            span.name,
            f"{span.duration_ms:.3f}",
            status,
            span.caller_name or "-",
            span.trace_id[:8],
        )
    console.print(table)


@app.command("traces")
def list_traces(
    log: Optional[Path] = LogOption,
    limit: int = typer.Option(20, "--limit", help="Show at most this many traces"),
):
    """List traces, newest first."""
    tracer = load_tracer(log)
    traces = tracer.traces(limit=limit)
    if not traces:
        console.print("[yellow]No traces recorded.[/yellow]")
        return

    table = Table(title="Traces")
    table.add_column("Trace ID")
    table.add_column("Started")
    table.add_column("Spans", justify="right")
    table.add_column("Roots")
    table.add_column("Errors", justify="right")

    for trace in traces:
        roots = sorted({s.name for s in trace.spans if s.is_root})
        errors = sum(1 for s in trace.spans if s.status == "error")
        table.add_row(
            trace.trace_id,
            _clock(trace.start_time),
            str(len(trace.spans)),
            ", ".join(roots) or "-",
            str(errors),
        )
    console.print(table)


@app.command("tree")
def show_tree(
    trace_id: str = typer.Argument(..., help="Trace to render"),
    log: Optional[Path] = LogOption,
):
    """Render the call tree of one trace."""
    tracer = load_tracer(log)
    if tracer.call_tree(trace_id) is None:
        console.print(f"[red]Trace '{trace_id}' not found[/red]")
        raise typer.Exit(1)
    console.print(tracer.render(trace_id), markup=False, highlight=False)


@app.command("stats")
def show_stats(log: Optional[Path] = LogOption):
    """Summary statistics for a span log."""
    tracer = load_tracer(log)
    stats = tracer.statistics()

    console.print("[bold]Span Statistics[/bold]")
    console.print(f"  Spans:            {stats['totalSpans']}")
    console.print(f"  Traces:           {stats['totalTraces']}")
    console.print(f"  Functions:        {stats['totalFunctions']}")
    console.print(f"  Oldest span:      {_clock(stats['oldestSpan'])}")
    console.print(f"  Newest span:      {_clock(stats['newestSpan'])}")
    console.print(f"  Avg duration:     {stats['averageDuration'] / 1_000_000:.3f} ms")
