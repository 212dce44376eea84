"""Commands that query a running callprobe server over HTTP."""

import httpx
import typer

from . import console, remote_app

UrlOption = typer.Option("http://127.0.0.1:43210", "--url", envvar="CALLPROBE_URL", help="Server base URL")


def _request(method: str, url: str, path: str, **params):
    query = {k: v for k, v in params.items() if v is not None}
    try:
        r = httpx.request(method, f"{url.rstrip('/')}{path}", params=query, timeout=5.0)
    except httpx.HTTPError as e:
        console.print(f"[red]Cannot reach callprobe server at {url}: {e}[/red]")
        raise typer.Exit(1)
    if r.status_code != 200:
        console.print(f"[red]Server returned {r.status_code}: {r.text}[/red]")
        raise typer.Exit(1)
    return r.json()


@remote_app.command("stats")
def remote_stats(url: str = UrlOption):
    """Show span statistics of a running server."""
    data = _request("GET", url, "/remote-debug/spans/stats")["data"]
    console.print("[bold]Remote Span Statistics[/bold]")
    console.print(f"  Spans:            {data['totalSpans']}")
    console.print(f"  Traces:           {data['totalTraces']}")
    console.print(f"  Functions:        {data['totalFunctions']}")
    console.print(f"  Oldest span:      {data['oldestSpan'] or '-'}")
    console.print(f"  Newest span:      {data['newestSpan'] or '-'}")
    console.print(f"  Avg duration:     {data['averageDurationMs']:.3f} ms")


@remote_app.command("traces")
def remote_traces(
    url: str = UrlOption,
    limit: int = typer.Option(20, "--limit", help="Show at most this many traces"),
):
    """List the newest traces of a running server."""
    traces = _request("GET", url, "/remote-debug/traces", limit=limit)
    if not traces:
        console.print("[yellow]No traces recorded.[/yellow]")
        return
    for trace in traces:
        names = ", ".join(s["name"] for s in trace["spans"] if "parentSpanId" not in s) or "-"
        console.print(f"  {trace['traceId']}  spans={len(trace['spans'])}  roots={names}", markup=False)


@remote_app.command("clear")
def remote_clear(url: str = UrlOption):
    """Clear the span store of a running server."""
    payload = _request("DELETE", url, "/remote-debug/spans")
    console.print(f"[green]{payload.get('message', 'cleared')}[/green]")
