"""callprobe command line: shared app, console and span log helpers."""

from pathlib import Path

import typer
from rich.console import Console

from ..config import config_loader
from ..sinks import DEFAULT_SPAN_LOG, load_span_log
from ..tracer import Tracer

# ── Shared state ────────────────────────────────────────────────────────────

app = typer.Typer(help="callprobe - function call tracing and call trees")
console = Console()

remote_app = typer.Typer()
app.add_typer(remote_app, name="remote", help="Query a running callprobe server")


# ── Shared helpers ──────────────────────────────────────────────────────────

def resolve_log_path(log: Path | None) -> Path:
    if log is not None:
        return log
    configured = config_loader.get_config().span_log_path
    return Path(configured) if configured else DEFAULT_SPAN_LOG


def load_tracer(log: Path | None) -> Tracer:
    """A detached tracer whose store is rehydrated from a span log."""
    path = resolve_log_path(log)
    if not path.exists():
        console.print(f"[red]Span log not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        spans = load_span_log(path)
    except OSError as e:
        console.print(f"[red]Failed to read span log: {e}[/red]")
        raise typer.Exit(1)
    config = config_loader.get_config().model_copy(
        update={"span_log_path": None, "capture_logging": False, "max_spans": max(len(spans) * 2, 1)}
    )
    tracer = Tracer(config)
    tracer.store.extend(spans)
    return tracer


def main():
    app()


# ── Register submodule commands (import triggers decorator registration) ────

from . import trace_cmds   # noqa: E402, F401
from . import server_cmds  # noqa: E402, F401
from . import remote_cmds  # noqa: E402, F401
