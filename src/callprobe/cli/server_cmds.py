"""Server and housekeeping commands: serve, version."""

from typing import Optional

import typer

from .. import __version__
from ..config import config_loader
from . import app, console


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from config)"),
):
    """Run the HTTP query server in the foreground."""
    import uvicorn

    from ..server import create_app

    try:
        config = config_loader.load_config()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    bind_host = host or config.server_host
    bind_port = port or config.server_port
    console.print(f"[green]callprobe query server on http://{bind_host}:{bind_port}[/green]")
    uvicorn.run(create_app(), host=bind_host, port=bind_port, log_level=config.log_level.lower())


@app.command("version")
def version():
    """Print the callprobe version."""
    console.print(f"callprobe {__version__}")
