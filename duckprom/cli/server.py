"""Server command for duckprom."""

from typing import Optional

import typer
from rich.console import Console

console = Console()


def serve(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        "-h",
        help="Host to bind to (defaults to duckprom_host)",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to bind to (defaults to duckprom_port)",
    ),
    reload: bool = typer.Option(
        False,
        "--reload",
        "-r",
        help="Enable auto-reload for development",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (debug, info, warning, error, critical)",
    ),
    access_log: bool = typer.Option(
        True,
        "--access-log/--no-access-log",
        help="Enable/disable access logging",
    ),
) -> None:
    """Start the remote storage adapter.

    Prometheus should point its remote_write and remote_read URLs at
    /write and /read on this server.

    Examples:
        duckprom serve

        duckprom serve --host 127.0.0.1 --port 9201

        duckprom serve --reload --log-level debug
    """
    import uvicorn
    from duckprom.config import get_settings

    settings = get_settings()

    host = host or settings.duckprom_host
    port = port or settings.duckprom_port
    effective_log_level = (log_level or settings.log_level).lower()

    console.print("\n[bold cyan]Starting duckprom[/bold cyan]\n")
    console.print(f"  Host:        {host}")
    console.print(f"  Port:        {port}")
    console.print(f"  Storage:     {settings.storage_backend}")
    if settings.storage_backend == "duckdb":
        console.print(f"  Database:    {settings.storage_database}")
    console.print(f"  Collection:  {settings.storage_collection}")
    console.print(f"  Log Level:   {effective_log_level}")

    host_display = "localhost" if host == "0.0.0.0" else host
    console.print(f"\n  Write:       http://{host_display}:{port}/write")
    console.print(f"  Read:        http://{host_display}:{port}/read")
    console.print(f"  Health:      http://{host_display}:{port}/health\n")

    if reload:
        console.print("[yellow]  Mode:        Development (auto-reload enabled)[/yellow]\n")

    try:
        uvicorn.run(
            "duckprom.api.app:app",
            host=host,
            port=port,
            log_level=effective_log_level,
            access_log=access_log,
            reload=reload,
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")
