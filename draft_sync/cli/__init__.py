"""
Command Line Interface for Draft Sync.
"""

import json
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..auth import issue_token
from ..config import get_settings
from ..db.base import get_database_url, init_database
from ..normalizer import hash_canonical, normalize, serialize

app = typer.Typer(help="Draft Sync - autosave synchronization for sale listings")
console = Console()


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    dev: bool = typer.Option(False, help="Run in development mode (auto-reload)"),
):
    """Start the drafts API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    rprint(Panel.fit("Starting Draft Sync", style="bold blue"))
    console.print(f"🚀 Listening on http://{host}:{port}")
    if settings.rate_limiting_enabled and settings.api_workers > 1 and not dev:
        console.print(
            "[yellow]⚠ Write-rate budgets are kept per process; "
            f"{settings.api_workers} workers multiply the effective limit[/yellow]"
        )

    uvicorn.run(
        "draft_sync.main:app",
        host=host,
        port=port,
        reload=dev,
        workers=1 if dev else settings.api_workers,
    )


@app.command("init-db")
def init_db():
    """Create the drafts tables (development; production uses Alembic)."""
    init_database()
    console.print(f"✅ Database initialized at {get_database_url()}")


@app.command("hash")
def hash_payload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Draft payload JSON file"),
    show_canonical: bool = typer.Option(False, "--canonical", help="Print the canonical form"),
):
    """Print the content hash of a draft payload."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"❌ Invalid JSON: {e}")
        raise typer.Exit(code=1)

    if not isinstance(payload, dict):
        console.print("❌ Payload must be a JSON object")
        raise typer.Exit(code=1)

    canonical = normalize(payload)
    if show_canonical:
        console.print(serialize(canonical).decode("utf-8"), soft_wrap=True, markup=False, highlight=False)
    console.print(hash_canonical(canonical), highlight=False)


@app.command("issue-token")
def issue_token_command(
    owner_id: str = typer.Argument(..., help="Owner id to sign into the token"),
):
    """Issue a bearer token for an owner (local testing)."""
    settings = get_settings()
    token = issue_token(owner_id, settings)

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Owner", owner_id)
    table.add_row("Expires in", f"{settings.access_token_expire_minutes} minutes")
    console.print(table)
    console.print(token, soft_wrap=True, markup=False, highlight=False)


if __name__ == "__main__":
    app()
