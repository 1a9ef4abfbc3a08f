"""
timeledger CLI - command-line interface for timeledger.

Minimal CLI for server management and quick inspection of a user's ledger.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from timeledger.logging_config import setup_logging

app = typer.Typer(
    name="timeledger",
    help="timeledger - time entries, timers and their audit trail",
    no_args_is_help=True,
)

console = Console()


def _init_logging() -> None:
    # Fall back to console logging if file logging is not permitted
    try:
        setup_logging(context="cli")
    except PermissionError:
        logging.basicConfig(level=logging.INFO)


def _format_seconds(seconds: int) -> str:
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    return f"{sign}{seconds // 3600}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


def _parse_uuid(value: str, name: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[bold red]Error:[/bold red] Invalid {name}: {value}")
        raise typer.Exit(1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind to"),
    port: Optional[int] = typer.Option(None, help="Port to bind to"),
    reload: Optional[bool] = typer.Option(None, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.

    Defaults come from API_HOST, API_PORT and API_RELOAD.
    """
    import uvicorn

    from timeledger.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    reload = settings.api_reload if reload is None else reload

    console.print("[bold green]Starting timeledger API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "timeledger.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command("init-db")
def init_db_command() -> None:
    """Create all tables directly from the models (development databases)."""
    from timeledger.db.connection import init_db

    _init_logging()
    init_db()
    console.print("[green]✓ Database tables created[/green]")


@app.command()
def entries(
    user_id: str = typer.Argument(..., help="Owner user UUID"),
    date_from: Optional[datetime] = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="First day (inclusive)"
    ),
    date_to: Optional[datetime] = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Last day (inclusive)"
    ),
    deleted: bool = typer.Option(
        False, "--deleted", help="List soft-deleted entries instead of live ones"
    ),
) -> None:
    """
    Print a user's entries grouped by day.

    Defaults to the last DEFAULT_RANGE_DAYS days ending today.
    """
    from timeledger.config import settings
    from timeledger.db.connection import db_session
    from timeledger.exceptions import LedgerError
    from timeledger.ledger import EntryAssembler

    _init_logging()
    owner = _parse_uuid(user_id, "user id")

    with db_session() as session:
        assembler = EntryAssembler(session)
        last_day: date = (
            date_to.date() if date_to else assembler.day_of(assembler.clock())
        )
        first_day: date = (
            date_from.date()
            if date_from
            else last_day - timedelta(days=settings.default_range_days - 1)
        )
        try:
            groups = assembler.list_days(
                owner, first_day, last_day, include_deleted=deleted
            )
        except LedgerError as e:
            console.print(f"[bold red]Error:[/bold red] {e.message}")
            raise typer.Exit(1)

        if not groups:
            console.print("[yellow]No entries in range[/yellow]")
            return

        for group in groups:
            table = Table(
                title=f"{group.date.isoformat()}  "
                f"({_format_seconds(group.total_seconds)})",
                title_justify="left",
            )
            table.add_column("Description")
            table.add_column("Project")
            table.add_column("Duration", justify="right")
            table.add_column("Segments", justify="right")
            table.add_column("Id", style="dim")
            for view in group.entries:
                duration = _format_seconds(view.total_duration_seconds)
                if view.is_running:
                    duration = f"[green]{duration} ▶[/green]"
                table.add_row(
                    view.description or "[dim](no description)[/dim]",
                    view.project_name or "",
                    duration,
                    str(len(view.segments)),
                    str(view.id),
                )
            console.print(table)


@app.command()
def audit(
    entry_id: str = typer.Argument(..., help="Entry UUID"),
    user_id: str = typer.Argument(..., help="Owner user UUID"),
) -> None:
    """Print the audit trail of an entry, newest first."""
    from timeledger.db.connection import db_session
    from timeledger.exceptions import LedgerError
    from timeledger.ledger import AuditTrail

    _init_logging()
    entry = _parse_uuid(entry_id, "entry id")
    owner = _parse_uuid(user_id, "user id")

    with db_session() as session:
        try:
            events = AuditTrail(session).history(entry, owner)
        except LedgerError as e:
            console.print(f"[bold red]Error:[/bold red] {e.message}")
            raise typer.Exit(1)

    table = Table(title=f"Audit trail for {entry}", title_justify="left")
    table.add_column("When")
    table.add_column("Action", style="cyan")
    table.add_column("Actor")
    table.add_column("Changes")
    for event in events:
        changes = ", ".join(
            f"{field}: {change.get('old')!r} → {change.get('new')!r}"
            if "old" in change
            else f"{field}: {change.get('new')!r}"
            for field, change in (event["changes"] or {}).items()
        )
        table.add_row(
            event["created_at"].isoformat(timespec="seconds"),
            event["action"],
            event["actor_name"],
            changes,
        )
    console.print(table)


if __name__ == "__main__":
    app()
