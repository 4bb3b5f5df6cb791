"""CLI entry point using Typer."""

from datetime import UTC, datetime
from typing import NoReturn

import structlog
import typer
from rich.console import Console
from rich.table import Table

from hitquota.errors import QuotaError

app = typer.Typer(
    name="hitquota",
    help="Monthly per-user hit counting and quota checks.",
)
console = Console()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)


def _datastore():
    from hitquota.datastore import SqlDatastore

    return SqlDatastore()


def _guard(limit: int | None = None):
    from hitquota.cache import build_cache
    from hitquota.counter import QuotaCounter
    from hitquota.guard import QuotaGuard

    datastore = _datastore()
    return QuotaGuard(QuotaCounter(datastore, build_cache()), datastore, limit=limit)


def _parse_instant(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise typer.BadParameter(f"Timestamp must include an offset: {value}")
    return parsed


def _fail(e: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {e}")
    raise typer.Exit(1)


@app.command("init-db")
def init_db() -> None:
    """Create the users and hits tables."""
    from hitquota.db import init_db as create_tables

    create_tables()
    console.print("[bold green]Tables ready.[/bold green]")


@app.command("add-user")
def add_user(
    user_id: str = typer.Argument(..., help="User identifier"),
    timezone: str | None = typer.Option(None, "--timezone", help="IANA time zone name"),
) -> None:
    """Register a user."""
    try:
        _datastore().create_user(user_id, timezone)
    except QuotaError as e:
        _fail(e)
    console.print(f"Added [cyan]{user_id}[/cyan] ({timezone or 'no timezone'})")


@app.command("set-timezone")
def set_timezone(
    user_id: str = typer.Argument(..., help="User identifier"),
    timezone: str | None = typer.Argument(None, help="IANA time zone name"),
    clear: bool = typer.Option(False, "--clear", help="Unset the user's time zone"),
) -> None:
    """Change the zone used for the user's future periods."""
    if timezone is None and not clear:
        raise typer.BadParameter("Pass a time zone or --clear")
    try:
        _datastore().set_user_timezone(user_id, None if clear else timezone)
    except QuotaError as e:
        _fail(e)
    console.print(f"Updated [cyan]{user_id}[/cyan]")


@app.command()
def record(
    user_id: str = typer.Argument(..., help="User identifier"),
    at: str | None = typer.Option(None, "--at", help="ISO-8601 timestamp with offset (default: now)"),
    request_tz: str | None = typer.Option(None, "--request-tz", help="Request time zone fallback"),
) -> None:
    """Record a single hit."""
    guard = _guard()
    try:
        timezone = guard.resolve_timezone(user_id, request_tz)
        count = guard.counter.record_hit(user_id, _parse_instant(at), timezone=timezone)
    except QuotaError as e:
        _fail(e)
    console.print(f"Recorded hit for [cyan]{user_id}[/cyan] (cached count: {count if count is not None else 'n/a'})")


@app.command()
def count(
    user_id: str = typer.Argument(..., help="User identifier"),
    request_tz: str | None = typer.Option(None, "--request-tz", help="Request time zone fallback"),
) -> None:
    """Show hits in the user's current period."""
    guard = _guard()
    try:
        timezone = guard.resolve_timezone(user_id, request_tz)
        hits = guard.counter.count_hits(user_id, timezone)
    except QuotaError as e:
        _fail(e)
    period = guard.counter.current_period(timezone)

    table = Table(title=f"Hits for {user_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Time zone", timezone)
    table.add_row("Period start", period.start.isoformat())
    table.add_row("Period end", period.end.isoformat())
    table.add_row("Hits", str(hits))
    table.add_row("Checked at", datetime.now(UTC).isoformat(timespec="seconds"))
    console.print(table)


@app.command()
def check(
    user_id: str = typer.Argument(..., help="User identifier"),
    request_tz: str | None = typer.Option(None, "--request-tz", help="Request time zone fallback"),
    limit: int | None = typer.Option(None, "--limit", help="Monthly hit limit (default from settings)"),
) -> None:
    """Exit non-zero when the user is over quota."""
    try:
        decision = _guard(limit).check(user_id, request_tz)
    except QuotaError as e:
        _fail(e)
    if decision.allowed:
        console.print(f"[bold green]OK[/bold green] {decision.count}/{decision.limit} ({decision.timezone})")
        return
    console.print(f"[bold red]Over quota[/bold red] {decision.count}/{decision.limit} ({decision.timezone})")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
