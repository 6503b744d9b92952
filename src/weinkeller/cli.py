"""Command line interface for the cellar ledger."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError

from . import schemas
from .aggregate import StockSummary
from .config import Settings, get_settings
from .crud import create_wine, list_wines
from .database import SessionLocal, init_database
from .errors import LedgerError
from .service import InventoryLedger

app = typer.Typer(help="Track the bottles in your wine cellar.")


def _print_header(title: str) -> None:
    typer.secho(title, bold=True, fg=typer.colors.CYAN)


def _resolve_settings() -> Settings:
    settings = get_settings()
    init_database()
    return settings


def _ledger() -> InventoryLedger:
    _resolve_settings()
    return InventoryLedger()


def _print_summary(wine_id: int, summary: StockSummary) -> None:
    last = summary.last_event_at.isoformat(sep=" ", timespec="seconds") if summary.last_event_at else "never"
    typer.echo(
        f"Wine #{wine_id}: {summary.current_stock} bottle(s) in stock "
        f"(acquired {summary.total_acquired}, consumed {summary.total_consumed}, last change {last})"
    )


def _fail(exc: LedgerError) -> None:
    typer.secho(str(exc), fg=typer.colors.RED)
    raise typer.Exit(code=1) from exc


@app.command()
def run(
    host: Optional[str] = typer.Option(None, help="Hostname to bind"),
    port: Optional[int] = typer.Option(None, help="Port to expose"),
    reload: Optional[bool] = typer.Option(None, help="Enable auto-reload"),
    log_level: Optional[str] = typer.Option(None, help="Uvicorn log level"),
) -> None:
    """Start the FastAPI service using Uvicorn."""

    settings = _resolve_settings()

    uvicorn.run(
        "weinkeller.app:create_app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.reload if reload is None else reload,
        log_level=log_level or settings.log_level,
        factory=True,
    )


@app.command()
def init_db() -> None:
    """Create the SQLite database and tables."""

    settings = _resolve_settings()
    typer.echo(f"Database initialised at {settings.database_path}")


@app.command()
def show_paths() -> None:
    """Print out important filesystem paths."""

    settings = _resolve_settings()
    typer.echo(f"Database: {settings.database_path}")
    typer.echo(f"Data directory: {settings.database_path.parent}")


@app.command("add-wine")
def add_wine(
    name: str = typer.Argument(..., help="Wine name"),
    producer: Optional[str] = typer.Option(None, help="Producer name"),
    year: Optional[int] = typer.Option(None, help="Vintage year"),
    wine_type: Optional[str] = typer.Option(None, "--type", help="Red, white, sparkling, ..."),
) -> None:
    """Register a wine so bottles of it can be tracked."""

    _resolve_settings()
    with SessionLocal() as session:
        wine = create_wine(session, schemas.WineCreate(name=name, producer=producer, year=year, type=wine_type))
    typer.secho(f"Created wine {wine.name} (id={wine.id})", fg=typer.colors.GREEN)


@app.command("wines")
def list_wines_cmd() -> None:
    """Display wines stored in the database."""

    _resolve_settings()
    with SessionLocal() as session:
        wines = list_wines(session, limit=1000)
    if not wines:
        typer.echo("No wines found.")
        return
    _print_header("Wines")
    for wine in wines:
        typer.echo(f"- #{wine.id} {wine.name} | {wine.producer or '-'} | {wine.year or 'NV'}")


@app.command()
def stock(wine_id: Optional[int] = typer.Argument(None, help="Wine to report; omit for the whole cellar")) -> None:
    """Show current stock for one wine or the whole cellar."""

    ledger = _ledger()
    try:
        if wine_id is not None:
            _print_summary(wine_id, ledger.get_stock(wine_id))
            return
        items = ledger.current_inventory()
    except LedgerError as exc:
        _fail(exc)
    if not items:
        typer.echo("The cellar is empty.")
        return
    _print_header("Current inventory")
    for item in items:
        typer.echo(f"- #{item.wine_id} {item.name} ({item.year or 'NV'}): {item.stock.current_stock}")


@app.command("add")
def add_bottles(
    wine_id: int = typer.Argument(..., help="Wine receiving the bottles"),
    quantity: int = typer.Argument(..., help="Number of bottles"),
    acquisition_type: Optional[str] = typer.Option(None, "--acquisition-type", help="Purchase, gift, ..."),
    price: Optional[float] = typer.Option(None, help="Price per bottle"),
    bought_at: Optional[str] = typer.Option(None, help="Where the bottles were bought"),
    date: Optional[datetime] = typer.Option(None, help="When the bottles arrived (defaults to now)"),
) -> None:
    """Record bottles entering the cellar."""

    ledger = _ledger()
    try:
        summary = ledger.record_acquisition(
            wine_id, quantity, acquisition_type, price=price, bought_at=bought_at, event_date=date
        )
    except LedgerError as exc:
        _fail(exc)
    _print_summary(wine_id, summary)


@app.command("drink")
def drink_bottles(
    wine_id: int = typer.Argument(..., help="Wine that was drunk"),
    quantity: int = typer.Argument(..., help="Number of bottles"),
    date: Optional[datetime] = typer.Option(None, help="When the bottles were drunk (defaults to now)"),
) -> None:
    """Record bottles leaving the cellar."""

    ledger = _ledger()
    try:
        summary = ledger.record_consumption(wine_id, quantity, event_date=date)
    except LedgerError as exc:
        _fail(exc)
    _print_summary(wine_id, summary)


@app.command("correct")
def correct_consumption(
    wine_id: int = typer.Argument(..., help="Wine whose consumption was mis-recorded"),
    event_id: int = typer.Argument(..., help="Drink event being corrected"),
    error_quantity: int = typer.Option(
        ..., "--error-quantity", "-e", help="Bottles to give back (negative to take more)"
    ),
    date: Optional[datetime] = typer.Option(None, help="When the correction applies (defaults to now)"),
) -> None:
    """Correct an earlier drink event without editing it."""

    ledger = _ledger()
    try:
        summary = ledger.record_correction(wine_id, event_id, error_quantity, event_date=date)
    except LedgerError as exc:
        _fail(exc)
    _print_summary(wine_id, summary)


@app.command()
def history(
    wine_id: Optional[int] = typer.Argument(None, help="Limit the history to one wine"),
    limit: int = typer.Option(50, min=1, max=1000, help="Maximum number of events"),
) -> None:
    """List inventory events, newest first."""

    ledger = _ledger()
    try:
        events = ledger.list_events(wine_id)[::-1][:limit] if wine_id is not None else ledger.history(limit=limit)
    except LedgerError as exc:
        _fail(exc)
    if not events:
        typer.echo("No inventory events recorded.")
        return
    _print_header("Inventory history")
    for event in events:
        detail = f"{event.event_type} {event.quantity}"
        if event.corrects_event_id is not None:
            detail += f" (correction {event.error_quantity:+d} to #{event.corrects_event_id})"
        typer.echo(f"- #{event.id} {event.event_date.isoformat(sep=' ', timespec='seconds')} wine {event.wine_id}: {detail}")


@app.command("export")
def export_inventory(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="File to write; defaults to stdout"),
) -> None:
    """Export every inventory event and the current stock as JSON."""

    ledger = _ledger()
    try:
        data = schemas.InventoryExport.model_validate(ledger.export_inventory())
    except LedgerError as exc:
        _fail(exc)
    payload = data.model_dump_json(indent=2)
    if output is None:
        typer.echo(payload)
        return
    output.write_text(payload + "\n", encoding="utf-8")
    typer.secho(f"Exported {len(data.events)} event(s) to {output}", fg=typer.colors.GREEN)


@app.command("import")
def import_inventory(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file produced by export"),
) -> None:
    """Replay exported inventory data into this cellar."""

    ledger = _ledger()
    try:
        data = schemas.InventoryExport.model_validate_json(source.read_text(encoding="utf-8"))
    except ValidationError as exc:
        typer.secho(f"{source} is not a valid inventory export: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    try:
        result = ledger.import_inventory(
            events=[record.model_dump() for record in data.events],
            inventory=[item.model_dump() for item in data.inventory],
        )
    except LedgerError as exc:
        _fail(exc)
    typer.secho(f"Imported {result.created} event(s)", fg=typer.colors.GREEN)
    for error in result.errors:
        typer.secho(f"- {error}", fg=typer.colors.YELLOW)
    if result.errors:
        raise typer.Exit(code=1)


def main() -> None:
    """Entry-point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
