"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Optional, Annotated, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.json_store import JsonFileDocumentStore
from ..adapters.spreadsheet import read_rows
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError
from ..domain.models import ReservationDetails, SlotState
from ..services.studio import Studio

app = typer.Typer(
    name="studiobook",
    help="Studio slot booking: availability, ledger, blackouts, imports and reconciliation",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]

STATE_STYLES = {
    SlotState.OPEN: "green",
    SlotState.OCCUPIED: "yellow",
    SlotState.BLOCKED: "red",
}


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path]) -> Tuple[AppConfig, Studio]:
    """
    Load configuration (defaults when no config file exists) and build the
    studio around the JSON store.
    """
    config_path = config_file or get_default_config_path()
    if config_path.exists():
        config = AppConfig.load_from_yaml(config_path)
    elif config_file is not None:
        raise FileNotFoundError(f"Config file not found: {config_file}")
    else:
        config = AppConfig()

    _setup_logging(config.log_level)
    store = JsonFileDocumentStore(config.store_path)
    return config, Studio.from_config(config, store)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def slots(config_file: ConfigOption = None):
    """
    Show the studio's daily slot grid.
    """
    try:
        config, studio = _load(config_file)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    table = Table(title=f"{config.studio_name} slot grid", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Slot", style="bold")
    table.add_column("24h", style="dim")
    for slot in studio.grid:
        table.add_row(str(slot.index), slot.label, slot.clock_label)

    console.print()
    console.print(table)
    console.print()


@app.command()
def availability(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    Show open, occupied and blocked slots for a date.
    """
    try:
        _, studio = _load(config_file)
        view = studio.availability.day_view(date)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    if view.blackout:
        console.print(Panel.fit(
            f"[bold red]Blocked:[/bold red] {view.blackout.reason}",
            title=view.date
        ))

    holders = {r.slot_index: r for r in view.reservations if r.is_active and r.slot_index is not None}
    table = Table(title=f"Availability {view.date}", show_header=True, header_style="bold cyan")
    table.add_column("Slot", style="bold")
    table.add_column("State")
    table.add_column("Client", style="dim")
    for slot in studio.grid:
        state = view.states[slot.index]
        holder = holders.get(slot.index)
        table.add_row(
            slot.label,
            f"[{STATE_STYLES[state]}]{state.value}[/{STATE_STYLES[state]}]",
            f"{holder.client_name} ({holder.status.value})" if holder else "",
        )
    console.print()
    console.print(table)

    if view.unresolved:
        console.print("\n[yellow]⚠ Reservations with unmatched times (need manual matching):[/yellow]")
        for reservation in view.unresolved:
            console.print(f"  {reservation.id}  {reservation.client_name}  {reservation.raw_time!r}")
    console.print()


@app.command()
def book(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Time label, e.g. '9:00 AM'")],
    name: Annotated[str, typer.Argument(help="Client name")],
    phone: Annotated[str, typer.Option("--phone", help="Contact number")] = "",
    package: Annotated[str, typer.Option("--package", "-p", help="Package name")] = "",
    price: Annotated[float, typer.Option("--price", help="Package price")] = 0.0,
    status: Annotated[str, typer.Option("--status", help="pending, confirmed or completed")] = "pending",
    walk_in: Annotated[bool, typer.Option("--walk-in", help="Record as a walk-in")] = False,
    config_file: ConfigOption = None,
):
    """
    Book a slot.

    Examples:

        studiobook book 2025-12-20 "9:00 AM" "Jane Cruz" --package Solo --price 299
    """
    try:
        _, studio = _load(config_file)
        reservation = studio.ledger.create(
            date,
            time,
            ReservationDetails(client_name=name, phone=phone, package=package, base_price=price),
            status=status,
            source="walk_in" if walk_in else "customer",
        )
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    console.print(f"[green]✓ Booked {reservation.reference}[/green] (id {reservation.id})")
    if reservation.is_unresolved:
        console.print(f"[yellow]⚠ Time {time!r} did not match the grid; fix it with a reschedule.[/yellow]")


@app.command()
def status(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    new_status: Annotated[str, typer.Argument(help="confirmed, completed or rejected")],
    reason: Annotated[Optional[str], typer.Option("--reason", "-r", help="Rejection reason")] = None,
    config_file: ConfigOption = None,
):
    """
    Change a reservation's status.
    """
    try:
        _, studio = _load(config_file)
        if new_status == "rejected" and not reason:
            reason = typer.prompt("Reason for rejection", default="Bookings are full")
        reservation = studio.ledger.update_status(reservation_id, new_status, reason)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    console.print(f"[green]✓ {reservation.id} is now {reservation.status.value}[/green]")


@app.command()
def reschedule(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    time: Annotated[str, typer.Argument(help="New time label, e.g. '1:00 PM'")],
    config_file: ConfigOption = None,
):
    """
    Move a reservation to another slot on the same date.
    """
    try:
        _, studio = _load(config_file)
        reservation = studio.ledger.reschedule(reservation_id, time)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    if reservation.is_unresolved:
        console.print(f"[yellow]⚠ Time {time!r} still does not match the grid.[/yellow]")
    else:
        slot = studio.grid[reservation.slot_index]
        console.print(f"[green]✓ {reservation.id} moved to {slot.label}[/green]")


@app.command()
def delete(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    config_file: ConfigOption = None,
):
    """
    Delete a reservation and free its slot.
    """
    try:
        _, studio = _load(config_file)
        reservation = studio.ledger.get(reservation_id)
        if not yes and not typer.confirm(
            f"Delete {reservation.client_name} on {reservation.date}? This opens up the time slot."
        ):
            raise typer.Abort()
        studio.ledger.delete(reservation_id)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    console.print("[green]✓ Reservation deleted.[/green]")


@app.command()
def block(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    reason: Annotated[str, typer.Argument(help="Why the studio is closed")],
    config_file: ConfigOption = None,
):
    """
    Black out a whole date.
    """
    try:
        _, studio = _load(config_file)
        blackout = studio.blackouts.block(date, reason)
        existing = [r for r in studio.ledger.list_for_date(blackout.date) if r.is_active]
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    console.print(f"[green]✓ {blackout.date} blocked:[/green] {blackout.reason}")
    if existing:
        console.print(f"[yellow]⚠ {len(existing)} existing reservation(s) on this date were kept:[/yellow]")
        for reservation in existing:
            console.print(f"  {reservation.id}  {reservation.client_name}  {reservation.raw_time}")


@app.command()
def unblock(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    Reopen a blacked-out date.
    """
    try:
        _, studio = _load(config_file)
        removed = studio.blackouts.unblock(date)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    if removed:
        console.print(f"[green]✓ {date} reopened.[/green]")
    else:
        console.print(f"[yellow]{date} was not blocked.[/yellow]")


@app.command(name="import")
def import_sheet(
    file: Annotated[Path, typer.Argument(help="Daily sheet (.xlsx or .csv)")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date the sheet describes (YYYY-MM-DD)")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt")] = False,
    config_file: ConfigOption = None,
):
    """
    Import a day's bookings from a spreadsheet.
    """
    def confirm(count: int, target_date: str) -> bool:
        return yes or typer.confirm(f"Found {count} bookings for {target_date}. Import them?")

    try:
        _, studio = _load(config_file)
        rows = read_rows(file)
        result = studio.importer.import_rows(rows, date, confirm)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    if result.cancelled:
        console.print("[yellow]Import cancelled, nothing was written.[/yellow]")
        return

    console.print(f"[green]✓ {len(result.imported)} record(s) imported.[/green]")
    if result.skipped:
        table = Table(title="Skipped rows", show_header=True, header_style="bold yellow")
        table.add_column("Row", justify="right")
        table.add_column("Client")
        table.add_column("Reason", style="dim")
        for error in result.skipped:
            table.add_row(str(error.row_number), error.client_name, error.reason)
        console.print(table)
        raise typer.Exit(2)


@app.command()
def reconcile(
    start: Annotated[str, typer.Option("--start", help="First date (YYYY-MM-DD)")],
    end: Annotated[Optional[str], typer.Option("--end", help="Last date (YYYY-MM-DD), defaults to start")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Report only, repair nothing")] = False,
    config_file: ConfigOption = None,
):
    """
    Repair drift between the ledger and the occupancy index.
    """
    try:
        _, studio = _load(config_file)
        report = studio.reconciler.reconcile(start, end or start, repair=not dry_run)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    console.print(
        f"Checked {report.reservations_checked} reservation(s) and "
        f"{report.entries_checked} occupancy entr(ies) from {report.start_date} to {report.end_date}."
    )
    if report.is_clean:
        console.print("[green]✓ Ledger and occupancy index agree.[/green]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Kind")
    table.add_column("Date")
    table.add_column("Ids", style="dim")
    table.add_column("Detail")
    table.add_column("Outcome")
    for anomaly in report.repairs:
        table.add_row(
            anomaly.kind, anomaly.date, ", ".join(anomaly.ids), anomaly.detail,
            "[green]repaired[/green]" if anomaly.repaired else "[yellow]found[/yellow]",
        )
    for anomaly in report.escalations:
        table.add_row(anomaly.kind, anomaly.date, ", ".join(anomaly.ids), anomaly.detail, "[red]needs review[/red]")
    console.print(table)


@app.command()
def ledger(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    Show the sales ledger for a date.
    """
    try:
        _, studio = _load(config_file)
        rows = studio.ledger.daily_rows(date)
        totals = studio.ledger.totals_for_date(date)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(e)

    table = Table(title=f"Sales ledger {date}", show_header=True, header_style="bold cyan")
    table.add_column("Time", style="bold")
    table.add_column("Client")
    table.add_column("Package")
    table.add_column("Amount", justify="right")
    table.add_column("Status", style="dim")
    for slot, reservation in rows:
        if reservation is None:
            table.add_row(slot.label, "-", "-", "-", "")
        else:
            table.add_row(
                slot.label,
                reservation.client_name,
                reservation.details.package,
                f"{reservation.total_due:,.2f}",
                reservation.status.value,
            )
    console.print(table)
    console.print(
        f"Amount {totals.amount:,.2f}  Add-ons {totals.add_ons:,.2f}  "
        f"Discount {totals.discount:,.2f}  [bold]Net {totals.net:,.2f}[/bold]"
    )


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]studiobook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
