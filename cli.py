#!/usr/bin/env python3
"""
Terminal front end for the booking dashboard.

Usage:
    parking-dashboard login admin@example.com
    parking-dashboard bookings --page 2
    parking-dashboard complete 12
    parking-dashboard receipt 12 --out ./receipts
"""

from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from dashboard_client import (
    AVATAR_OPTIONS,
    ApiError,
    BookingDashboard,
    ClientSession,
    ParkingApi,
    ProfileEditor,
)
from receipts import format_date_ddmmyyyy

app = typer.Typer(help="Parking booking dashboard")
console = Console()

STATUS_COLORS = {
    "Completed": "green",
    "Overstayed": "red",
    "Active": "blue",
}

ACTION_LABELS = {
    "mark_completed": "Mark Completed",
    "mark_fine_paid": "Mark Fine Paid",
    "edit": "Edit",
    "delete": "Delete",
    "review": "Rate & Review",
    "download": "Download",
}


def open_dashboard():
    session = ClientSession.load()
    dashboard = BookingDashboard(ParkingApi(), session)
    if not session.token:
        console.print("[red]Authentication required[/red] - run [bold]login[/bold] first")
        raise typer.Exit(code=1)
    dashboard.fetch_bookings()
    if dashboard.error:
        console.print(f"[red]{dashboard.error}[/red]")
        raise typer.Exit(code=1)
    return dashboard


def slot_details(booking: dict) -> str:
    slot = booking.get("parkingSlot") or {}
    level = slot.get("parkingLevel") or {}
    lot = level.get("parkingLot") or {}
    if not lot.get("name"):
        return "N/A"
    return (
        f"Slot No: {slot.get('slotNumber') or 'N/A'}\n"
        f"Level: {level.get('name')}\n"
        f"Lot: {lot.get('name')}\n"
        f"Address: {lot.get('address') or ''}"
    )


def status_cell(booking: dict) -> str:
    status = booking.get("status", "")
    color = STATUS_COLORS.get(status, "yellow")
    lines = [f"[{color}]{status}[/{color}]"]
    review = booking.get("review")
    if status == "Completed" and review:
        lines.append(f"{'★' * review['rating']} {review['rating']}/5")
        if review.get("comment"):
            lines.append(f'"{review["comment"]}"')
    if status == "Overstayed":
        lines.append(f"Overstay: {booking.get('overstayDays')} day(s)")
        lines.append(f"Fine: $ {booking.get('fineAmount')} (${booking.get('dailyRate')}/day)")
    return "\n".join(lines)


def build_bookings_table(dashboard: BookingDashboard) -> Table:
    table = Table(title="Booking Management", box=box.ROUNDED, show_lines=True)
    for column in ("ID", "Slot Details", "Vehicle", "From", "To", "Status", "Actions"):
        table.add_column(column)

    for booking in dashboard.current_items():
        actions = [
            ACTION_LABELS[name] if enabled else f"[dim]{ACTION_LABELS[name]}[/dim]"
            for name, enabled in dashboard.visible_actions(booking).items()
        ]
        table.add_row(
            str(booking["id"]),
            slot_details(booking),
            booking["vehicleNumber"],
            format_date_ddmmyyyy(booking["fromDate"]),
            format_date_ddmmyyyy(booking["toDate"]),
            status_cell(booking),
            ", ".join(actions),
        )

    if dashboard.shows_pagination:
        table.caption = f"Page {dashboard.current_page} of {dashboard.total_pages}"
    return table


def report(ok: bool, message: str, error: str):
    if ok:
        console.print(f"[green]✓[/green] {message}")
    else:
        console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(code=1)


@app.command()
def login(email: str, password: str = typer.Option(..., prompt=True, hide_input=True)):
    """Sign in and remember the session."""
    try:
        session = ParkingApi().login(email, password)
    except ApiError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1)
    session.save()
    console.print(f"[green]✓[/green] Signed in as {session.user.get('firstName')} ({session.role})")


@app.command()
def logout():
    """Forget the stored session."""
    session = ClientSession.load()
    try:
        ParkingApi().logout(session)
    except ApiError as e:
        console.print(f"[yellow]Server logout failed: {e.message}[/yellow]")
    session.save()
    console.print("[green]✓[/green] Signed out")


@app.command()
def bookings(page: int = typer.Option(1, help="Page to show")):
    """List bookings, five per page."""
    dashboard = open_dashboard()
    if not dashboard.bookings:
        console.print("No bookings available")
        return
    if not dashboard.go_to(page):
        console.print(f"[red]Page {page} does not exist (1-{dashboard.total_pages})[/red]")
        raise typer.Exit(code=1)
    console.print(build_bookings_table(dashboard))


@app.command()
def complete(booking_id: int):
    """Mark a booking as completed (admin/moderator)."""
    dashboard = open_dashboard()
    report(dashboard.mark_completed(booking_id), f"Booking {booking_id} completed", dashboard.error)


@app.command("pay-fine")
def pay_fine(booking_id: int):
    """Mark an overstay fine as paid (admin/moderator)."""
    dashboard = open_dashboard()
    report(dashboard.mark_fine_paid(booking_id), f"Fine for booking {booking_id} paid", dashboard.error)


@app.command()
def edit(
    booking_id: int,
    vehicle: Optional[str] = typer.Option(None, help="Vehicle number"),
    from_date: Optional[str] = typer.Option(None, "--from", help="YYYY-MM-DD"),
    to_date: Optional[str] = typer.Option(None, "--to", help="YYYY-MM-DD"),
):
    """Change vehicle number or dates of a booking."""
    dashboard = open_dashboard()
    booking = dashboard.find(booking_id)
    if not booking:
        console.print(f"[red]Booking {booking_id} not found[/red]")
        raise typer.Exit(code=1)
    ok = dashboard.update_booking(
        booking_id,
        vehicle or booking["vehicleNumber"],
        from_date or booking["fromDate"],
        to_date or booking["toDate"],
    )
    report(ok, f"Booking {booking_id} updated", dashboard.edit_error)


@app.command()
def delete(booking_id: int, yes: bool = typer.Option(False, "--yes", "-y")):
    """Delete a booking (admin)."""
    if not yes and not typer.confirm("Are you sure you want to delete this booking?"):
        raise typer.Abort()
    dashboard = open_dashboard()
    report(dashboard.delete_booking(booking_id), f"Booking {booking_id} deleted", dashboard.error)


@app.command()
def review(
    booking_id: int,
    rating: int = typer.Option(..., min=1, max=5),
    comment: str = typer.Option("", help="Optional review text"),
):
    """Rate a completed booking."""
    dashboard = open_dashboard()
    report(dashboard.submit_review(booking_id, rating, comment), "Review submitted", dashboard.review_error)


@app.command()
def receipt(booking_id: int, out: str = typer.Option(".", help="Directory for the PDF")):
    """Save the PDF receipt of a booking."""
    dashboard = open_dashboard()
    path = dashboard.download_receipt(booking_id, out)
    report(path is not None, f"Receipt saved to {path}", f"Booking {booking_id} not found")


@app.command()
def profile(
    first_name: Optional[str] = typer.Option(None),
    last_name: Optional[str] = typer.Option(None),
    contact: Optional[str] = typer.Option(None),
    email: Optional[str] = typer.Option(None),
    vehicle: Optional[str] = typer.Option(None),
    avatar: Optional[str] = typer.Option(None, help=f"One of: {', '.join(AVATAR_OPTIONS)}"),
):
    """Show the profile, or update it when any option is given."""
    session = ClientSession.load()
    editor = ProfileEditor(ParkingApi(), session)
    changes = {
        "firstName": first_name,
        "lastName": last_name,
        "contact": contact,
        "email": email,
        "vehicle": vehicle,
        "avatar": avatar,
    }
    changes = {k: v for k, v in changes.items() if v is not None}

    if changes:
        editor.start_editing()
        try:
            for name, value in changes.items():
                editor.set_field(name, value)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1)
        report(editor.save(), "Profile updated successfully!", editor.error)
        session.save()

    table = Table(title="Profile", box=box.SIMPLE, show_header=False)
    for name in ProfileEditor.FIELDS:
        table.add_row(name, str(editor.details.get(name) or ""))
    table.add_row("role", session.role)
    console.print(table)


if __name__ == "__main__":
    app()
