"""Shared helpers for coloured status tags in CLI output."""
from __future__ import annotations

import click

from .availability import CalendarCell
from .enums import BookingStatus
from .models import Booking
from .money import format_currency

_STATUS_COLOR_MAP = {
    BookingStatus.PENDING: "yellow",
    BookingStatus.CONFIRMED: "green",
    BookingStatus.COMPLETED: "green",
    BookingStatus.CANCELLED: "red",
    BookingStatus.NO_SHOW: "white",
    BookingStatus.RESCHEDULED: "yellow",
}

__all__ = [
    "format_status_tag",
    "format_booking_row",
    "format_calendar",
    "echo_info",
    "echo_warn",
    "echo_error",
]


def format_status_tag(status: BookingStatus | str) -> str:
    try:
        status = BookingStatus(status)
    except ValueError:
        return f"[{str(status).upper()}]"
    tag = f"[{status.label.upper()}]"
    return click.style(tag, fg=_STATUS_COLOR_MAP[status])


def format_booking_row(booking: Booking, currency: str = "INR") -> str:
    return (
        f"{booking.display_id or booking.id}  {booking.session_date.isoformat()} "
        f"{booking.start_time}-{booking.end_time}  "
        f"{format_currency(booking.amount, currency)}  "
        f"{format_status_tag(booking.status)} payment={booking.payment_status.label}"
    )


def format_calendar(cells: list[CalendarCell]) -> str:
    """Seven-column month grid; ``*`` marks bookable days, ``[..]`` the selection."""
    lines = [" Su  Mo  Tu  We  Th  Fr  Sa"]
    for offset in range(0, len(cells), 7):
        row = []
        for cell in cells[offset : offset + 7]:
            if not cell.is_current_month:
                row.append("   ")
                continue
            label = f"{cell.day:2d}{'*' if cell.is_selectable else ' '}"
            if cell.is_selected:
                label = click.style(label, bold=True, underline=True)
            elif cell.is_today:
                label = click.style(label, fg="cyan")
            elif cell.is_past:
                label = click.style(label, dim=True)
            row.append(label)
        lines.append(" " + " ".join(row))
    return "\n".join(lines)


def echo_info(message: str) -> None:
    click.echo(message)


def echo_warn(message: str) -> None:
    click.echo(f"{click.style('[WARN]', fg='yellow')} {message}", err=True)


def echo_error(message: str) -> None:
    click.echo(f"{click.style('[ERROR]', fg='red')} {message}", err=True)
