"""
Operator commands for the Consultant Space booking core.

Usage:
    consultspace calendar CONSULTANT_ID --month 2024-06    # Show bookable days
    consultspace bookings --status confirmed --page 2       # List bookings
    consultspace status BOOKING_ID cancelled --reason "Conflict"
    consultspace review BOOKING_ID 5 --text "Great session"

Authenticated commands use ``CONSULTSPACE_API_TOKEN``.
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import date, datetime
import logging
import sys
from typing import Awaitable, Callable, Sequence, TypeVar

from .availability import AvailabilityCalendar
from .client import BookingApiClient
from .config import Settings, get_settings
from .console import echo_error, echo_info, echo_warn, format_booking_row, format_calendar
from .enums import BookingStatus, SortField, SortOrder, UserRole
from .exceptions import ConsultSpaceError
from .facade import BookingsFacade
from .session import SessionContext

T = TypeVar("T")

logger = logging.getLogger(__name__)

_ROLES = [role.value for role in UserRole]


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _run(settings: Settings, work: Callable[[BookingApiClient], Awaitable[T]]) -> T:
    async def _main() -> T:
        async with BookingApiClient(settings) as client:
            return await work(client)

    return asyncio.run(_main())


def _cli_session(settings: Settings, role: str) -> SessionContext:
    return SessionContext(token=settings.api_token, user_id="cli", role=UserRole(role))


def _month(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}")


def _day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def _rating(value: str) -> int:
    rating = int(value)
    if not 1 <= rating <= 5:
        raise argparse.ArgumentTypeError("rating must be between 1 and 5")
    return rating


def show_calendar(settings: Settings, args: argparse.Namespace) -> None:
    cal = AvailabilityCalendar(args.consultant_id, tz_name=settings.timezone, month=args.month)

    async def _work(client: BookingApiClient) -> bool:
        return await cal.refresh(client)

    _run(settings, _work)
    if args.select and not cal.select_date(args.select):
        echo_error(f"{args.select.isoformat()} is not bookable")
    echo_info(cal.month.strftime("%B %Y"))
    echo_info(format_calendar(cal.cells()))
    if cal.selected_date is not None:
        echo_info(f"Slots on {cal.selected_date.isoformat()}: {', '.join(cal.time_slots)}")


def list_bookings(settings: Settings, args: argparse.Namespace) -> None:
    async def _work(client: BookingApiClient):
        facade = BookingsFacade(client, _cli_session(settings, args.role))
        facade.update_filters(
            status=args.status,
            search=args.search,
            limit=args.limit,
            sort_by=args.sort_by,
            sort_order=args.sort_order,
        )
        facade.go_to_page(args.page)
        return await facade.list()

    result = _run(settings, _work)
    if result is None:
        return
    for booking in result.bookings:
        echo_info(format_booking_row(booking, settings.currency))
    p = result.pagination
    echo_info(f"Page {p.current_page}/{p.total_pages} ({p.total_count} bookings)")


def change_status(settings: Settings, args: argparse.Namespace) -> None:
    async def _work(client: BookingApiClient):
        facade = BookingsFacade(client, _cli_session(settings, args.role))
        return await facade.mutate_status(args.booking_id, args.new_status, args.reason)

    if _run(settings, _work) is None:
        echo_warn(f"Booking {args.booking_id} was not updated")
        return
    echo_info(f"Booking {args.booking_id} -> {args.new_status}")


def add_review(settings: Settings, args: argparse.Namespace) -> None:
    async def _work(client: BookingApiClient):
        facade = BookingsFacade(client, _cli_session(settings, UserRole.SEEKER.value))
        return await facade.add_review(args.booking_id, args.rating, args.text)

    if _run(settings, _work) is None:
        echo_warn(f"Review for {args.booking_id} was not recorded")
        return
    echo_info(f"Review recorded for {args.booking_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="consultspace",
        description="Consultant Space booking tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    calendar_parser = subparsers.add_parser("calendar", help="Show a consultant's bookable month")
    calendar_parser.add_argument("consultant_id")
    calendar_parser.add_argument("--month", type=_month, default=None, help="YYYY-MM (default: this month)")
    calendar_parser.add_argument("--select", type=_day, default=None, help="YYYY-MM-DD to select")
    calendar_parser.set_defaults(handler=show_calendar)

    bookings_parser = subparsers.add_parser("bookings", help="List bookings for the configured credential")
    bookings_parser.add_argument("--role", choices=_ROLES, default=UserRole.SEEKER.value)
    bookings_parser.add_argument("--status", choices=[s.value for s in BookingStatus], default=None)
    bookings_parser.add_argument("--search", default="")
    bookings_parser.add_argument("--page", type=int, default=1)
    bookings_parser.add_argument("--limit", type=int, default=10)
    bookings_parser.add_argument(
        "--sort-by", choices=[f.value for f in SortField], default=SortField.SESSION_DATE.value
    )
    bookings_parser.add_argument(
        "--sort-order", choices=[o.value for o in SortOrder], default=SortOrder.DESC.value
    )
    bookings_parser.set_defaults(handler=list_bookings)

    status_parser = subparsers.add_parser("status", help="Change a booking's status")
    status_parser.add_argument("booking_id")
    status_parser.add_argument("new_status", choices=[s.value for s in BookingStatus])
    status_parser.add_argument("--reason", default=None)
    status_parser.add_argument("--role", choices=_ROLES, default=UserRole.CONSULTANT.value)
    status_parser.set_defaults(handler=change_status)

    review_parser = subparsers.add_parser("review", help="Rate a completed booking (once)")
    review_parser.add_argument("booking_id")
    review_parser.add_argument("rating", type=_rating)
    review_parser.add_argument("--text", default=None)
    review_parser.set_defaults(handler=add_review)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for the ``consultspace`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    _configure_logging(settings)
    try:
        args.handler(settings, args)
    except ConsultSpaceError as exc:
        logger.debug("%s failed: %s", args.command, exc.code)
        echo_error(exc.user_message)
        sys.exit(1)


if __name__ == "__main__":
    main()
