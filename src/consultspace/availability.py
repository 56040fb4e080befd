"""
Bookable calendar built from a consultant's per-day open slots.

The grid always covers whole weeks: from the Sunday on or before the first
of the month through the Saturday on or after its last day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import TYPE_CHECKING, Iterable

from .exceptions import ValidationError
from .models import AvailabilityDay, BookingDraft
from .timeutils import month_end, month_start, shift_month, today_in

if TYPE_CHECKING:
    from .client import BookingApiClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarCell:
    date: date
    is_current_month: bool
    is_today: bool
    is_selected: bool
    has_availability: bool
    is_past: bool

    @property
    def day(self) -> int:
        return self.date.day

    @property
    def is_selectable(self) -> bool:
        return not self.is_past and self.has_availability


def month_range(month: date) -> tuple[date, date]:
    """First and last date of ``month``: the availability fetch range."""
    return month_start(month), month_end(month)


def grid_bounds(month: date) -> tuple[date, date]:
    first, last = month_range(month)
    # date.weekday(): Monday=0 .. Sunday=6
    start = first - timedelta(days=(first.weekday() + 1) % 7)
    end = last + timedelta(days=(5 - last.weekday()) % 7)
    return start, end


def _index(availability: Iterable[AvailabilityDay]) -> dict[date, AvailabilityDay]:
    return {day.date: day for day in availability}


def calendar_grid(
    month: date,
    availability: Iterable[AvailabilityDay],
    today: date,
    selected: date | None = None,
) -> list[CalendarCell]:
    by_date = _index(availability)
    start, end = grid_bounds(month)
    cells = []
    current = start
    while current <= end:
        day = by_date.get(current)
        cells.append(
            CalendarCell(
                date=current,
                is_current_month=(current.year, current.month) == (month.year, month.month),
                is_today=current == today,
                is_selected=current == selected,
                has_availability=bool(day and day.available_slots),
                is_past=current < today,
            )
        )
        current += timedelta(days=1)
    return cells


class AvailabilityCalendar:
    """
    Month cursor, loaded availability and the seeker's date/time selection.

    Selecting a date always clears the chosen time. Loading a new
    availability set clears a selected date that is no longer bookable.
    """

    def __init__(
        self,
        consultant_id: str,
        *,
        tz_name: str = "UTC",
        month: date | None = None,
    ) -> None:
        self.consultant_id = consultant_id
        self.tz_name = tz_name
        self.month = month_start(month or today_in(tz_name))
        self._days: dict[date, AvailabilityDay] = {}
        self.selected_date: date | None = None
        self.selected_time: str | None = None
        self._generation = 0

    @property
    def fetch_range(self) -> tuple[date, date]:
        return month_range(self.month)

    def load(self, availability: Iterable[AvailabilityDay]) -> None:
        self._days = _index(availability)
        if self.selected_date is not None and not self._has_slots(self.selected_date):
            logger.info(
                "Clearing selection %s for consultant %s: no longer available",
                self.selected_date,
                self.consultant_id,
            )
            self.clear_selection()

    def go_to_month(self, month: date) -> tuple[date, date]:
        """Move the cursor; returns the range to fetch for the new month."""
        self.month = month_start(month)
        self._days = {}
        if self.selected_date is not None and month_start(self.selected_date) != self.month:
            self.clear_selection()
        self._generation += 1
        return self.fetch_range

    def next_month(self) -> tuple[date, date]:
        return self.go_to_month(shift_month(self.month, 1))

    def previous_month(self) -> tuple[date, date]:
        return self.go_to_month(shift_month(self.month, -1))

    def cells(self, now: datetime | None = None) -> list[CalendarCell]:
        return calendar_grid(
            self.month,
            self._days.values(),
            today=today_in(self.tz_name, now),
            selected=self.selected_date,
        )

    def _has_slots(self, day: date) -> bool:
        entry = self._days.get(day)
        return bool(entry and entry.available_slots)

    def is_selectable(self, day: date, now: datetime | None = None) -> bool:
        return day >= today_in(self.tz_name, now) and self._has_slots(day)

    def select_date(self, day: date, now: datetime | None = None) -> bool:
        """Select ``day`` if bookable; otherwise leave everything untouched."""
        if not self.is_selectable(day, now):
            return False
        self.selected_date = day
        self.selected_time = None
        return True

    @property
    def time_slots(self) -> list[str]:
        if self.selected_date is None:
            return []
        entry = self._days.get(self.selected_date)
        return list(entry.available_slots) if entry else []

    def select_time(self, slot: str) -> None:
        if self.selected_date is None:
            raise ValidationError("Select a date before choosing a time", code="DATE_REQUIRED")
        if slot not in self.time_slots:
            raise ValidationError(
                f"{slot} is not available on {self.selected_date.isoformat()}",
                code="SLOT_UNAVAILABLE",
            )
        self.selected_time = slot

    def clear_selection(self) -> None:
        self.selected_date = None
        self.selected_time = None

    def apply_to(self, draft: BookingDraft) -> BookingDraft:
        """Copy the current selection onto a booking draft."""
        return draft.model_copy(
            update={"session_date": self.selected_date, "start_time": self.selected_time}
        )

    async def refresh(self, client: "BookingApiClient") -> bool:
        """
        Fetch availability for the displayed month and load it.

        Returns ``False`` when the month changed while the request was in
        flight; the late response is dropped.
        """
        self._generation += 1
        generation = self._generation
        month = self.month
        start, end = self.fetch_range
        days = await client.get_availability(self.consultant_id, start, end)
        if generation != self._generation or month != self.month:
            logger.info(
                "Discarding stale availability for %s (%s..%s)", self.consultant_id, start, end
            )
            return False
        self.load(days)
        return True
