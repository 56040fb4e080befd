"""
Date and time handling for bookings.

Rules:
- A session is a calendar day plus an ``HH:MM`` wall-clock start.
- Both are combined exactly once into a ``LocalDateTime`` in one known zone.
- Deadlines and comparisons with "now" happen in UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
import re

import pytz

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: str) -> time:
    """Parse ``"14:30"`` (or ``"14:30:00"``) into a ``time``."""
    match = _HHMM_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
    return time(hour, minute)


def format_hhmm(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def time_to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def add_minutes(start: str, minutes: int) -> str:
    """
    Wall-clock addition on ``HH:MM`` strings.

    Wraps past midnight: ``add_minutes("23:30", 60) == "00:30"``.
    """
    total = (time_to_minutes(parse_hhmm(start)) + minutes) % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def get_timezone(tz_name: str | None) -> pytz.BaseTzInfo:
    return pytz.timezone(tz_name or "UTC")


def ensure_aware(dt: datetime) -> datetime:
    """Naive datetimes are assumed to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def today_in(tz_name: str, now: datetime | None = None) -> date:
    """Today's date in ``tz_name``; ``now`` defaults to the current instant."""
    current = ensure_aware(now) if now is not None else datetime.now(timezone.utc)
    return current.astimezone(get_timezone(tz_name)).date()


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    first_of_next = (value.replace(day=28) + timedelta(days=4)).replace(day=1)
    return first_of_next - timedelta(days=1)


def shift_month(value: date, months: int) -> date:
    """First day of the month ``months`` away from ``value``'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def split_session_datetime(value: datetime, tz_name: str) -> tuple[date, time | None]:
    """
    Calendar day and local clock of a datetime ``sessionDate``.

    Aware values are converted to ``tz_name`` before the split; naive values
    are already wall-clock. A local midnight carries no clock.
    """
    if value.tzinfo is not None:
        value = value.astimezone(get_timezone(tz_name))
    carried = value.time().replace(microsecond=0)
    return value.date(), (None if carried == time(0, 0) else carried)


@dataclass(frozen=True)
class LocalDateTime:
    """A session start: calendar date + wall-clock time in a named zone."""

    day: date
    clock: time
    tz_name: str = "UTC"

    @classmethod
    def from_session(
        cls,
        session_date: date | datetime,
        start_time: str,
        tz_name: str = "UTC",
    ) -> "LocalDateTime":
        """
        Combine a session date with its ``HH:MM`` start.

        A ``datetime`` session date is read in ``tz_name`` first; it keeps
        that local time-of-day unless it is midnight, in which case
        ``start_time`` wins.
        """
        if isinstance(session_date, datetime):
            session_date, carried = split_session_datetime(session_date, tz_name)
            if carried is not None:
                return cls(session_date, carried, tz_name)
        return cls(session_date, parse_hhmm(start_time), tz_name)

    def to_local(self) -> datetime:
        tz = get_timezone(self.tz_name)
        naive = datetime.combine(self.day, self.clock)
        try:
            return tz.localize(naive, is_dst=None)
        except pytz.exceptions.AmbiguousTimeError:
            # Fall back: first occurrence
            return tz.localize(naive, is_dst=True)
        except pytz.exceptions.NonExistentTimeError:
            raise ValueError(
                f"The time {format_hhmm(self.clock)} does not exist on "
                f"{self.day} in {self.tz_name} due to Daylight Saving Time."
            )

    def to_utc(self) -> datetime:
        return self.to_local().astimezone(timezone.utc)

    def minus(self, delta: timedelta) -> datetime:
        """UTC instant ``delta`` before this local time."""
        return self.to_utc() - delta

    def __str__(self) -> str:
        return f"{self.day.isoformat()} {format_hhmm(self.clock)} {self.tz_name}"
