import asyncio
from datetime import date, datetime, timezone

from consultspace.availability import AvailabilityCalendar, calendar_grid, grid_bounds
from consultspace.exceptions import ValidationError
from consultspace.models import AvailabilityDay, BookingDraft
import pytest

NOW = datetime(2024, 6, 5, 9, 0, tzinfo=timezone.utc)


def _days(**slots_by_day):
    return [
        AvailabilityDay(date=date(2024, 6, int(day[1:])), available_slots=slots)
        for day, slots in slots_by_day.items()
    ]


class FakeClient:
    def __init__(self, responses=None) -> None:
        self.calls: list[tuple[str, date, date]] = []
        self.responses = responses or {}

    async def get_availability(self, consultant_id, start_date, end_date):
        self.calls.append((consultant_id, start_date, end_date))
        return self.responses.get(start_date, [])


def test_grid_runs_sunday_to_saturday():
    # June 2024 starts on a Saturday and ends on a Sunday
    start, end = grid_bounds(date(2024, 6, 1))
    assert start == date(2024, 5, 26)
    assert end == date(2024, 7, 6)

    cells = calendar_grid(date(2024, 6, 1), [], today=date(2024, 6, 5))
    assert len(cells) == 42
    assert cells[0].date.weekday() == 6
    assert cells[-1].date.weekday() == 5


def test_grid_for_month_starting_on_sunday():
    start, end = grid_bounds(date(2024, 9, 1))
    assert start == date(2024, 9, 1)
    assert end == date(2024, 10, 5)


def test_cells_flag_today_past_and_availability():
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    cal.load(_days(d4=["10:00"], d10=["09:00", "10:00"], d11=[]))
    cells = {cell.date: cell for cell in cal.cells(NOW)}

    assert cells[date(2024, 6, 5)].is_today
    assert cells[date(2024, 6, 4)].is_past
    assert not cells[date(2024, 6, 4)].is_selectable
    assert cells[date(2024, 6, 10)].is_selectable
    assert not cells[date(2024, 6, 11)].has_availability
    assert not cells[date(2024, 5, 26)].is_current_month


def test_selecting_unavailable_date_is_a_no_op():
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    cal.load(_days(d10=["09:00"], d12=[]))
    assert cal.select_date(date(2024, 6, 12), NOW) is False
    assert cal.selected_date is None
    assert cal.time_slots == []
    assert not any(cell.is_selected for cell in cal.cells(NOW))

    assert cal.select_date(date(2024, 6, 10), NOW)
    cal.select_time("09:00")

    assert cal.select_date(date(2024, 6, 12), NOW) is False
    assert cal.select_date(date(2024, 6, 4), NOW) is False
    assert cal.selected_date == date(2024, 6, 10)
    assert cal.selected_time == "09:00"


def test_selecting_a_date_clears_the_time():
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    cal.load(_days(d10=["09:00"], d11=["11:00", "12:30"]))
    cal.select_date(date(2024, 6, 10), NOW)
    cal.select_time("09:00")

    cal.select_date(date(2024, 6, 11), NOW)
    assert cal.selected_time is None
    assert cal.time_slots == ["11:00", "12:30"]


def test_select_time_validation():
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    cal.load(_days(d10=["09:00"]))
    with pytest.raises(ValidationError) as excinfo:
        cal.select_time("09:00")
    assert excinfo.value.code == "DATE_REQUIRED"

    cal.select_date(date(2024, 6, 10), NOW)
    with pytest.raises(ValidationError) as excinfo:
        cal.select_time("10:00")
    assert excinfo.value.code == "SLOT_UNAVAILABLE"


def test_reload_clears_selection_no_longer_available():
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    cal.load(_days(d10=["09:00"]))
    cal.select_date(date(2024, 6, 10), NOW)

    cal.load(_days(d11=["09:00"]))
    assert cal.selected_date is None
    assert cal.selected_time is None


def test_month_navigation_returns_fetch_range():
    cal = AvailabilityCalendar("c1", month=date(2024, 12, 15))
    assert cal.fetch_range == (date(2024, 12, 1), date(2024, 12, 31))
    assert cal.next_month() == (date(2025, 1, 1), date(2025, 1, 31))
    assert cal.previous_month() == (date(2024, 12, 1), date(2024, 12, 31))


def test_leaving_the_month_clears_selection():
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    cal.load(_days(d10=["09:00"]))
    cal.select_date(date(2024, 6, 10), NOW)
    cal.select_time("09:00")

    cal.go_to_month(date(2024, 6, 20))
    assert cal.selected_date == date(2024, 6, 10)

    cal.next_month()
    assert cal.selected_date is None
    assert cal.selected_time is None
    assert cal.time_slots == []

    cal.previous_month()
    assert cal.selected_date is None


def test_apply_to_draft():
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    cal.load(_days(d10=["09:00"]))
    cal.select_date(date(2024, 6, 10), NOW)
    cal.select_time("09:00")

    draft = cal.apply_to(BookingDraft(consultant_id="c1", hourly_rate=1000))
    assert draft.session_date == date(2024, 6, 10)
    assert draft.start_time == "09:00"
    assert draft.end_time == "10:00"


@pytest.mark.asyncio
async def test_refresh_loads_displayed_month():
    client = FakeClient({date(2024, 6, 1): _days(d10=["09:00"])})
    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))

    assert await cal.refresh(client) is True
    assert client.calls == [("c1", date(2024, 6, 1), date(2024, 6, 30))]
    assert cal.is_selectable(date(2024, 6, 10), NOW)


@pytest.mark.asyncio
async def test_refresh_drops_response_after_month_change():
    release = asyncio.Event()

    class SlowClient(FakeClient):
        async def get_availability(self, consultant_id, start_date, end_date):
            await release.wait()
            return _days(d10=["09:00"])

    cal = AvailabilityCalendar("c1", month=date(2024, 6, 1))
    pending = asyncio.create_task(cal.refresh(SlowClient()))
    await asyncio.sleep(0)
    cal.next_month()
    release.set()

    assert await pending is False
    assert cal.month == date(2024, 7, 1)
    assert not cal.is_selectable(date(2024, 6, 10), NOW)
