from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

from consultspace.config import Settings
from consultspace.enums import BookingAction, BookingStatus, SortField
from consultspace.exceptions import (
    AlreadyReviewed,
    ApiError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from consultspace.facade import BookingsFacade, InFlightGuard
from consultspace.models import BookingDraft, BookingPage, Pagination
import pytest

from factories import make_booking


class FakeClient:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.calls: list[tuple[str, tuple]] = []
        self.error: Exception | None = None
        self.pages: list[BookingPage] = []

    def _next_page(self) -> BookingPage:
        if self.pages:
            return self.pages.pop(0)
        return BookingPage(bookings=[make_booking()], pagination=Pagination(total_count=1))

    async def list_my_bookings(self, filters):
        self.calls.append(("list", (filters.to_params(),)))
        return self._next_page()

    async def update_booking_status(self, booking_id, status, reason=None):
        self.calls.append(("status", (booking_id, status, reason)))
        if self.error:
            raise self.error
        return {"success": True}

    async def add_review(self, booking_id, rating, review=None):
        self.calls.append(("review", (booking_id, rating, review)))
        if self.error:
            raise self.error
        return {"success": True}

    async def reschedule_booking(self, booking_id, session_date, start_time):
        self.calls.append(("reschedule", (booking_id, session_date, start_time)))
        if self.error:
            raise self.error
        return {"success": True}

    async def create_booking(self, draft):
        self.calls.append(("create", (draft.consultant_id,)))
        return make_booking(status="pending", payment_status="pending")


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def facade(client, seeker_session) -> BookingsFacade:
    return BookingsFacade(client, seeker_session)


def test_filter_change_resets_page(facade):
    facade.go_to_page(3)
    assert facade.filters.page == 3

    facade.update_filters(status="confirmed")
    assert facade.filters.page == 1
    assert facade.filters.status == BookingStatus.CONFIRMED

    facade.go_to_page(2)
    facade.update_filters(sort_by=SortField.AMOUNT, page=5)
    assert facade.filters.page == 1


def test_update_filters_validation(facade):
    with pytest.raises(ValidationError):
        facade.update_filters(colour="red")
    with pytest.raises(ValidationError) as excinfo:
        facade.update_filters(limit=0)
    assert excinfo.value.code == "INVALID_FILTER"
    assert facade.filters.limit == 10


@pytest.mark.asyncio
async def test_list_uses_current_filters(facade, client):
    facade.update_filters(status="pending", search="rao")
    page = await facade.list()

    assert facade.page is page
    assert client.calls[0][1][0]["status"] == "pending"
    assert client.calls[0][1][0]["search"] == "rao"


@pytest.mark.asyncio
async def test_successful_mutation_reloads_list(facade, client):
    await facade.cancel("b1", "Conflict")

    assert [name for name, _ in client.calls] == ["status", "list"]
    assert client.calls[0][1] == ("b1", BookingStatus.CANCELLED, "Conflict")
    assert facade.page is not None


@pytest.mark.asyncio
async def test_rejected_mutation_passes_server_message(facade, client):
    client.error = ApiError(400, "Cannot cancel within 24 hours of the session")

    with pytest.raises(InvalidTransition) as excinfo:
        await facade.complete("b1")

    assert excinfo.value.message == "Cannot cancel within 24 hours of the session"
    assert [name for name, _ in client.calls] == ["status"]
    assert facade.page is None
    assert not facade.is_busy("b1")


@pytest.mark.asyncio
async def test_other_errors_propagate(facade, client):
    client.error = NotFoundError("Booking not found")
    with pytest.raises(NotFoundError):
        await facade.confirm("b1")

    client.error = ApiError(500, "Internal server error")
    with pytest.raises(ApiError):
        await facade.mark_no_show("b1")


@pytest.mark.asyncio
async def test_reject_defaults_decline_reason(consultant_session, client):
    facade = BookingsFacade(client, consultant_session)
    await facade.reject("b1")
    assert client.calls[0][1] == ("b1", BookingStatus.CANCELLED, "Declined by consultant")


@pytest.mark.asyncio
async def test_duplicate_mutation_is_ignored_while_in_flight(seeker_session):
    release = asyncio.Event()

    class SlowClient(FakeClient):
        async def update_booking_status(self, booking_id, status, reason=None):
            self.calls.append(("status", (booking_id, status, reason)))
            await release.wait()
            return {"success": True}

    slow = SlowClient()
    facade = BookingsFacade(slow, seeker_session)
    first = asyncio.create_task(facade.cancel("b1"))
    await asyncio.sleep(0)

    assert facade.is_busy("b1")
    assert await facade.cancel("b1") is None
    release.set()
    await first

    assert [name for name, _ in slow.calls] == ["status", "list"]
    assert not facade.is_busy("b1")


@pytest.mark.asyncio
async def test_stale_list_response_is_discarded(seeker_session):
    release = asyncio.Event()

    class SlowClient(FakeClient):
        async def list_my_bookings(self, filters):
            await release.wait()
            return await super().list_my_bookings(filters)

    facade = BookingsFacade(SlowClient(), seeker_session)
    pending = asyncio.create_task(facade.list())
    await asyncio.sleep(0)
    facade.invalidate()
    release.set()

    assert await pending is None
    assert facade.page is None


@pytest.mark.asyncio
async def test_review_once(facade, client):
    await facade.add_review("b1", 5, "Great session")
    assert client.calls[0] == ("review", ("b1", 5, "Great session"))

    client.error = ApiError(400, "Booking has already been reviewed")
    with pytest.raises(AlreadyReviewed):
        await facade.add_review("b1", 4)


@pytest.mark.asyncio
async def test_review_rating_checked_before_network(facade, client):
    with pytest.raises(ValidationError):
        await facade.add_review("b1", 0)
    assert client.calls == []


@pytest.mark.asyncio
async def test_reschedule(facade, client):
    with pytest.raises(ValidationError) as excinfo:
        await facade.reschedule("b1", None, "10:00")
    assert excinfo.value.code == "SELECTION_REQUIRED"
    with pytest.raises(ValidationError):
        await facade.reschedule("b1", date(2024, 6, 12), "25:00")

    await facade.reschedule("b1", date(2024, 6, 12), "10:00")
    assert client.calls[0] == ("reschedule", ("b1", date(2024, 6, 12), "10:00"))


@pytest.mark.asyncio
async def test_create_validates_selection_first(facade, client):
    with pytest.raises(ValidationError):
        await facade.create(BookingDraft(consultant_id="c1", hourly_rate=1200))
    assert client.calls == []

    draft = BookingDraft(
        consultant_id="c1", hourly_rate=1200, session_date=date(2024, 6, 10), start_time="14:00"
    )
    booking = await facade.create(draft)
    assert booking.status == BookingStatus.PENDING


def test_in_flight_guard():
    guard = InFlightGuard()
    assert guard.acquire("b1")
    assert not guard.acquire("b1")
    guard.release("b1")
    assert not guard.is_busy("b1")


@pytest.mark.asyncio
async def test_read_pass_throughs(facade, client):
    async def get_upcoming_bookings(limit=5):
        client.calls.append(("upcoming", (limit,)))
        return [make_booking()]

    async def get_availability(consultant_id, start_date, end_date):
        client.calls.append(("availability", (consultant_id, start_date, end_date)))
        return []

    client.get_upcoming_bookings = get_upcoming_bookings
    client.get_availability = get_availability

    assert [b.id for b in await facade.upcoming()] == ["b1"]
    assert await facade.get_availability("c1", date(2024, 6, 1), date(2024, 6, 30)) == []
    assert client.calls == [
        ("upcoming", (5,)),
        ("availability", ("c1", date(2024, 6, 1), date(2024, 6, 30))),
    ]


def test_actions_for_uses_session_role(facade):
    booking = make_booking(status="completed")
    assert facade.actions_for(booking) == {BookingAction.REVIEW}


@pytest.mark.asyncio
async def test_mutation_finishing_after_invalidate_skips_reload(seeker_session):
    release = asyncio.Event()

    class SlowClient(FakeClient):
        async def update_booking_status(self, booking_id, status, reason=None):
            self.calls.append(("status", (booking_id, status, reason)))
            await release.wait()
            return {"success": True}

    slow = SlowClient()
    facade = BookingsFacade(slow, seeker_session)
    pending = asyncio.create_task(facade.cancel("b1", "Conflict"))
    await asyncio.sleep(0)
    facade.invalidate()
    release.set()

    assert await pending is None
    assert facade.page is None
    assert [name for name, _ in slow.calls] == ["status"]
    assert not facade.is_busy("b1")


@pytest.mark.asyncio
async def test_review_finishing_after_invalidate_skips_reload(seeker_session):
    release = asyncio.Event()

    class SlowClient(FakeClient):
        async def add_review(self, booking_id, rating, review=None):
            self.calls.append(("review", (booking_id, rating, review)))
            await release.wait()
            return {"success": True}

    slow = SlowClient()
    facade = BookingsFacade(slow, seeker_session)
    pending = asyncio.create_task(facade.add_review("b1", 5))
    await asyncio.sleep(0)
    facade.invalidate()
    release.set()

    assert await pending is None
    assert [name for name, _ in slow.calls] == ["review"]


def test_actions_for_uses_configured_cutoff(seeker_session):
    booking = make_booking()
    # 42 hours before the 14:00 UTC session
    now = datetime(2024, 6, 8, 20, 0, tzinfo=timezone.utc)

    default = BookingsFacade(FakeClient(), seeker_session)
    strict = BookingsFacade(FakeClient(Settings(cancellation_cutoff_hours=48)), seeker_session)

    assert BookingAction.CANCEL in default.actions_for(booking, now)
    assert BookingAction.CANCEL not in strict.actions_for(booking, now)
