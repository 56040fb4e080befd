"""
Query/filter facade over the booking API for booking-management screens.

The facade never patches a booking in place: after every confirmed
mutation it reloads the current list, and after a failed one it leaves the
list untouched. A mutation that lands after ``invalidate`` reloads nothing.
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .client import BookingApiClient
from .eligibility import EligibilityPolicy
from .enums import BookingAction, BookingStatus
from .exceptions import AlreadyReviewed, ApiError, InvalidTransition, ValidationError
from .models import AvailabilityDay, Booking, BookingDraft, BookingFilters, BookingPage
from .session import SessionContext
from .state_machine import CONSULTANT_DECLINE_REASON, validate_rating
from .timeutils import parse_hhmm

logger = logging.getLogger(__name__)

T = TypeVar("T")

_REJECTION_STATUSES = {400, 409, 422}


class InFlightGuard:
    """At most one mutation in flight per booking from this screen."""

    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._active

    def acquire(self, key: str) -> bool:
        if key in self._active:
            return False
        self._active.add(key)
        return True

    def release(self, key: str) -> None:
        self._active.discard(key)


class BookingsFacade:
    """List, filter, paginate and mutate bookings for one signed-in party."""

    def __init__(
        self,
        client: BookingApiClient,
        session: SessionContext,
        policy: EligibilityPolicy | None = None,
        filters: BookingFilters | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.policy = policy or EligibilityPolicy(client.settings.cancellation_cutoff_hours)
        self.guard = InFlightGuard()
        self._filters = filters or BookingFilters()
        self._page: BookingPage | None = None
        self._generation = 0
        self._epoch = 0

    @property
    def filters(self) -> BookingFilters:
        return self._filters

    @property
    def page(self) -> BookingPage | None:
        """Last applied list response."""
        return self._page

    def update_filters(self, **changes: Any) -> BookingFilters:
        """Change filters; any change other than ``page`` alone goes back to page 1."""
        unknown = set(changes) - set(BookingFilters.model_fields)
        if unknown:
            raise ValidationError(f"Unknown filter(s): {', '.join(sorted(unknown))}")
        merged = {**self._filters.model_dump(), **changes}
        if set(changes) - {"page"}:
            merged["page"] = 1
        try:
            self._filters = BookingFilters.model_validate(merged)
        except ValueError as exc:
            raise ValidationError(str(exc), code="INVALID_FILTER") from exc
        return self._filters

    def go_to_page(self, page: int) -> BookingFilters:
        return self.update_filters(page=page)

    def invalidate(self) -> None:
        """The screen went away; responses still in flight are dropped."""
        self._generation += 1
        self._epoch += 1

    async def list(self) -> BookingPage | None:
        """
        Load the page described by the current filters.

        Returns ``None`` when a newer load or ``invalidate`` superseded this one.
        """
        self._generation += 1
        generation = self._generation
        filters = self._filters
        page = await self.client.list_my_bookings(filters)
        if generation != self._generation:
            logger.info("Discarding stale bookings response for %s", filters.to_params())
            return None
        self._page = page
        return page

    async def upcoming(self, limit: int = 5) -> list[Booking]:
        return await self.client.get_upcoming_bookings(limit)

    async def get(self, booking_id: str) -> Booking:
        return await self.client.get_booking(booking_id)

    async def create(self, draft: BookingDraft) -> Booking:
        draft.validate_ready()
        booking = await self.client.create_booking(draft)
        logger.info("Created booking %s for consultant %s", booking.id, draft.consultant_id)
        return booking

    async def get_availability(
        self, consultant_id: str, start_date: date, end_date: date
    ) -> list[AvailabilityDay]:
        return await self.client.get_availability(consultant_id, start_date, end_date)

    def actions_for(self, booking: Booking, now: datetime | None = None) -> frozenset[BookingAction]:
        return self.policy.available_actions(booking, self.session.role, now)

    def is_busy(self, booking_id: str) -> bool:
        return self.guard.is_busy(booking_id)

    async def _reload_after(self, epoch: int, booking_id: str) -> BookingPage | None:
        if epoch != self._epoch:
            logger.info("Screen invalidated while booking %s was updating; skipping reload", booking_id)
            return None
        return await self.list()

    async def _guarded(
        self, booking_id: str, action: Callable[[], Awaitable[T]]
    ) -> T | None:
        if not self.guard.acquire(booking_id):
            logger.info("Ignoring duplicate request for booking %s", booking_id)
            return None
        try:
            return await action()
        finally:
            self.guard.release(booking_id)

    async def mutate_status(
        self,
        booking_id: str,
        new_status: BookingStatus | str,
        reason: str | None = None,
    ) -> BookingPage | None:
        status = BookingStatus(new_status)

        async def _apply() -> BookingPage | None:
            epoch = self._epoch
            try:
                await self.client.update_booking_status(booking_id, status, reason)
            except ApiError as exc:
                if exc.status_code in _REJECTION_STATUSES:
                    raise InvalidTransition(
                        exc.message, requested=status.value
                    ) from exc
                raise
            logger.info("Booking %s status set to %s", booking_id, status.value)
            return await self._reload_after(epoch, booking_id)

        return await self._guarded(booking_id, _apply)

    async def cancel(self, booking_id: str, reason: str | None = None) -> BookingPage | None:
        return await self.mutate_status(booking_id, BookingStatus.CANCELLED, reason)

    async def reject(self, booking_id: str, reason: str | None = None) -> BookingPage | None:
        return await self.mutate_status(
            booking_id, BookingStatus.CANCELLED, reason or CONSULTANT_DECLINE_REASON
        )

    async def confirm(self, booking_id: str) -> BookingPage | None:
        return await self.mutate_status(booking_id, BookingStatus.CONFIRMED)

    async def complete(self, booking_id: str) -> BookingPage | None:
        return await self.mutate_status(booking_id, BookingStatus.COMPLETED)

    async def mark_no_show(self, booking_id: str) -> BookingPage | None:
        return await self.mutate_status(booking_id, BookingStatus.NO_SHOW)

    async def add_review(
        self, booking_id: str, rating: int, review: str | None = None
    ) -> BookingPage | None:
        validate_rating(rating)

        async def _apply() -> BookingPage | None:
            epoch = self._epoch
            try:
                await self.client.add_review(booking_id, rating, review)
            except ApiError as exc:
                if exc.status_code == 409 or "already" in exc.message.lower():
                    raise AlreadyReviewed(booking_id, exc.message) from exc
                if exc.status_code in _REJECTION_STATUSES:
                    raise ValidationError(exc.message, code="REVIEW_REJECTED") from exc
                raise
            return await self._reload_after(epoch, booking_id)

        return await self._guarded(booking_id, _apply)

    async def reschedule(
        self, booking_id: str, session_date: date | None, start_time: str | None
    ) -> BookingPage | None:
        if session_date is None or not start_time:
            raise ValidationError(
                "Please select a date and time for your session", code="SELECTION_REQUIRED"
            )
        try:
            parse_hhmm(start_time)
        except ValueError as exc:
            raise ValidationError(str(exc), code="INVALID_TIME") from exc

        async def _apply() -> BookingPage | None:
            epoch = self._epoch
            try:
                await self.client.reschedule_booking(booking_id, session_date, start_time)
            except ApiError as exc:
                if exc.status_code in _REJECTION_STATUSES:
                    raise InvalidTransition(
                        exc.message, requested=BookingStatus.RESCHEDULED.value
                    ) from exc
                raise
            return await self._reload_after(epoch, booking_id)

        return await self._guarded(booking_id, _apply)

