"""
Time- and state-based gates for booking actions.

These predicates decide which actions a screen exposes. They are advisory:
the booking API has the final say, and its error response wins over a
locally computed ``True``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging

from .enums import BookingAction, BookingStatus, PaymentStatus, UserRole
from .models import Booking
from .timeutils import ensure_aware

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_CUTOFF_HOURS = 24


@dataclass(frozen=True)
class CancellationWindow:
    session_start_utc: datetime
    deadline_utc: datetime
    now_utc: datetime

    @property
    def is_open(self) -> bool:
        return self.now_utc < self.deadline_utc

    @property
    def hours_until_deadline(self) -> float:
        return (self.deadline_utc - self.now_utc).total_seconds() / 3600


class EligibilityPolicy:
    """Computes cancel / reschedule / review eligibility for a booking."""

    def __init__(self, cutoff_hours: int = DEFAULT_CANCELLATION_CUTOFF_HOURS) -> None:
        self.cutoff = timedelta(hours=cutoff_hours)

    def cancellation_window(self, booking: Booking, now: datetime) -> CancellationWindow:
        start_utc = booking.starts_at.to_utc()
        return CancellationWindow(
            session_start_utc=start_utc,
            deadline_utc=start_utc - self.cutoff,
            now_utc=ensure_aware(now).astimezone(timezone.utc),
        )

    def can_cancel(self, booking: Booking, now: datetime) -> bool:
        if not booking.status.is_open:
            return False
        window = self.cancellation_window(booking, now)
        logger.debug(
            "can_cancel %s: deadline=%s now=%s open=%s",
            booking.id,
            window.deadline_utc.isoformat(),
            window.now_utc.isoformat(),
            window.is_open,
        )
        return window.is_open

    def can_reschedule(self, booking: Booking) -> bool:
        return booking.status.is_open

    def can_add_review(self, booking: Booking, acting_as_seeker: bool) -> bool:
        return booking.status == BookingStatus.COMPLETED and acting_as_seeker and not booking.has_review

    def available_actions(
        self,
        booking: Booking,
        role: UserRole,
        now: datetime | None = None,
    ) -> frozenset[BookingAction]:
        """Actions one party may be offered for ``booking`` right now."""
        current = now or datetime.now(timezone.utc)
        actions = set()
        is_consultant = role == UserRole.CONSULTANT

        if booking.status == BookingStatus.PENDING:
            # Consultant approval is only surfaced once payment has cleared.
            if is_consultant and booking.payment_status == PaymentStatus.PAID:
                actions.update({BookingAction.APPROVE, BookingAction.REJECT})
            if not is_consultant and booking.payment_status in (
                PaymentStatus.PENDING,
                PaymentStatus.FAILED,
            ):
                actions.add(BookingAction.PAY)

        if booking.status == BookingStatus.CONFIRMED and is_consultant:
            actions.update({BookingAction.COMPLETE, BookingAction.MARK_NO_SHOW})

        if self.can_cancel(booking, current):
            actions.add(BookingAction.CANCEL)
        if self.can_reschedule(booking):
            actions.add(BookingAction.RESCHEDULE)
        if self.can_add_review(booking, acting_as_seeker=not is_consultant):
            actions.add(BookingAction.REVIEW)

        return frozenset(actions)
