"""
Booking status state machine.

Legal edges and the party allowed to drive each one::

    pending   -> confirmed    consultant (approval) or system (payment confirmed)
    pending   -> cancelled    seeker or consultant
    pending   -> rescheduled  seeker or consultant
    confirmed -> completed    consultant
    confirmed -> cancelled    seeker or consultant, inside the cancellation window
    confirmed -> no_show      consultant
    confirmed -> rescheduled  seeker or consultant

Anything else raises ``InvalidTransition``. Re-requesting the status a
booking already has (for a status some edge leads to) is a silent no-op so
that a retried request looks exactly like a fresh success.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from .eligibility import EligibilityPolicy
from .enums import Actor, BookingStatus, PaymentStatus
from .exceptions import AlreadyReviewed, ForbiddenError, InvalidTransition, ValidationError
from .models import Booking, BookingDraft

logger = logging.getLogger(__name__)

CONSULTANT_DECLINE_REASON = "Declined by consultant"

_EITHER_PARTY = frozenset({Actor.SEEKER, Actor.CONSULTANT})

TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[Actor]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({Actor.CONSULTANT, Actor.SYSTEM}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): _EITHER_PARTY,
    (BookingStatus.PENDING, BookingStatus.RESCHEDULED): _EITHER_PARTY,
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): frozenset({Actor.CONSULTANT}),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): _EITHER_PARTY,
    (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW): frozenset({Actor.CONSULTANT}),
    (BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED): _EITHER_PARTY,
}

_REACHABLE = frozenset(target for _, target in TRANSITIONS)


def allowed_targets(status: BookingStatus) -> frozenset[BookingStatus]:
    return frozenset(target for source, target in TRANSITIONS if source == status)


def is_legal(source: BookingStatus, target: BookingStatus) -> bool:
    return (source, target) in TRANSITIONS


def open_booking(
    draft: BookingDraft,
    *,
    booking_id: str,
    seeker_id: str,
    time_zone: str = "UTC",
    display_id: str | None = None,
) -> Booking:
    """Initial ``pending``/``pending`` booking for a submitted draft."""
    draft.validate_ready()
    return Booking(
        id=booking_id,
        display_id=display_id,
        seeker_id=seeker_id,
        consultant_id=draft.consultant_id,
        session_date=draft.session_date,
        start_time=draft.start_time,
        session_duration=draft.session_duration,
        session_type=draft.session_type,
        time_zone=time_zone,
        amount=draft.amount,
        meeting_platform=draft.meeting_platform,
        description=draft.description or None,
        status=BookingStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
    )


class BookingStateMachine:
    """Applies status transitions and the one-time review write to bookings."""

    def __init__(self, policy: EligibilityPolicy | None = None) -> None:
        self.policy = policy or EligibilityPolicy()

    def transition(
        self,
        booking: Booking,
        target: BookingStatus | str,
        actor: Actor,
        *,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> Booking:
        target = BookingStatus(target)
        current = booking.status

        if current == target and target in _REACHABLE:
            logger.info("Booking %s already %s; nothing to apply", booking.id, target.value)
            return booking

        actors = TRANSITIONS.get((current, target))
        if actors is None:
            raise InvalidTransition(
                f"Cannot change booking status from {current.value} to {target.value}",
                current=current.value,
                requested=target.value,
            )
        if actor not in actors:
            raise ForbiddenError(
                f"A {actor.value} cannot move a booking from {current.value} to {target.value}",
                code="TRANSITION_FORBIDDEN",
                details={"current": current.value, "requested": target.value},
            )

        update: dict[str, object] = {"status": target}
        if target == BookingStatus.CANCELLED:
            if current == BookingStatus.CONFIRMED:
                when = now or datetime.now(timezone.utc)
                if not self.policy.can_cancel(booking, when):
                    raise InvalidTransition(
                        "Bookings can only be cancelled up to "
                        f"{int(self.policy.cutoff.total_seconds() // 3600)} hours before the session",
                        current=current.value,
                        requested=target.value,
                        code="CANCELLATION_WINDOW_CLOSED",
                    )
            if not reason and actor == Actor.CONSULTANT and current == BookingStatus.PENDING:
                reason = CONSULTANT_DECLINE_REASON
            update["cancellation_reason"] = reason or None
        elif target == BookingStatus.RESCHEDULED and not self.policy.can_reschedule(booking):
            raise InvalidTransition(
                "This booking can no longer be rescheduled",
                current=current.value,
                requested=target.value,
            )

        logger.info(
            "Booking %s: %s -> %s by %s", booking.id, current.value, target.value, actor.value
        )
        return booking.model_copy(update=update)

    def record_review(
        self,
        booking: Booking,
        rating: int,
        review: str | None,
        actor: Actor,
    ) -> Booking:
        """The single rating/review write, allowed once on a completed booking."""
        if actor != Actor.SEEKER:
            raise ForbiddenError("Only the seeker can review a booking", code="REVIEW_FORBIDDEN")
        if booking.has_review:
            raise AlreadyReviewed(booking.id)
        if booking.status != BookingStatus.COMPLETED:
            raise InvalidTransition(
                "Only completed bookings can be reviewed",
                current=booking.status.value,
                requested="review",
            )
        validate_rating(rating)
        cleaned = review.strip() if review else None
        logger.info("Booking %s reviewed with rating %s", booking.id, rating)
        return booking.model_copy(update={"rating": rating, "review": cleaned or None})

    def attach_meeting_link(self, booking: Booking, meeting_link: str) -> Booking:
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidTransition(
                "Meeting links are only issued for confirmed bookings",
                current=booking.status.value,
                requested="meeting_link",
            )
        return booking.model_copy(update={"meeting_link": meeting_link})


def validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be a whole number from 1 to 5", code="INVALID_RATING")
    return rating
