"""
Payment reconciliation for bookings.

Checkout runs in three steps: the payment service creates an order for the
booking, the payment widget collects the payment, and the service verifies
the widget's (order, payment, signature) triple. Only a verified success
moves ``payment_status`` to ``paid``, which in turn confirms a pending
booking. Every failure leaves the booking exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from .eligibility import EligibilityPolicy
from .enums import Actor, BookingStatus, PaymentFailureKind, PaymentStatus
from .exceptions import (
    ApiConnectionError,
    ApiError,
    InvalidResponseError,
    InvalidTransition,
    PaymentFailed,
    ValidationError,
)
from .models import Booking, CheckoutRequest, PaymentBreakdown, PaymentMethod
from .money import platform_fee, validate_amount
from .state_machine import BookingStateMachine

if TYPE_CHECKING:
    from .client import BookingApiClient
    from .config import Settings
    from .session import SessionContext

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
    ),
    # A failed attempt may be retried.
    PaymentStatus.FAILED: frozenset(
        {PaymentStatus.PAID, PaymentStatus.PENDING, PaymentStatus.CANCELLED}
    ),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class WidgetSuccess:
    order_id: str
    payment_id: str
    signature: str


@dataclass(frozen=True)
class WidgetDismissed:
    pass


@dataclass(frozen=True)
class WidgetDeclined:
    code: str | None = None
    description: str | None = None


CheckoutOutcome = WidgetSuccess | WidgetDismissed | WidgetDeclined


def apply_payment_status(
    booking: Booking,
    new_status: PaymentStatus | str,
    state_machine: BookingStateMachine | None = None,
) -> Booking:
    """
    Local model of what a payment status change does to a booking.

    ``paid`` on a pending booking also confirms it.
    """
    new_status = PaymentStatus(new_status)
    if booking.payment_status == new_status:
        return booking
    if new_status not in PAYMENT_TRANSITIONS[booking.payment_status]:
        raise InvalidTransition(
            f"Cannot change payment status from {booking.payment_status.value} "
            f"to {new_status.value}",
            current=booking.payment_status.value,
            requested=new_status.value,
            code="INVALID_PAYMENT_TRANSITION",
        )
    updated = booking.model_copy(update={"payment_status": new_status})
    if new_status == PaymentStatus.PAID and updated.status == BookingStatus.PENDING:
        machine = state_machine or BookingStateMachine()
        updated = machine.transition(updated, BookingStatus.CONFIRMED, Actor.SYSTEM)
    return updated


class PaymentReconciler:
    """Drives checkout and refunds against the payment service."""

    def __init__(
        self,
        client: "BookingApiClient",
        settings: "Settings",
        state_machine: BookingStateMachine | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.state_machine = state_machine or BookingStateMachine(
            EligibilityPolicy(settings.cancellation_cutoff_hours)
        )

    async def start_checkout(self, booking: Booking, session: "SessionContext") -> CheckoutRequest:
        if booking.status != BookingStatus.PENDING or booking.payment_status not in (
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
        ):
            raise ValidationError(
                "This booking is not awaiting payment",
                code="PAYMENT_NOT_DUE",
                details={
                    "status": booking.status.value,
                    "payment_status": booking.payment_status.value,
                },
            )
        if not validate_amount(booking.amount, self.settings.max_payment_amount):
            raise ValidationError("Invalid payment amount", code="INVALID_AMOUNT")
        try:
            order = await self.client.create_payment_order(booking.id)
        except ApiConnectionError as exc:
            raise PaymentFailed(PaymentFailureKind.NETWORK, booking_id=booking.id) from exc
        logger.info("Created payment order %s for booking %s", order.order_id, booking.id)
        return CheckoutRequest(booking_id=booking.id, order=order, payer=session.as_payer())

    async def complete_checkout(self, booking: Booking, outcome: CheckoutOutcome) -> Booking:
        """
        Reconcile the widget outcome with the booking.

        Returns the booking as reloaded from the API after a verified
        payment. Raises ``PaymentFailed`` otherwise.
        """
        if isinstance(outcome, WidgetDismissed):
            logger.info("Checkout dismissed for booking %s", booking.id)
            raise PaymentFailed(PaymentFailureKind.DISMISSED, booking_id=booking.id)
        if isinstance(outcome, WidgetDeclined):
            logger.info("Checkout declined for booking %s: %s", booking.id, outcome.code)
            raise PaymentFailed(
                PaymentFailureKind.DECLINED, booking_id=booking.id, gateway_code=outcome.code
            )

        try:
            result = await self.client.verify_payment(
                outcome.order_id, outcome.payment_id, outcome.signature
            )
        except ApiConnectionError as exc:
            raise PaymentFailed(PaymentFailureKind.NETWORK, booking_id=booking.id) from exc
        except (ApiError, InvalidResponseError) as exc:
            raise PaymentFailed(
                PaymentFailureKind.VERIFICATION_FAILED, booking_id=booking.id
            ) from exc
        if not result.success:
            logger.warning("Payment verification failed for booking %s", booking.id)
            raise PaymentFailed(PaymentFailureKind.VERIFICATION_FAILED, booking_id=booking.id)

        expected = apply_payment_status(booking, PaymentStatus.PAID, self.state_machine)
        reloaded = await self.client.get_booking(booking.id)
        if (reloaded.status, reloaded.payment_status) != (expected.status, expected.payment_status):
            logger.warning(
                "Booking %s after payment is %s/%s on the server, expected %s/%s; using server state",
                booking.id,
                reloaded.status.value,
                reloaded.payment_status.value,
                expected.status.value,
                expected.payment_status.value,
            )
        logger.info("Payment %s verified for booking %s", outcome.payment_id, booking.id)
        return reloaded

    async def refund(
        self,
        booking: Booking,
        reason: str,
        amount: int | None = None,
    ) -> Booking:
        if booking.payment_status != PaymentStatus.PAID:
            raise ValidationError("Only paid bookings can be refunded", code="REFUND_NOT_ALLOWED")
        if not booking.payment_id:
            raise ValidationError("Booking has no payment to refund", code="PAYMENT_ID_MISSING")
        refund_amount = booking.amount if amount is None else amount
        if not 0 < refund_amount <= booking.amount:
            raise ValidationError(
                "Refund amount must be positive and no more than the booking amount",
                code="INVALID_AMOUNT",
            )
        await self.client.refund_payment(booking.payment_id, refund_amount, reason)
        logger.info("Refund of %s requested for booking %s", refund_amount, booking.id)
        return await self.client.get_booking(booking.id)

    async def breakdown(self, booking: Booking) -> PaymentBreakdown:
        return await self.client.get_payment_breakdown(booking.id)

    def estimate_breakdown(self, booking: Booking) -> PaymentBreakdown:
        """Preview shown before an order exists; the service's breakdown is authoritative."""
        return PaymentBreakdown(
            amount=booking.amount,
            platform_fee=platform_fee(booking.amount, self.settings.platform_fee_percent),
            total_amount=booking.amount,
            currency=self.settings.currency,
        )

    async def methods(self) -> list[PaymentMethod]:
        return [m for m in await self.client.get_payment_methods() if m.enabled]
