"""
Domain-specific exceptions for the Consultant Space booking core.

These exceptions carry a machine-readable ``code`` and a ``user_message``
suitable for display. Callers catch them at the screen boundary and render
the message; nothing here is swallowed.
"""

from typing import Any

from .enums import PaymentFailureKind


class ConsultSpaceError(Exception):
    """Base exception for all booking-core errors."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return self.message or self.default_user_message


class ValidationError(ConsultSpaceError):
    """Raised when local validation fails before any network call."""


class AuthError(ConsultSpaceError):
    """Credential problems. The screen must send the user to sign-in."""

    requires_sign_in = True


class UnauthorizedError(AuthError):
    """Missing or expired credential."""

    default_user_message = "Your session has expired. Please sign in again."

    @property
    def user_message(self) -> str:
        return self.default_user_message


class ForbiddenError(AuthError):
    """Credential valid but the role may not perform the action."""

    default_user_message = "You are not allowed to perform this action."


class NotFoundError(ConsultSpaceError):
    """Booking or consultant no longer exists."""

    default_user_message = "This booking could not be found."


class InvalidTransition(ConsultSpaceError):
    """Requested status change is not legal from the current state."""

    def __init__(
        self,
        message: str,
        *,
        current: str | None = None,
        requested: str | None = None,
        code: str = "INVALID_TRANSITION",
    ) -> None:
        super().__init__(
            message=message,
            code=code,
            details={"current": current, "requested": requested},
        )


class AlreadyReviewed(ConsultSpaceError):
    """The one-time rating/review write was already consumed."""

    def __init__(self, booking_id: str, message: str | None = None) -> None:
        super().__init__(
            message=message or "This booking has already been reviewed",
            code="ALREADY_REVIEWED",
            details={"booking_id": booking_id},
        )


PAYMENT_ERROR_MESSAGES = {
    "PAYMENT_DECLINED": "Payment was declined by your bank. Please try a different payment method.",
    "INSUFFICIENT_FUNDS": "Insufficient funds in your account. Please check your balance.",
    "CARD_EXPIRED": "Your card has expired. Please use a different card.",
    "INVALID_CARD": "Invalid card details. Please check and try again.",
    "NETWORK_ERROR": "Network error occurred. Please check your connection and try again.",
    "TIMEOUT": "Payment request timed out. Please try again.",
    "CANCELLED": "Payment was cancelled.",
    "DEFAULT": "Payment failed. Please try again or contact support.",
}

_FAILURE_KIND_MESSAGES = {
    PaymentFailureKind.DECLINED: PAYMENT_ERROR_MESSAGES["PAYMENT_DECLINED"],
    PaymentFailureKind.NETWORK: PAYMENT_ERROR_MESSAGES["NETWORK_ERROR"],
    PaymentFailureKind.DISMISSED: "Payment cancelled by user",
    PaymentFailureKind.VERIFICATION_FAILED: "Payment verification failed",
}


def payment_error_message(error_code: str | None) -> str:
    return PAYMENT_ERROR_MESSAGES.get(error_code or "DEFAULT", PAYMENT_ERROR_MESSAGES["DEFAULT"])


class PaymentFailed(ConsultSpaceError):
    """Checkout did not produce a verified payment. The booking is left as it was."""

    def __init__(
        self,
        kind: PaymentFailureKind,
        *,
        booking_id: str | None = None,
        gateway_code: str | None = None,
        message: str | None = None,
    ) -> None:
        self.kind = kind
        self.gateway_code = gateway_code
        if message is None:
            if kind == PaymentFailureKind.DECLINED and gateway_code:
                message = payment_error_message(gateway_code)
            else:
                message = _FAILURE_KIND_MESSAGES[kind]
        super().__init__(
            message=message,
            code=f"PAYMENT_{kind.value.upper()}",
            details={"booking_id": booking_id, "gateway_code": gateway_code},
        )


class ApiError(ConsultSpaceError):
    """Non-2xx response from the booking or payment API."""

    def __init__(
        self,
        status_code: int,
        message: str,
        payload: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(
            message=message,
            code=f"API_ERROR_{status_code}",
            details={"status_code": status_code},
        )


class ApiConnectionError(ConsultSpaceError):
    """Transport failure or timeout talking to the API."""

    default_user_message = "Network error occurred. Please check your connection and try again."

    @property
    def user_message(self) -> str:
        return self.default_user_message


class InvalidResponseError(ConsultSpaceError):
    """A 2xx response whose body does not match the expected shape."""

    default_user_message = "Received an unexpected response from the server. Please try again."

    def __init__(self, what: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=f"Malformed {what} in API response",
            code="INVALID_RESPONSE",
            details={"errors": errors or []},
        )

    @property
    def user_message(self) -> str:
        return self.default_user_message
