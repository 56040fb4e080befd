"""
Core enums for the Consultant Space booking core.

Every status or choice that crosses the API boundary is one of these closed
types. Raw strings from the booking API are coerced on the way in, so an
unknown value fails loudly instead of flowing through as free text.
"""

from enum import Enum


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Created, awaiting payment / consultant approval
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"

    @property
    def label(self) -> str:
        return _BOOKING_STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW)

    @property
    def is_open(self) -> bool:
        """Pending or confirmed: the statuses that still accept cancel/reschedule."""
        return self in (BookingStatus.PENDING, BookingStatus.CONFIRMED)


_BOOKING_STATUS_LABELS = {
    BookingStatus.PENDING: "Pending Approval",
    BookingStatus.CONFIRMED: "Approved",
    BookingStatus.COMPLETED: "Completed",
    BookingStatus.CANCELLED: "Cancelled",
    BookingStatus.NO_SHOW: "No Show",
    BookingStatus.RESCHEDULED: "Rescheduled",
}


class PaymentStatus(str, Enum):
    """Payment state tracked alongside the booking status."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class SessionType(str, Enum):
    CONSULTATION = "consultation"
    MENTORING = "mentoring"
    REVIEW = "review"
    COACHING = "coaching"
    OTHER = "other"


class MeetingPlatform(str, Enum):
    """Video provider for sessions. Only one is supported."""

    GOOGLE_MEET = "google_meet"


class UserRole(str, Enum):
    """The two marketplace parties."""

    SEEKER = "seeker"
    CONSULTANT = "consultant"


class Actor(str, Enum):
    """Who drives a status transition."""

    SEEKER = "seeker"
    CONSULTANT = "consultant"
    SYSTEM = "system"  # payment confirmation

    @classmethod
    def for_role(cls, role: UserRole) -> "Actor":
        return cls(role.value)


class SortField(str, Enum):
    SESSION_DATE = "sessionDate"
    CREATED_AT = "createdAt"
    AMOUNT = "amount"
    STATUS = "status"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class BookingAction(str, Enum):
    """Actions a booking screen may expose to one party."""

    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    REVIEW = "review"
    PAY = "pay"


class PaymentFailureKind(str, Enum):
    """Distinct ways a checkout can fail; each has its own message."""

    DECLINED = "declined"
    NETWORK = "network"
    DISMISSED = "dismissed"
    VERIFICATION_FAILED = "verification_failed"


PAYMENT_METHOD_LABELS = {
    "card": "Credit/Debit Card",
    "netbanking": "Net Banking",
    "upi": "UPI",
    "wallet": "Digital Wallet",
    "emi": "EMI",
    "manual": "Manual Payment",
}


def payment_method_label(method: str) -> str:
    return PAYMENT_METHOD_LABELS.get(method, method)
