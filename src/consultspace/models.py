"""
Booking-core DTOs.

Payloads from the booking and payment APIs are camelCase JSON; these models
accept either the wire names or the snake_case field names. ``Booking`` is
frozen: every change goes through the state machine, which returns a copy.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .enums import (
    BookingStatus,
    MeetingPlatform,
    PaymentStatus,
    SessionType,
    SortField,
    SortOrder,
    payment_method_label,
)
from .exceptions import ValidationError
from .money import session_amount
from .timeutils import (
    LocalDateTime,
    add_minutes,
    format_hhmm,
    parse_hhmm,
    split_session_datetime,
)

ALLOWED_DURATIONS = (30, 60, 90, 120)


class WireModel(BaseModel):
    """Base for API payloads: camelCase on the wire, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _normalize_hhmm(value: object) -> object:
    if isinstance(value, str):
        return format_hhmm(parse_hhmm(value))
    if isinstance(value, time):
        return format_hhmm(value)
    return value


def _party_id(value: object) -> object:
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


class Booking(WireModel):
    """A scheduled session between a seeker and a consultant."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    display_id: str | None = Field(
        default=None, validation_alias=AliasChoices("bookingId", "displayId", "display_id")
    )
    seeker_id: str
    consultant_id: str
    seeker_name: str | None = None
    consultant_name: str | None = None

    session_date: date
    # Local time-of-day carried by a datetime ``sessionDate``; only kept when not midnight.
    session_clock: time | None = Field(default=None, exclude=True)
    start_time: str
    session_duration: int = Field(gt=0)
    session_type: SessionType = SessionType.CONSULTATION
    time_zone: str = Field(default="UTC", exclude=True)

    amount: int = Field(ge=0)
    meeting_platform: MeetingPlatform = MeetingPlatform.GOOGLE_MEET
    meeting_link: str | None = None

    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_id: str | None = None

    description: str | None = None
    cancellation_reason: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    review: str | None = None

    created_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_wire_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for party in ("seeker", "consultant"):
            nested = data.get(party)
            if isinstance(nested, dict):
                data.setdefault(f"{party}Id", _party_id(nested))
                data.setdefault(f"{party}Name", nested.get("fullName"))
            elif isinstance(nested, str):
                data.setdefault(f"{party}Id", nested)
        raw_date = data.get("sessionDate", data.get("session_date"))
        if isinstance(raw_date, str) and "T" in raw_date:
            raw_date = datetime.fromisoformat(raw_date.replace("Z", "+00:00"))
        if isinstance(raw_date, datetime):
            tz_name = data.get("time_zone") or data.get("timeZone") or "UTC"
            raw_date, carried = split_session_datetime(raw_date, tz_name)
            if carried is not None:
                data.setdefault("session_clock", carried)
        if raw_date is not None:
            data.pop("sessionDate", None)
            data["session_date"] = raw_date
        # endTime is always derived; never accepted from the wire
        data.pop("endTime", None)
        data.pop("end_time", None)
        return data

    @field_validator("seeker_id", "consultant_id", mode="before")
    @classmethod
    def _coerce_party(cls, v: object) -> object:
        return _party_id(v)

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return _normalize_hhmm(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def end_time(self) -> str:
        return add_minutes(self.start_time, self.session_duration)

    @property
    def starts_at(self) -> LocalDateTime:
        """Session start as a ``LocalDateTime`` in the booking's zone."""
        if self.session_clock is not None:
            return LocalDateTime(self.session_date, self.session_clock, self.time_zone)
        return LocalDateTime.from_session(self.session_date, self.start_time, self.time_zone)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def has_review(self) -> bool:
        return self.rating is not None

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: seeker={self.seeker_id}, "
            f"consultant={self.consultant_id}, date={self.session_date}, "
            f"time={self.start_time}-{self.end_time}, status={self.status.value}, "
            f"payment={self.payment_status.value}>"
        )


class BookingDraft(BaseModel):
    """
    A booking being assembled on the booking screen.

    ``session_date`` and ``start_time`` stay optional until submit so the
    screen can hold a partial selection; ``validate_ready`` enforces both.
    """

    model_config = ConfigDict(validate_assignment=True)

    consultant_id: str
    hourly_rate: int = Field(ge=0)
    session_date: date | None = None
    start_time: str | None = None
    session_type: SessionType = SessionType.CONSULTATION
    session_duration: int = 60
    meeting_platform: MeetingPlatform = MeetingPlatform.GOOGLE_MEET
    description: str = ""

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return _normalize_hhmm(v)

    @field_validator("session_duration")
    @classmethod
    def _allowed_duration(cls, v: int) -> int:
        if v not in ALLOWED_DURATIONS:
            raise ValueError(f"session_duration must be one of {ALLOWED_DURATIONS}")
        return v

    @field_validator("description")
    @classmethod
    def _clean_description(cls, v: str) -> str:
        return v.strip()

    @property
    def amount(self) -> int:
        return session_amount(self.hourly_rate, self.session_duration)

    @property
    def end_time(self) -> str | None:
        if self.start_time is None:
            return None
        return add_minutes(self.start_time, self.session_duration)

    def validate_ready(self) -> None:
        if self.session_date is None or self.start_time is None:
            raise ValidationError(
                "Please select a date and time for your session",
                code="SELECTION_REQUIRED",
            )

    def to_payload(self) -> dict[str, Any]:
        self.validate_ready()
        assert self.session_date is not None
        return {
            "consultantId": self.consultant_id,
            "sessionType": self.session_type.value,
            "sessionDuration": self.session_duration,
            "sessionDate": self.session_date.isoformat(),
            "startTime": self.start_time,
            "meetingPlatform": self.meeting_platform.value,
            "description": self.description,
        }


class AvailabilityDay(WireModel):
    """Open start times for one consultant on one date."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: date
    available_slots: list[str] = Field(default_factory=list)

    @field_validator("date", mode="before")
    @classmethod
    def _date_only(cls, v: object) -> object:
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v

    @field_validator("available_slots", mode="before")
    @classmethod
    def _normalize_slots(cls, v: object) -> object:
        if isinstance(v, list):
            return [_normalize_hhmm(slot) for slot in v]
        return v

    @field_validator("available_slots")
    @classmethod
    def _ascending_unique(cls, v: list[str]) -> list[str]:
        for earlier, later in zip(v, v[1:]):
            if parse_hhmm(earlier) >= parse_hhmm(later):
                raise ValueError("available_slots must be ascending with no duplicates")
        return v


class BookingFilters(BaseModel):
    """Query state for the bookings list."""

    model_config = ConfigDict(frozen=True)

    status: BookingStatus | None = None
    search: str = ""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: SortField = SortField.SESSION_DATE
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("status", mode="before")
    @classmethod
    def _blank_status(cls, v: object) -> object:
        return None if v == "" else v

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "page": self.page,
            "limit": self.limit,
            "sortBy": self.sort_by.value,
            "sortOrder": self.sort_order.value,
        }
        if self.status is not None:
            params["status"] = self.status.value
        if self.search.strip():
            params["search"] = self.search.strip()
        return params


class Pagination(WireModel):
    current_page: int = 1
    total_pages: int = 0
    total_count: int = 0
    limit: int = 10


class BookingPage(BaseModel):
    bookings: list[Booking] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class PayerIdentity(BaseModel):
    full_name: str
    email: str
    phone: str = ""


class PaymentOrder(WireModel):
    """Order created by the payment service for one booking."""

    order_id: str
    amount: int
    currency: str = "INR"
    receipt: str | None = None
    key_id: str | None = None


class CheckoutRequest(BaseModel):
    """Everything the payment widget needs to open."""

    booking_id: str
    order: PaymentOrder
    payer: PayerIdentity
    merchant_name: str = "Consultant Space"

    def to_widget_options(self) -> dict[str, Any]:
        return {
            "key": self.order.key_id,
            "amount": self.order.amount,
            "currency": self.order.currency,
            "name": self.merchant_name,
            "description": f"Booking {self.order.receipt or self.booking_id}",
            "order_id": self.order.order_id,
            "prefill": {
                "name": self.payer.full_name,
                "email": self.payer.email,
                "contact": self.payer.phone,
            },
            "notes": {"bookingId": self.booking_id},
        }


class VerificationResult(WireModel):
    success: bool = False
    message: str | None = None
    payment_id: str | None = None


class PaymentBreakdown(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    amount: int
    platform_fee: int = 0
    total_amount: int | None = None
    currency: str = "INR"


class PaymentMethod(WireModel):
    code: str = Field(validation_alias=AliasChoices("code", "method", "id"))
    enabled: bool = True

    @property
    def label(self) -> str:
        return payment_method_label(self.code)


class RefundResult(WireModel):
    success: bool = True
    refund_id: str | None = None
    amount: int | None = None
    status: str | None = None
