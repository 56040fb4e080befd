"""HTTP client for the Consultant Space booking and payment APIs."""

from __future__ import annotations

from datetime import date
import logging
from typing import Any, TypeVar
from urllib.parse import quote
from uuid import uuid4

import httpx
import pydantic

from .config import Settings
from .enums import BookingStatus
from .exceptions import (
    ApiConnectionError,
    ApiError,
    ForbiddenError,
    InvalidResponseError,
    NotFoundError,
    UnauthorizedError,
)
from .models import (
    AvailabilityDay,
    Booking,
    BookingDraft,
    BookingFilters,
    BookingPage,
    Pagination,
    PaymentBreakdown,
    PaymentMethod,
    PaymentOrder,
    RefundResult,
    VerificationResult,
)
from .session import SessionContext

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)


def _parse(model: type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        logger.warning("Malformed %s in API response: %s", what, exc.errors(include_url=False))
        raise InvalidResponseError(what, exc.errors(include_url=False, include_context=False)) from exc


def _error_message(response: httpx.Response, fallback: str) -> tuple[str, dict[str, Any]]:
    try:
        payload = response.json()
    except ValueError:
        return fallback, {}
    if not isinstance(payload, dict):
        return fallback, {}
    return str(payload.get("message") or fallback), payload


class BookingApiClient:
    """
    Async client for the external booking and payment services.

    Mutating calls carry the session's bearer credential. Failures are
    raised immediately; there are no retries.
    """

    def __init__(
        self,
        settings: Settings,
        session: SessionContext | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.session = session
        self.http = http or httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=httpx.Timeout(settings.request_timeout_seconds),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "BookingApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _auth_headers(self) -> dict[str, str]:
        if self.session is not None:
            return {"Authorization": f"Bearer {self.session.bearer()}"}
        static_token = self.settings.api_token.get_secret_value().strip()
        if static_token:
            return {"Authorization": f"Bearer {static_token}"}
        raise UnauthorizedError("session_token_missing")

    async def call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        authenticated: bool = True,
        error_fallback: str = "Request failed",
    ) -> dict[str, Any]:
        headers = {"X-Request-Id": str(uuid4())}
        if authenticated:
            headers.update(self._auth_headers())
        try:
            response = await self.http.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise ApiConnectionError(f"api_timeout: Request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise ApiConnectionError(f"api_connection_failed: {exc}") from exc

        if response.status_code >= 400:
            message, payload = _error_message(response, error_fallback)
            logger.warning("%s %s failed: %s %s", method, path, response.status_code, message)
            if response.status_code == 401:
                raise UnauthorizedError(message, details=payload)
            if response.status_code == 403:
                raise ForbiddenError(message, details=payload)
            if response.status_code == 404:
                raise NotFoundError(message, details=payload)
            raise ApiError(response.status_code, message, payload)

        try:
            data = response.json()
        except ValueError:
            return {"status_code": response.status_code, "text": response.text}
        return data if isinstance(data, dict) else {"data": data}

    def _booking(self, payload: dict[str, Any]) -> Booking:
        raw = payload.get("booking", payload)
        return _parse(Booking, {**raw, "time_zone": self.settings.timezone}, "booking")

    # Bookings

    async def create_booking(self, draft: BookingDraft) -> Booking:
        payload = await self.call(
            "POST",
            "/bookings",
            json=draft.to_payload(),
            error_fallback="Failed to create booking",
        )
        return self._booking(payload)

    async def list_my_bookings(self, filters: BookingFilters) -> BookingPage:
        payload = await self.call(
            "GET",
            "/bookings/my-bookings",
            params=filters.to_params(),
            error_fallback="Failed to fetch bookings",
        )
        return BookingPage(
            bookings=[self._booking(item) for item in payload.get("bookings", [])],
            pagination=_parse(Pagination, payload.get("pagination") or {}, "pagination"),
        )

    async def get_upcoming_bookings(self, limit: int = 5) -> list[Booking]:
        payload = await self.call(
            "GET",
            "/bookings/upcoming",
            params={"limit": limit},
            error_fallback="Failed to fetch upcoming bookings",
        )
        return [self._booking(item) for item in payload.get("bookings", [])]

    async def get_booking(self, booking_id: str) -> Booking:
        payload = await self.call(
            "GET",
            f"/bookings/{quote(booking_id, safe='')}",
            error_fallback="Failed to fetch booking",
        )
        return self._booking(payload)

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        reason: str | None = None,
    ) -> dict[str, Any]:
        return await self.call(
            "PATCH",
            f"/bookings/{quote(booking_id, safe='')}/status",
            json={"status": BookingStatus(status).value, "reason": reason or ""},
            error_fallback="Failed to update booking status",
        )

    async def add_review(
        self, booking_id: str, rating: int, review: str | None = None
    ) -> dict[str, Any]:
        return await self.call(
            "POST",
            f"/bookings/{quote(booking_id, safe='')}/review",
            json={"rating": rating, "review": review or ""},
            error_fallback="Failed to add review",
        )

    async def get_availability(
        self, consultant_id: str, start_date: date, end_date: date
    ) -> list[AvailabilityDay]:
        payload = await self.call(
            "GET",
            f"/bookings/consultant/{quote(consultant_id, safe='')}/availability",
            params={"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
            authenticated=False,
            error_fallback="Failed to fetch availability",
        )
        days = payload.get("availability", payload.get("data", []))
        parsed = []
        for day in days:
            try:
                parsed.append(AvailabilityDay.model_validate(day))
            except pydantic.ValidationError as exc:
                # One bad day must not hide the rest of the month.
                logger.warning(
                    "Skipping malformed availability day for consultant %s: %s",
                    consultant_id,
                    exc.errors(include_url=False),
                )
        return parsed

    async def reschedule_booking(
        self, booking_id: str, session_date: date, start_time: str
    ) -> dict[str, Any]:
        return await self.call(
            "PATCH",
            f"/bookings/{quote(booking_id, safe='')}/reschedule",
            json={"sessionDate": session_date.isoformat(), "startTime": start_time},
            error_fallback="Failed to reschedule booking",
        )

    # Payments

    async def create_payment_order(self, booking_id: str) -> PaymentOrder:
        payload = await self.call(
            "POST",
            "/payments/create-order",
            json={"bookingId": booking_id},
            error_fallback="Failed to create payment order",
        )
        return _parse(PaymentOrder, payload.get("order", payload), "payment order")

    async def verify_payment(
        self, order_id: str, payment_id: str, signature: str
    ) -> VerificationResult:
        payload = await self.call(
            "POST",
            "/payments/verify",
            json={"orderId": order_id, "paymentId": payment_id, "signature": signature},
            error_fallback="Payment verification failed",
        )
        return _parse(VerificationResult, payload, "verification result")

    async def get_payment_methods(self) -> list[PaymentMethod]:
        payload = await self.call(
            "GET", "/payments/methods", error_fallback="Failed to fetch payment methods"
        )
        methods = payload.get("methods", payload.get("data", []))
        return [
            _parse(PaymentMethod, {"code": m} if isinstance(m, str) else m, "payment method")
            for m in methods
        ]

    async def get_payment_breakdown(self, booking_id: str) -> PaymentBreakdown:
        payload = await self.call(
            "GET",
            f"/payments/breakdown/{quote(booking_id, safe='')}",
            error_fallback="Failed to fetch payment breakdown",
        )
        return _parse(PaymentBreakdown, payload.get("breakdown", payload), "payment breakdown")

    async def refund_payment(self, payment_id: str, amount: int, reason: str) -> RefundResult:
        payload = await self.call(
            "POST",
            "/payments/refund",
            json={"paymentId": payment_id, "amount": amount, "reason": reason},
            error_fallback="Failed to process refund",
        )
        return _parse(RefundResult, payload.get("refund", payload), "refund")
