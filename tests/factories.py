from __future__ import annotations

from datetime import date

from consultspace.models import Booking

API = "https://api.consultspace.test/api"


def make_booking(**overrides) -> Booking:
    data = {
        "id": "b1",
        "seeker_id": "seeker-1",
        "consultant_id": "consultant-1",
        "session_date": date(2024, 6, 10),
        "start_time": "14:00",
        "session_duration": 60,
        "amount": 1200,
        "status": "confirmed",
        "payment_status": "paid",
    }
    data.update(overrides)
    return Booking(**data)


def booking_payload(**overrides) -> dict:
    data = {
        "_id": "b1",
        "bookingId": "BK-0001",
        "seeker": {"_id": "seeker-1", "fullName": "Asha Rao"},
        "consultant": {"_id": "consultant-1", "fullName": "Dev Mehta"},
        "sessionDate": "2024-06-10T00:00:00.000Z",
        "startTime": "14:00",
        "endTime": "15:00",
        "sessionDuration": 60,
        "sessionType": "consultation",
        "amount": 1200,
        "meetingPlatform": "google_meet",
        "status": "confirmed",
        "paymentStatus": "paid",
    }
    data.update(overrides)
    return data
