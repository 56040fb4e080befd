"""Booking lifecycle, scheduling and payment reconciliation for Consultant Space."""

from .availability import AvailabilityCalendar
from .client import BookingApiClient
from .config import Settings, get_settings
from .eligibility import EligibilityPolicy
from .facade import BookingsFacade
from .payments import PaymentReconciler
from .state_machine import BookingStateMachine

__all__ = [
    "AvailabilityCalendar",
    "BookingApiClient",
    "BookingStateMachine",
    "BookingsFacade",
    "EligibilityPolicy",
    "PaymentReconciler",
    "Settings",
    "get_settings",
]
