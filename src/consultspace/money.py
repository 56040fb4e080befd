"""
Money helpers.

Every amount in this package is an integer count of minor currency units
(paise for INR). Conversion to major units happens only when rendering.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def session_amount(hourly_rate: int, duration_minutes: int) -> int:
    """Price of a session: ``hourly_rate * duration / 60``, rounded half-up."""
    if hourly_rate < 0:
        raise ValueError("hourly_rate cannot be negative")
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    return _round_half_up(Decimal(hourly_rate) * Decimal(duration_minutes) / Decimal(60))


def platform_fee(amount: int, fee_percent: int = 10) -> int:
    return _round_half_up(Decimal(amount) * Decimal(fee_percent) / Decimal(100))


def validate_amount(amount: int, max_amount: int) -> bool:
    return 0 < amount <= max_amount


def _group_indian(integer_part: str) -> str:
    # 1234567 -> 12,34,567
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def _group_western(integer_part: str) -> str:
    return f"{int(integer_part):,}"


def format_currency(amount: int, currency: str = "INR") -> str:
    """Render minor units for display, e.g. ``format_currency(180000) == "₹1,800.00"``."""
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(amount), 100)
    grouper = _group_indian if currency == "INR" else _group_western
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{sign}{symbol}{grouper(str(major))}.{minor:02d}"
