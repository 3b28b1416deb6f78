"""
Job pricing: pure function of duration and hourly rate.

Prices are integer cents, rounded half-up (2.5 → 3) and never below
``MIN_PRICE_CENTS``.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

__all__ = ["DEFAULT_HOURLY_RATE", "MIN_PRICE_CENTS", "MAX_PRICE_CENTS", "MAX_JOB_MINUTES", "price_cents"]

DEFAULT_HOURLY_RATE = 45.0
MIN_PRICE_CENTS = 1
MAX_JOB_MINUTES = 24 * 60
# jobs.price_cents is a PostgreSQL integer column
MAX_PRICE_CENTS = 2**31 - 1


def price_cents(minutes: int, hourly_rate: float = DEFAULT_HOURLY_RATE) -> int:
    """
    Price a job of ``minutes`` at ``hourly_rate`` currency units per hour.

    >>> price_cents(30)
    2250
    >>> price_cents(0)
    1
    """
    # str() keeps the configured rate exact (45.1 stays 45.1, not 45.09999...)
    cents = Decimal(minutes) / Decimal(60) * Decimal(str(hourly_rate)) * Decimal(100)
    rounded = int(cents.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(MIN_PRICE_CENTS, rounded)
