# tests/test_pricing.py
"""Tests for job pricing"""
import pytest

from cleanerdispatch.core.pricing import DEFAULT_HOURLY_RATE, MIN_PRICE_CENTS, price_cents


class TestPriceCents:
    def test_half_hour_at_default_rate(self):
        assert DEFAULT_HOURLY_RATE == 45.0
        assert price_cents(30) == 2250

    @pytest.mark.parametrize("minutes,expected", [
        (60, 4500),
        (90, 6750),
        (120, 9000),
        (1, 75),
    ])
    def test_default_rate(self, minutes, expected):
        assert price_cents(minutes) == expected

    def test_rounds_half_up(self):
        # 1 minute at 0.3/h = 0.5 cents
        assert price_cents(1, 0.3) == 1
        # 1 minute at 1.5/h = 2.5 cents
        assert price_cents(1, 1.5) == 3

    def test_rounds_down_below_half(self):
        # 1 minute at 1.0/h = 1.666.. cents
        assert price_cents(1, 1.0) == 2
        # 1 minute at 0.8/h = 1.333.. cents
        assert price_cents(1, 0.8) == 1

    def test_never_below_minimum(self):
        assert price_cents(1, 0.01) == MIN_PRICE_CENTS
        assert price_cents(0) == MIN_PRICE_CENTS

    def test_decimal_rate_is_exact(self):
        # 60 minutes at 45.1 is exactly 4510 cents
        assert price_cents(60, 45.1) == 4510

    def test_pure(self):
        assert price_cents(45, 30.0) == price_cents(45, 30.0)
