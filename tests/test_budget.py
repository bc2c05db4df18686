"""Tests for the daily budget calculation."""

import os
import time
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dailybudget.budget import (
    DAILY_ALLOWANCE,
    compute_balance,
    days_until_reset,
    next_reset_date,
    start_of_day,
)
from dailybudget.models import PaymentRecord

from conftest import utc


def payment(created: datetime, balance_after: str, payment_id: int = 1) -> PaymentRecord:
    return PaymentRecord(
        id=payment_id,
        created_at=created,
        description="test",
        amount=Decimal("-1.00"),
        balance_after=Decimal(balance_after),
    )


class TestResetCalendar:
    def test_before_reset_day_uses_this_month(self):
        assert next_reset_date(date(2024, 3, 10)) == date(2024, 3, 25)
        assert days_until_reset(date(2024, 3, 10)) == 16

    def test_on_reset_day_rolls_to_next_month(self):
        assert next_reset_date(date(2024, 1, 25)) == date(2024, 2, 25)
        assert days_until_reset(date(2024, 1, 25)) == 32

    def test_day_before_reset(self):
        assert next_reset_date(date(2024, 1, 24)) == date(2024, 1, 25)
        assert days_until_reset(date(2024, 1, 24)) == 2

    def test_after_reset_day_in_december_rolls_year(self):
        assert next_reset_date(date(2023, 12, 31)) == date(2024, 1, 25)
        assert days_until_reset(date(2023, 12, 31)) == 26

    def test_end_of_january_to_february(self):
        assert next_reset_date(date(2024, 1, 31)) == date(2024, 2, 25)

    def test_custom_reset_day(self):
        assert next_reset_date(date(2024, 3, 1), reset_day=1) == date(2024, 4, 1)

    def test_start_of_day(self):
        assert start_of_day(utc(2024, 3, 10, 17, 45, 3, 12)) == utc(2024, 3, 10)


class TestComputeBalance:
    def test_reference_day(self):
        now = utc(2024, 3, 10, 12, 0)
        payments = [
            payment(utc(2024, 3, 10, 9, 30), "400", 2),
            payment(utc(2024, 3, 9, 18, 0), "450", 1),
        ]
        result = compute_balance(payments, now=now)
        assert result.today_left == 23.0
        assert result.today_left_percent == pytest.approx(23 / 73)
        assert round(result.today_left_percent, 3) == 0.315
        assert result.days_left == 16
        assert result.balance == -718.0
        assert result.computed_at == now

    def test_empty_history_is_neutral(self):
        result = compute_balance([], now=utc(2024, 3, 10, 12))
        assert result.today_left == DAILY_ALLOWANCE
        assert result.today_left_percent == 1.0
        assert result.balance == -(DAILY_ALLOWANCE * 16)

    def test_single_payment_today(self):
        now = utc(2024, 3, 10, 12)
        result = compute_balance([payment(utc(2024, 3, 10, 8), "1000")], now=now)
        assert result.today_left == DAILY_ALLOWANCE
        assert result.balance == pytest.approx(1000 - 73 - 15 * 73)

    def test_single_payment_before_today(self):
        now = utc(2024, 3, 10, 12)
        result = compute_balance([payment(utc(2024, 3, 8, 8), "1000")], now=now)
        assert result.today_left == DAILY_ALLOWANCE
        assert result.balance == pytest.approx(1000 - 73 - 15 * 73)

    def test_yesterday_and_today(self):
        now = utc(2024, 3, 10, 20)
        payments = [
            payment(utc(2024, 3, 10, 19), "900", 3),
            payment(utc(2024, 3, 10, 8), "950", 2),
            payment(utc(2024, 3, 9, 23, 59), "960", 1),
        ]
        result = compute_balance(payments, now=now)
        # 960 - 900 spent today
        assert result.today_left == 13.0

    def test_overspent_day_clamps_to_zero(self):
        now = utc(2024, 3, 10, 12)
        payments = [payment(utc(2024, 3, 10, 10), "100", 2), payment(utc(2024, 3, 9), "400", 1)]
        result = compute_balance(payments, now=now)
        assert result.today_left == 0.0
        assert result.today_left_percent == 0.0
        assert result.balance == pytest.approx(100 - 0 - 15 * 73)

    def test_income_today_clamps_to_allowance(self):
        now = utc(2024, 3, 10, 12)
        payments = [payment(utc(2024, 3, 10, 10), "2500", 2), payment(utc(2024, 3, 9), "100", 1)]
        result = compute_balance(payments, now=now)
        assert result.today_left == DAILY_ALLOWANCE
        assert result.today_left_percent == 1.0

    def test_payments_spanning_reset_day(self):
        now = utc(2024, 3, 25, 10)
        payments = [
            payment(utc(2024, 3, 25, 9), "2980", 3),   # after salary, coffee
            payment(utc(2024, 3, 24, 12), "3000", 2),  # salary
            payment(utc(2024, 3, 23, 12), "20", 1),
        ]
        result = compute_balance(payments, now=now)
        assert result.days_left == 32
        assert result.today_left == 53.0
        assert result.balance == pytest.approx(2980 - 53 - 31 * 73)

    def test_payment_exactly_at_midnight_counts_as_today(self):
        now = utc(2024, 3, 10, 12)
        payments = [payment(utc(2024, 3, 10), "430", 2), payment(utc(2024, 3, 9, 23), "450", 1)]
        assert compute_balance(payments, now=now).today_left == 53.0

    def test_local_timezone_defines_today(self):
        cet = timezone(timedelta(hours=1))
        now = datetime(2024, 3, 10, 0, 30, tzinfo=cet)
        payments = [
            payment(utc(2024, 3, 9, 23, 15), "400", 2),  # 00:15 CET: today
            payment(utc(2024, 3, 9, 22, 30), "450", 1),  # 23:30 CET on the 9th
        ]
        assert compute_balance(payments, now=now).today_left == 23.0

    def test_custom_allowance(self):
        now = utc(2024, 3, 10, 12)
        payments = [payment(utc(2024, 3, 10, 10), "90", 2), payment(utc(2024, 3, 9), "100", 1)]
        result = compute_balance(payments, now=now, daily_allowance=50.0)
        assert result.today_left == 40.0
        assert result.today_left_percent == pytest.approx(0.8)


@pytest.fixture
def amsterdam_time():
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "Europe/Amsterdam"
    time.tzset()
    try:
        if "CET" not in time.tzname:
            pytest.skip("Europe/Amsterdam zone data not available")
        yield
    finally:
        if previous is None:
            del os.environ["TZ"]
        else:
            os.environ["TZ"] = previous
        time.tzset()


@pytest.mark.usefixtures("amsterdam_time")
class TestDaylightSavingDays:
    def test_local_midnight_on_spring_forward(self):
        # Midnight is still CET (+01:00) although noon is CEST (+02:00).
        now = datetime(2024, 3, 31, 12, 0).astimezone()
        assert start_of_day(now) == utc(2024, 3, 30, 23)

    def test_local_midnight_on_fall_back(self):
        now = datetime(2024, 10, 27, 12, 0).astimezone()
        assert start_of_day(now) == utc(2024, 10, 26, 22)

    def test_spring_forward_keeps_yesterday_out_of_today(self):
        payments = [
            payment(utc(2024, 3, 31, 9), "400", 2),
            payment(utc(2024, 3, 30, 22, 30), "450", 1),  # 23:30 local on the 30th
        ]
        result = compute_balance(payments, now=datetime(2024, 3, 31, 12, 0))
        assert result.today_left == 23.0

    def test_fall_back_counts_early_payment_as_today(self):
        payments = [
            payment(utc(2024, 10, 27, 9), "400", 3),
            payment(utc(2024, 10, 26, 22, 30), "430", 2),  # 00:30 local on the 27th
            payment(utc(2024, 10, 26, 21, 30), "450", 1),  # 23:30 local on the 26th
        ]
        result = compute_balance(payments, now=datetime(2024, 10, 27, 12, 0))
        assert result.today_left == 23.0
