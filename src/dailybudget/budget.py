"""
Daily budget calculation.

Turns the payment history of one account into how much may still be spent
today and what is left once every remaining day until the next salary
(the reset day) has its allowance reserved.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Sequence

from .config import DEFAULT_DAILY_ALLOWANCE, DEFAULT_RESET_DAY
from .models import Balance, PaymentRecord

DAILY_ALLOWANCE = DEFAULT_DAILY_ALLOWANCE
RESET_DAY = DEFAULT_RESET_DAY


def next_reset_date(today: date, reset_day: int = RESET_DAY) -> date:
    """This month's reset day, or next month's once it has been reached."""
    if today.day < reset_day:
        return today.replace(day=reset_day)
    if today.month == 12:
        return date(today.year + 1, 1, reset_day)
    return date(today.year, today.month + 1, reset_day)


def days_until_reset(today: date, reset_day: int = RESET_DAY) -> int:
    """Days left in the budget cycle, counting today."""
    return (next_reset_date(today, reset_day) - today).days + 1


def start_of_day(now: datetime) -> datetime:
    """
    Midnight of now's calendar day.

    A local "now" carries the fixed offset of its own moment, which is the
    wrong one for midnight on daylight saving change days, so local midnight
    is resolved again from the date. Other timezones are kept as given.
    """
    midnight = datetime(now.year, now.month, now.day)
    if now.tzinfo is None or now.utcoffset() == now.astimezone().utcoffset():
        return midnight.astimezone()
    return midnight.replace(tzinfo=now.tzinfo)


def as_local(now: Optional[datetime] = None) -> datetime:
    """Timezone-aware "now"; naive values are taken as local time."""
    if now is None:
        return datetime.now().astimezone()
    if now.tzinfo is None:
        return now.astimezone()
    return now


def compute_balance(
    payments: Sequence[PaymentRecord],
    now: Optional[datetime] = None,
    daily_allowance: float = DAILY_ALLOWANCE,
    reset_day: int = RESET_DAY,
) -> Balance:
    """
    Compute today's budget from a newest-first payment history.

    - today_spent is the drop in balance between the last payment before
      today and the most recent payment; 0 when there is nothing to compare.
    - today_left is clamped to [0, daily_allowance].
    - balance reserves today's remainder plus a full allowance for every
      other day until the reset.

    Never raises: an empty history is treated as no spending on a zero balance.
    """
    now = as_local(now)
    today_start = start_of_day(now)
    days_left = days_until_reset(today_start.date(), reset_day)
    allowance = Decimal(str(daily_allowance))

    today_spent = Decimal(0)
    current_balance = Decimal(0)
    if payments:
        recent = payments[0]
        current_balance = recent.balance_after
        if recent.created_at >= today_start:
            before_today = next((p for p in payments if p.created_at < today_start), None)
            if before_today is not None:
                today_spent = before_today.balance_after - recent.balance_after

    today_left = min(max(allowance - today_spent, Decimal(0)), allowance)
    balance = current_balance - today_left - (days_left - 1) * allowance

    return Balance(
        computed_at=now,
        today_left_percent=float(today_left / allowance),
        today_left=float(today_left),
        balance=float(balance),
        days_left=days_left,
    )
