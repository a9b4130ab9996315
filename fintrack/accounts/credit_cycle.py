"""
Credit Cycle Calculation

Closing and due dates of a credit account's current billing cycle.

RULES:
1. The closing date falls in the current month, or the next one once
   today is past the closing day
2. The due date falls in the current month, one month later when the due
   day is on or before the closing day, and one further month once today
   is past the closing day
3. Days 29-31 clamp to the last day of the target month

All functions are pure: same inputs, same dates.
"""

import calendar
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict

from fintrack.models.account import Account


class CreditCycle(BaseModel):
    """Closing and due dates of one billing cycle."""
    model_config = ConfigDict(frozen=True)

    closing_date: date
    due_date: date


def _check_day(name: str, day: int) -> None:
    if not 1 <= day <= 31:
        raise ValueError(f"{name} must be between 1 and 31, got {day}")


def _in_month(year: int, month: int, months_ahead: int, day: int) -> date:
    """The `day` of the month `months_ahead` after (year, month), clamped."""
    index = year * 12 + (month - 1) + months_ahead
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def compute_cycle(today: date, closing_day: int, due_day: int) -> CreditCycle:
    """
    Compute the billing cycle that `today` belongs to.

    Args:
        today: Reference date
        closing_day: Day of month the invoice closes (1-31)
        due_day: Day of month the invoice is due (1-31)

    Raises:
        ValueError: If a day is outside 1-31
    """
    _check_day("closing_day", closing_day)
    _check_day("due_day", due_day)

    past_closing = today.day > closing_day

    closing_offset = 1 if past_closing else 0
    due_offset = 0
    if due_day <= closing_day:
        due_offset += 1
    if past_closing:
        due_offset += 1

    return CreditCycle(
        closing_date=_in_month(today.year, today.month, closing_offset, closing_day),
        due_date=_in_month(today.year, today.month, due_offset, due_day),
    )


def is_in_closing_period(today: date, cycle: CreditCycle) -> bool:
    """On the closing date, or after it and strictly before the due date."""
    if today == cycle.closing_date:
        return True
    return cycle.closing_date < today < cycle.due_date


def cycle_for_account(account: Account, today: date) -> Optional[CreditCycle]:
    """The account's current cycle; None for anything but a credit account."""
    if not account.is_credit:
        return None
    return compute_cycle(today, account.credit_closing_day, account.credit_due_day)
