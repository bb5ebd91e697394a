"""Vacation balance arithmetic.

Annual leave keeps accruing until the requested end date, so a request may
draw on days that are not earned yet. Other capped leave types are limited
by the current balance.
"""

from __future__ import annotations

import math
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from hr_selfservice.exceptions import InsufficientBalanceError
from hr_selfservice.models.enums import LeaveType

if TYPE_CHECKING:
    from hr_selfservice.schemas.forms import VacationForm
    from hr_selfservice.schemas.vacation import VacationBalance

ANNUAL_DAYS_BY_CONTRACT = {
    "30 Days Yearly": 30,
    "21 Days Yearly": 21,
}
UNCAPPED_LEAVE_TYPES = frozenset({LeaveType.EMERGENCY, LeaveType.UNPAID})
_FEMALE_ONLY_LEAVE_TYPES = frozenset({LeaveType.PREGNANCY, LeaveType.HUSBAND_DEATH})


def leave_types_for(gender: str | None) -> list[LeaveType]:
    """Leave types offered to an employee of the given gender."""
    if (gender or "").strip().lower() == "male":
        return [t for t in LeaveType if t not in _FEMALE_ONLY_LEAVE_TYPES]
    return list(LeaveType)


def daily_accrual_rate(contract_type: str | None, leave_type: LeaveType) -> Decimal:
    if leave_type != LeaveType.ANNUAL:
        return Decimal(0)
    days = ANNUAL_DAYS_BY_CONTRACT.get(contract_type or "")
    return Decimal(days) / 365 if days else Decimal(0)


def max_available_days(
    balance: Decimal,
    leave_type: LeaveType,
    contract_type: str | None,
    end_date: date | None,
    today: date,
) -> int:
    """Whole days available for a request ending on ``end_date``.

    Without an end date, annual leave accrues to the end of the year.
    """
    if leave_type != LeaveType.ANNUAL:
        return math.floor(balance)
    accrual_end = end_date or date(today.year, 12, 31)
    days_ahead = max(0, (accrual_end - today).days)
    return math.floor(balance + daily_accrual_rate(contract_type, leave_type) * days_ahead)


def check_balance(form: VacationForm, balances: list[VacationBalance], today: date) -> None:
    """Raise InsufficientBalanceError when ``form`` asks for more days than available."""
    if form.leave_type in UNCAPPED_LEAVE_TYPES:
        return
    match = next((b for b in balances if b.leave_type == form.leave_type), None)
    contract_type = next((b.user.contract_type for b in balances if b.user is not None), None)
    available = max_available_days(
        match.balance if match is not None else Decimal(0),
        form.leave_type,
        contract_type,
        form.end_date,
        today,
    )
    if form.requested_days > available:
        msg = f"Your request for {form.requested_days} days exceeds the maximum of {available} available days."
        raise InsufficientBalanceError(msg)
