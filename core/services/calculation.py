from __future__ import annotations

import calendar
import datetime as dt
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from core.errors import ValidationFailure

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value, *, field: str = "amount") -> Decimal:
    if value in (None, ""):
        return ZERO
    try:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(str(value).replace(",", ""))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationFailure(f"{field} is not a number") from exc


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def require_non_negative(**values: Decimal) -> None:
    for name, value in values.items():
        if value < 0:
            raise ValidationFailure(f"{name} must not be negative", details={"field": name})


def parse_month(month: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` string into (year, month)."""
    match = _MONTH_RE.match((month or "").strip())
    if not match:
        raise ValidationFailure("month must use the YYYY-MM format", details={"field": "month"})
    year, mon = int(match.group(1)), int(match.group(2))
    if not 1 <= mon <= 12:
        raise ValidationFailure("month must be between 01 and 12", details={"field": "month"})
    return year, mon


def month_bounds(year: int, month: int) -> tuple[dt.date, dt.date]:
    last = calendar.monthrange(year, month)[1]
    return dt.date(year, month, 1), dt.date(year, month, last)


def working_days(year: int, month: int, weekly_holiday: int = calendar.SUNDAY) -> int:
    """Days in the month minus every occurrence of the weekly holiday."""
    total = calendar.monthrange(year, month)[1]
    holidays = sum(1 for day in range(1, total + 1) if dt.date(year, month, day).weekday() == weekly_holiday)
    return total - holidays


@dataclass(frozen=True)
class SalaryFigures:
    total_earnings: Decimal
    per_day_rate: Decimal
    working_days: int
    present_days: int
    absent_deductions: Decimal
    advance_paid: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal


def compute_salary(
    *,
    basic_salary: Decimal,
    traveling_allowance: Decimal,
    medical_allowance: Decimal,
    food_allowance: Decimal,
    working_day_count: int,
    present_days: int,
    advance_total: Decimal,
    other_deductions: Decimal = ZERO,
) -> SalaryFigures:
    """Prorate monthly earnings by attendance and subtract advances.

    Absent days are clamped at zero so attendance on holidays never raises pay
    above total earnings.
    """
    require_non_negative(
        basic_salary=basic_salary,
        traveling_allowance=traveling_allowance,
        medical_allowance=medical_allowance,
        food_allowance=food_allowance,
        advance_total=advance_total,
        other_deductions=other_deductions,
    )
    if present_days < 0:
        raise ValidationFailure("present days must not be negative")
    if working_day_count <= 0:
        raise ValidationFailure("month has no working days")

    total_earnings = basic_salary + traveling_allowance + medical_allowance + food_allowance
    per_day = total_earnings / Decimal(working_day_count)
    absent_days = max(working_day_count - present_days, 0)
    absent_deductions = round_money(per_day * absent_days)
    total_deductions = round_money(absent_deductions + advance_total + other_deductions)
    return SalaryFigures(
        total_earnings=round_money(total_earnings),
        per_day_rate=round_money(per_day),
        working_days=working_day_count,
        present_days=present_days,
        absent_deductions=absent_deductions,
        advance_paid=round_money(advance_total),
        other_deductions=round_money(other_deductions),
        total_deductions=total_deductions,
        net_salary=round_money(total_earnings - total_deductions),
    )
