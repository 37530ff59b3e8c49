from __future__ import annotations

from decimal import Decimal

import pytest

from core.errors import ValidationFailure
from core.services.calculation import compute_salary, month_bounds, parse_month, round_money, working_days

D = Decimal


def _figures(present: int, **overrides):
    kwargs = dict(
        basic_salary=D("20000"),
        traveling_allowance=D("3000"),
        medical_allowance=D("2000"),
        food_allowance=D("1000"),
        working_day_count=26,
        present_days=present,
        advance_total=D("0"),
    )
    kwargs.update(overrides)
    return compute_salary(**kwargs)


def test_working_days_excludes_weekly_holiday():
    # September 2025 has four Sundays
    assert working_days(2025, 9, 6) == 26
    # February 2024 (leap year) has four Fridays
    assert working_days(2024, 2, 4) == 25
    assert month_bounds(2024, 2)[1].day == 29


def test_absent_days_are_deducted_at_the_daily_rate():
    figures = _figures(24)
    assert figures.total_earnings == D("26000.00")
    assert figures.per_day_rate == D("1000.00")
    assert figures.absent_deductions == D("2000.00")
    assert figures.net_salary == D("24000.00")


def test_advances_and_other_deductions_reduce_net():
    figures = _figures(26, advance_total=D("1500"), other_deductions=D("250.50"))
    assert figures.absent_deductions == D("0.00")
    assert figures.total_deductions == D("1750.50")
    assert figures.net_salary == D("24249.50")


def test_attendance_beyond_working_days_never_raises_pay():
    figures = _figures(30)
    assert figures.absent_deductions == D("0.00")
    assert figures.net_salary == figures.total_earnings


def test_money_rounds_half_up():
    assert round_money(D("10.005")) == D("10.01")
    assert round_money(D("10.004")) == D("10.00")
    figures = _figures(25, basic_salary=D("100"), traveling_allowance=D("0"), medical_allowance=D("0"), food_allowance=D("0"), working_day_count=3)
    # 100 / 3 * (3 - 25 clamped to 0)
    assert figures.absent_deductions == D("0.00")
    figures = _figures(1, basic_salary=D("100"), traveling_allowance=D("0"), medical_allowance=D("0"), food_allowance=D("0"), working_day_count=3)
    assert figures.absent_deductions == D("66.67")
    assert figures.net_salary == D("33.33")


def test_negative_inputs_are_rejected():
    with pytest.raises(ValidationFailure):
        _figures(20, basic_salary=D("-1"))
    with pytest.raises(ValidationFailure):
        _figures(20, advance_total=D("-5"))
    with pytest.raises(ValidationFailure):
        _figures(-1)


@pytest.mark.parametrize("bad", ["2025-13", "2025-00", "25-01", "2025/01", "", "abcd-ef"])
def test_parse_month_rejects_malformed_values(bad):
    with pytest.raises(ValidationFailure):
        parse_month(bad)


def test_parse_month_accepts_padded_month():
    assert parse_month("2025-09") == (2025, 9)


hypothesis = pytest.importorskip("hypothesis")
st = pytest.importorskip("hypothesis.strategies")


@hypothesis.given(
    basic=st.integers(min_value=0, max_value=500_000),
    days=st.integers(min_value=20, max_value=27),
    present=st.integers(min_value=0, max_value=31),
)
def test_deductions_never_exceed_earnings_without_advances(basic, days, present):
    figures = _figures(
        present,
        basic_salary=D(basic),
        traveling_allowance=D("0"),
        medical_allowance=D("0"),
        food_allowance=D("0"),
        working_day_count=days,
    )
    assert D("0") <= figures.absent_deductions <= figures.total_earnings + D("0.01")
    assert figures.net_salary >= D("-0.01")
