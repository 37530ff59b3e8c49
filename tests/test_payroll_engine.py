from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from conftest import seed_account
from core.domain import Role, TaskStatus
from core.errors import Conflict, NotFound, ValidationFailure
from core.models import Salary, SalaryPayment
from core.services import staff
from core.services.payroll import PayrollEngine
from core.settings import reset_settings_cache

D = Decimal
MONTH = "2025-09"


def _working_dates(count: int) -> list[dt.date]:
    dates = []
    day = dt.date(2025, 9, 1)
    while len(dates) < count:
        if day.weekday() != 6:
            dates.append(day)
        day += dt.timedelta(days=1)
    return dates


@pytest.fixture()
def employee(session, house_paths):
    account = seed_account(session, "esha", Role.EMPLOYEE)
    staff.add_employee_profile(
        session,
        house_paths,
        account.id,
        {
            "basic_salary": "20000",
            "traveling_allowance": "3000",
            "medical_allowance": "2000",
            "food_allowance": "1000",
            "salary_date": 5,
        },
    )
    for day in _working_dates(24):
        staff.record_attendance(session, house_paths, account.id, day)
    return account


@pytest.fixture()
def engine(session, house_paths):
    return PayrollEngine(session, house_paths)


def test_generate_prorates_attendance_and_subtracts_advances(engine, employee):
    engine.add_advance(employee.id, "1500", dt.date(2025, 8, 28), period=MONTH)
    engine.add_advance(employee.id, "500", dt.date(2025, 9, 10))
    # belongs to August
    engine.add_advance(employee.id, "900", dt.date(2025, 8, 15))

    salary = engine.generate(employee.id, MONTH, generated_by="owner")

    assert salary.total_working_days == 26
    assert salary.attendance_days == 24
    assert salary.total_earnings == D("26000.00")
    assert salary.absent_deductions == D("2000.00")
    assert salary.advance_paid == D("2000.00")
    assert salary.total_deductions == D("4000.00")
    assert salary.net_salary == D("22000.00")
    assert salary.remaining_amount == salary.net_salary
    assert salary.paid_amount == D("0")
    assert salary.salary_date == 5
    assert salary.is_paid is False
    assert salary.is_held is False
    assert salary.collection == "studio_office/data/salaries"


def test_absent_marks_do_not_count_as_presence(session, house_paths, engine, employee):
    staff.record_attendance(session, house_paths, employee.id, dt.date(2025, 9, 29), is_present=False)
    salary = engine.generate(employee.id, MONTH)
    assert salary.attendance_days == 24


def test_generate_twice_for_same_month_conflicts(engine, employee):
    engine.generate(employee.id, MONTH)
    with pytest.raises(Conflict) as excinfo:
        engine.generate(employee.id, MONTH)
    assert excinfo.value.code == "salary_exists"


def test_lost_generation_race_is_caught_by_unique_month(monkeypatch, session, engine, employee):
    engine.generate(employee.id, MONTH)
    # the second caller checked before the first one committed
    monkeypatch.setattr(engine, "salary_for", lambda employee_id, month: None)

    with pytest.raises(Conflict) as err:
        engine.generate(employee.id, MONTH)
    assert err.value.code == "salary_exists"
    assert session.query(Salary).filter_by(employee_id=employee.id, month=MONTH).count() == 1


def test_generate_rejects_unknown_employee_and_bad_input(engine, employee):
    with pytest.raises(NotFound):
        engine.generate("nobody", MONTH)
    with pytest.raises(ValidationFailure):
        engine.generate(employee.id, "2025-9")
    with pytest.raises(ValidationFailure):
        engine.generate(employee.id, MONTH, other_deductions="-10")


def test_employee_of_another_tenant_is_not_found(session, employee):
    from core.tenancy import TenantPathSet

    other = PayrollEngine(session, TenantPathSet.under("individuals/u1/data"))
    with pytest.raises(NotFound):
        other.generate(employee.id, MONTH)


def test_payments_settle_salary_once(session, engine, employee):
    salary = engine.generate(employee.id, MONTH)

    salary, _ = engine.record_payment(salary.id, "10000", dt.date(2025, 10, 5))
    assert salary.paid_amount == D("10000.00")
    assert salary.remaining_amount == D("12000.00")
    assert salary.is_paid is False

    salary, _ = engine.record_payment(salary.id, "5000", dt.date(2025, 10, 8), method="bank")
    salary, payment = engine.record_payment(salary.id, "7000", dt.date(2025, 10, 12))
    assert payment.amount == D("7000.00")
    assert salary.remaining_amount == D("0.00")
    assert salary.is_paid is True
    assert salary.paid_date == dt.date(2025, 10, 12)

    # an overpayment keeps the original settlement date
    salary, _ = engine.record_payment(salary.id, "100", dt.date(2025, 10, 20))
    assert salary.is_paid is True
    assert salary.remaining_amount == D("-100.00")
    assert salary.paid_date == dt.date(2025, 10, 12)

    ledger = engine.payments(salary.id)
    assert [p.amount for p in ledger] == [D("10000.00"), D("5000.00"), D("7000.00"), D("100.00")]
    assert ledger[1].payment_method == "bank"


def test_payment_validation(engine, employee):
    salary = engine.generate(employee.id, MONTH)
    with pytest.raises(ValidationFailure):
        engine.record_payment(salary.id, "-1", dt.date(2025, 10, 1))
    with pytest.raises(NotFound):
        engine.record_payment("missing", "1", dt.date(2025, 10, 1))


def test_open_tasks_hold_salary_on_generation(session, house_paths, engine, employee):
    staff.create_task(
        session,
        house_paths,
        {"employee_id": employee.id, "task_type": "Design CAD", "status": TaskStatus.IN_PROGRESS.value},
        assigned_by="owner",
    )
    salary = engine.generate(employee.id, MONTH)
    assert salary.is_held is True

    # informational by default; payments still go through
    salary, _ = engine.record_payment(salary.id, "1000", dt.date(2025, 10, 1))
    assert salary.paid_amount == D("1000.00")

    assert engine.release(salary.id).is_held is False
    assert engine.hold(salary.id).is_held is True


def test_finished_tasks_do_not_hold(session, house_paths, engine, employee):
    staff.create_task(
        session,
        house_paths,
        {"employee_id": employee.id, "task_type": "IFCs", "status": TaskStatus.DONE.value},
        assigned_by="owner",
    )
    assert engine.generate(employee.id, MONTH).is_held is False


def test_hold_can_block_payments(monkeypatch, session, house_paths, employee):
    monkeypatch.setenv("PAYROLL_HOLD_BLOCKS_PAYMENT", "1")
    reset_settings_cache()
    engine = PayrollEngine(session, house_paths)
    salary = engine.generate(employee.id, MONTH)
    engine.hold(salary.id)
    with pytest.raises(Conflict) as excinfo:
        engine.record_payment(salary.id, "1000", dt.date(2025, 10, 1))
    assert excinfo.value.code == "salary_held"
    engine.release(salary.id)
    salary, _ = engine.record_payment(salary.id, "1000", dt.date(2025, 10, 1))
    assert salary.paid_amount == D("1000.00")


def test_delete_removes_ledger(session, engine, employee):
    salary = engine.generate(employee.id, MONTH)
    engine.record_payment(salary.id, "500", dt.date(2025, 10, 1))
    engine.delete(salary.id)
    assert session.query(SalaryPayment).count() == 0
    with pytest.raises(NotFound):
        engine.get(salary.id)
    # the month can be generated again afterwards
    assert engine.generate(employee.id, MONTH).net_salary == D("24000.00")


def test_advance_for_unknown_employee_is_rejected(engine):
    with pytest.raises(NotFound):
        engine.add_advance("ghost", "100", dt.date(2025, 9, 1))
