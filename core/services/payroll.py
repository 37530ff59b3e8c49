"""Monthly payroll: generation from attendance and advances, payment ledger, hold flag.

Per (employee, month) a salary moves absent -> generated -> paid. The held
flag is orthogonal to that progression. Salaries are never recomputed once
generated; only payments and hold/release touch them afterwards.
"""

from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.db import atomic
from core.domain import ResourceKind, TaskStatus
from core.errors import Conflict, NotFound
from core.models import Attendance, EmployeeProfile, Salary, SalaryAdvance, SalaryPayment, Task
from core.repositories.tenant import get_or_404
from core.settings import OfficeSettings, get_settings
from core.tenancy import TenantPathSet

from .calculation import (
    ZERO,
    compute_salary,
    month_bounds,
    parse_month,
    require_non_negative,
    round_money,
    to_decimal,
    working_days,
)

logger = logging.getLogger("office_core.payroll")

K = ResourceKind


class PayrollEngine:
    def __init__(self, session: Session, paths: TenantPathSet, settings: Optional[OfficeSettings] = None) -> None:
        self.session = session
        self.paths = paths
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    def employee_profile(self, employee_id: str) -> EmployeeProfile:
        profile = (
            self.session.query(EmployeeProfile)
            .filter(EmployeeProfile.collection == self.paths[K.EMPLOYEES], EmployeeProfile.user_id == employee_id)
            .first()
        )
        if profile is None:
            raise NotFound(f"employee {employee_id} not found")
        return profile

    def salary_for(self, employee_id: str, month: str) -> Salary | None:
        return (
            self.session.query(Salary)
            .filter(
                Salary.collection == self.paths[K.SALARIES],
                Salary.employee_id == employee_id,
                Salary.month == month,
            )
            .first()
        )

    def present_days(self, employee_id: str, start: dt.date, end: dt.date) -> int:
        return int(
            self.session.query(func.count(Attendance.id))
            .filter(
                Attendance.collection == self.paths[K.ATTENDANCE],
                Attendance.employee_id == employee_id,
                Attendance.attendance_date >= start,
                Attendance.attendance_date <= end,
                Attendance.is_present.is_(True),
            )
            .scalar()
            or 0
        )

    def advance_total(self, employee_id: str, month: str, start: dt.date, end: dt.date) -> Decimal:
        total = (
            self.session.query(func.coalesce(func.sum(SalaryAdvance.amount), 0))
            .filter(
                SalaryAdvance.collection == self.paths[K.SALARY_ADVANCES],
                SalaryAdvance.employee_id == employee_id,
                or_(
                    SalaryAdvance.period == month,
                    and_(
                        SalaryAdvance.period.is_(None),
                        SalaryAdvance.advance_date >= start,
                        SalaryAdvance.advance_date <= end,
                    ),
                ),
            )
            .scalar()
        )
        return to_decimal(total)

    def open_task_count(self, employee_id: str) -> int:
        return int(
            self.session.query(func.count(Task.id))
            .filter(
                Task.collection == self.paths[K.TASKS],
                Task.employee_id == employee_id,
                Task.status != TaskStatus.DONE.value,
            )
            .scalar()
            or 0
        )

    def get(self, salary_id: str) -> Salary:
        return get_or_404(self.session, Salary, self.paths, K.SALARIES, salary_id)

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------

    def generate(self, employee_id: str, month: str, *, generated_by: str = "", other_deductions=ZERO) -> Salary:
        year, mon = parse_month(month)
        month = f"{year:04d}-{mon:02d}"
        other = to_decimal(other_deductions, field="otherDeductions")
        require_non_negative(other_deductions=other)

        profile = self.employee_profile(employee_id)
        if self.salary_for(employee_id, month) is not None:
            raise Conflict(f"salary for {employee_id} in {month} already exists", code="salary_exists")

        start, end = month_bounds(year, mon)
        figures = compute_salary(
            basic_salary=to_decimal(profile.basic_salary),
            traveling_allowance=to_decimal(profile.traveling_allowance),
            medical_allowance=to_decimal(profile.medical_allowance),
            food_allowance=to_decimal(profile.food_allowance),
            working_day_count=working_days(year, mon, self.settings.weekly_holiday),
            present_days=self.present_days(employee_id, start, end),
            advance_total=self.advance_total(employee_id, month, start, end),
            other_deductions=other,
        )
        held = self.open_task_count(employee_id) > 0

        salary = Salary(
            collection=self.paths[K.SALARIES],
            employee_id=employee_id,
            month=month,
            basic_salary=round_money(to_decimal(profile.basic_salary)),
            traveling_allowance=round_money(to_decimal(profile.traveling_allowance)),
            medical_allowance=round_money(to_decimal(profile.medical_allowance)),
            food_allowance=round_money(to_decimal(profile.food_allowance)),
            total_earnings=figures.total_earnings,
            advance_paid=figures.advance_paid,
            absent_deductions=figures.absent_deductions,
            other_deductions=figures.other_deductions,
            total_deductions=figures.total_deductions,
            net_salary=figures.net_salary,
            paid_amount=ZERO,
            remaining_amount=figures.net_salary,
            is_paid=False,
            is_held=held,
            salary_date=profile.salary_date or 10,
            attendance_days=figures.present_days,
            total_working_days=figures.working_days,
            generated_by=generated_by,
        )
        try:
            with atomic(self.session):
                self.session.add(salary)
        except IntegrityError as exc:
            # a concurrent generate won the unique (employee, month) slot
            raise Conflict(f"salary for {employee_id} in {month} already exists", code="salary_exists") from exc
        logger.info(
            "Generated salary %s for %s/%s net=%s held=%s", salary.id, employee_id, month, salary.net_salary, held
        )
        return salary

    # ------------------------------------------------------------------
    # ledger
    # ------------------------------------------------------------------

    def record_payment(
        self,
        salary_id: str,
        amount,
        payment_date: dt.date,
        *,
        method: str = "cash",
        notes: str = "",
        paid_by: str = "",
    ) -> tuple[Salary, SalaryPayment]:
        value = to_decimal(amount)
        require_non_negative(amount=value)
        with atomic(self.session):
            salary = (
                self.session.query(Salary)
                .filter(Salary.collection == self.paths[K.SALARIES], Salary.id == salary_id)
                .with_for_update()
                .first()
            )
            if salary is None:
                raise NotFound(f"salaries {salary_id} not found")
            if salary.is_held and self.settings.payroll_hold_blocks_payment:
                raise Conflict("salary is on hold", code="salary_held")

            payment = SalaryPayment(
                collection=self.paths[K.SALARY_PAYMENTS],
                salary_id=salary.id,
                amount=round_money(value),
                payment_date=payment_date,
                payment_method=method or "cash",
                notes=notes or "",
                paid_by=paid_by,
            )
            self.session.add(payment)
            self.session.flush()

            paid = self.session.query(func.coalesce(func.sum(SalaryPayment.amount), 0)).filter(
                SalaryPayment.salary_id == salary.id
            ).scalar()
            was_paid = bool(salary.is_paid)
            salary.paid_amount = round_money(to_decimal(paid))
            salary.remaining_amount = round_money(to_decimal(salary.net_salary) - salary.paid_amount)
            salary.is_paid = salary.remaining_amount <= 0
            if salary.is_paid and not was_paid:
                salary.paid_date = payment_date
        logger.info(
            "Recorded payment %s on salary %s amount=%s remaining=%s",
            payment.id, salary.id, payment.amount, salary.remaining_amount,
        )
        return salary, payment

    def payments(self, salary_id: str) -> list[SalaryPayment]:
        return (
            self.session.query(SalaryPayment)
            .filter(SalaryPayment.collection == self.paths[K.SALARY_PAYMENTS], SalaryPayment.salary_id == salary_id)
            .order_by(SalaryPayment.payment_date.asc(), SalaryPayment.created_at.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # hold flag
    # ------------------------------------------------------------------

    def _set_held(self, salary_id: str, held: bool) -> Salary:
        with atomic(self.session):
            salary = self.get(salary_id)
            salary.is_held = held
        return salary

    def hold(self, salary_id: str) -> Salary:
        return self._set_held(salary_id, True)

    def release(self, salary_id: str) -> Salary:
        return self._set_held(salary_id, False)

    def delete(self, salary_id: str) -> None:
        """Remove a salary together with its ledger entries."""
        with atomic(self.session):
            salary = self.get(salary_id)
            self.session.delete(salary)

    # ------------------------------------------------------------------
    # advances
    # ------------------------------------------------------------------

    def add_advance(
        self,
        employee_id: str,
        amount,
        advance_date: dt.date,
        *,
        period: Optional[str] = None,
        reason: str = "",
        paid_by: str = "",
    ) -> SalaryAdvance:
        value = to_decimal(amount)
        require_non_negative(amount=value)
        if period:
            year, mon = parse_month(period)
            period = f"{year:04d}-{mon:02d}"
        self.employee_profile(employee_id)
        advance = SalaryAdvance(
            collection=self.paths[K.SALARY_ADVANCES],
            employee_id=employee_id,
            amount=round_money(value),
            advance_date=advance_date,
            period=period or None,
            reason=reason or "",
            paid_by=paid_by,
        )
        with atomic(self.session):
            self.session.add(advance)
        return advance
