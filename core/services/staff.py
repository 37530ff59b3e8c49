"""Employees, clients, attendance, tasks and employee documents."""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.db import atomic
from core.domain import ResourceKind, Role, TaskStatus
from core.errors import Conflict, NotFound, ValidationFailure
from core.models import Account, Attendance, ClientProfile, EmployeeDocument, EmployeeProfile, Task
from core.principal import Principal
from core.repositories.tenant import get_or_404, list_in
from core.tenancy import TenantPathSet

from .accounts import build_member
from .calculation import parse_month, round_money, to_decimal

logger = logging.getLogger("office_core.staff")

K = ResourceKind

SALARY_COMPONENTS = ("basic_salary", "traveling_allowance", "medical_allowance", "food_allowance")


def _apply(record: Any, changes: Mapping[str, Any]) -> None:
    for name, value in changes.items():
        setattr(record, name, value)


def _clean_salary_components(data: Mapping[str, Any]) -> dict[str, Any]:
    cleaned = dict(data)
    for name in SALARY_COMPONENTS:
        if name in cleaned:
            value = to_decimal(cleaned[name], field=name)
            if value < 0:
                raise ValidationFailure(f"{name} must not be negative", details={"field": name})
            cleaned[name] = round_money(value)
    if "salary_date" in cleaned and cleaned["salary_date"] is not None:
        if not 1 <= int(cleaned["salary_date"]) <= 31:
            raise ValidationFailure("salary_date must be a day of month", details={"field": "salary_date"})
    return cleaned


def require_member(session: Session, paths: TenantPathSet, user_id: str) -> Account:
    account = (
        session.query(Account)
        .filter(Account.collection == paths[K.USERS], Account.id == user_id)
        .first()
    )
    if account is None:
        raise NotFound(f"users {user_id} not found")
    return account


# ---------------------------------------------------------------------------
# employees
# ---------------------------------------------------------------------------


def create_employee(
    session: Session,
    creator: Principal,
    paths: TenantPathSet,
    account_fields: Mapping[str, Any],
    profile_fields: Mapping[str, Any],
) -> tuple[Account, EmployeeProfile]:
    """Create the login account and the employee profile together, or neither."""
    profile_data = _clean_salary_components(profile_fields)
    account = build_member(session, creator, paths, role=Role.EMPLOYEE, **account_fields)
    profile = EmployeeProfile(collection=paths[K.EMPLOYEES], user_id=account.id, **profile_data)
    with atomic(session):
        session.add(account)
        session.add(profile)
    logger.info("Created employee %s in %s", account.id, paths.root)
    return account, profile


def add_employee_profile(session: Session, paths: TenantPathSet, user_id: str, profile_fields: Mapping[str, Any]) -> EmployeeProfile:
    require_member(session, paths, user_id)
    profile = EmployeeProfile(collection=paths[K.EMPLOYEES], user_id=user_id, **_clean_salary_components(profile_fields))
    try:
        with atomic(session):
            session.add(profile)
    except IntegrityError as exc:
        raise Conflict("employee profile already exists", code="profile_exists") from exc
    return profile


def get_employee(session: Session, paths: TenantPathSet, user_id: str) -> EmployeeProfile:
    profile = (
        session.query(EmployeeProfile)
        .filter(EmployeeProfile.collection == paths[K.EMPLOYEES], EmployeeProfile.user_id == user_id)
        .first()
    )
    if profile is None:
        raise NotFound(f"employees {user_id} not found")
    return profile


def list_employees(session: Session, paths: TenantPathSet) -> list[EmployeeProfile]:
    return list_in(session, EmployeeProfile, paths, K.EMPLOYEES, order_by=EmployeeProfile.created_at)


def update_employee(session: Session, paths: TenantPathSet, user_id: str, changes: Mapping[str, Any]) -> EmployeeProfile:
    cleaned = _clean_salary_components(changes)
    with atomic(session):
        profile = get_employee(session, paths, user_id)
        _apply(profile, cleaned)
    return profile


# ---------------------------------------------------------------------------
# clients
# ---------------------------------------------------------------------------


def create_client(
    session: Session,
    creator: Principal,
    paths: TenantPathSet,
    account_fields: Mapping[str, Any],
    profile_fields: Mapping[str, Any],
) -> tuple[Account, ClientProfile]:
    account = build_member(session, creator, paths, role=Role.CLIENT, **account_fields)
    profile = ClientProfile(collection=paths[K.CLIENTS], user_id=account.id, **profile_fields)
    with atomic(session):
        session.add(account)
        session.add(profile)
    return account, profile


def list_clients(session: Session, paths: TenantPathSet) -> list[ClientProfile]:
    return list_in(session, ClientProfile, paths, K.CLIENTS, order_by=ClientProfile.created_at)


# ---------------------------------------------------------------------------
# attendance
# ---------------------------------------------------------------------------


def record_attendance(
    session: Session,
    paths: TenantPathSet,
    employee_id: str,
    attendance_date: dt.date,
    *,
    is_present: bool = True,
    notes: str = "",
) -> Attendance:
    require_member(session, paths, employee_id)
    record = Attendance(
        collection=paths[K.ATTENDANCE],
        employee_id=employee_id,
        attendance_date=attendance_date,
        is_present=is_present,
        notes=notes or "",
    )
    try:
        with atomic(session):
            session.add(record)
    except IntegrityError as exc:
        raise Conflict("attendance already recorded for that day", code="attendance_exists") from exc
    return record


def update_attendance(session: Session, paths: TenantPathSet, attendance_id: str, changes: Mapping[str, Any]) -> Attendance:
    try:
        with atomic(session):
            record = get_or_404(session, Attendance, paths, K.ATTENDANCE, attendance_id)
            _apply(record, changes)
    except IntegrityError as exc:
        raise Conflict("attendance already recorded for that day", code="attendance_exists") from exc
    return record


def delete_attendance(session: Session, paths: TenantPathSet, attendance_id: str) -> None:
    with atomic(session):
        session.delete(get_or_404(session, Attendance, paths, K.ATTENDANCE, attendance_id))


def list_attendance(
    session: Session,
    paths: TenantPathSet,
    *,
    employee_id: Optional[str] = None,
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
) -> list[Attendance]:
    criteria = []
    if employee_id:
        criteria.append(Attendance.employee_id == employee_id)
    if start:
        criteria.append(Attendance.attendance_date >= start)
    if end:
        criteria.append(Attendance.attendance_date <= end)
    return list_in(session, Attendance, paths, K.ATTENDANCE, *criteria, order_by=Attendance.attendance_date)


# ---------------------------------------------------------------------------
# tasks
# ---------------------------------------------------------------------------


def create_task(session: Session, paths: TenantPathSet, data: Mapping[str, Any], *, assigned_by: str) -> Task:
    require_member(session, paths, data["employee_id"])
    task = Task(collection=paths[K.TASKS], assigned_by=assigned_by, **data)
    with atomic(session):
        session.add(task)
    return task


def update_task(session: Session, paths: TenantPathSet, task: Task, changes: Mapping[str, Any]) -> Task:
    if "employee_id" in changes:
        require_member(session, paths, changes["employee_id"])
    with atomic(session):
        _apply(task, changes)
    return task


def delete_task(session: Session, paths: TenantPathSet, task_id: str) -> None:
    with atomic(session):
        session.delete(get_or_404(session, Task, paths, K.TASKS, task_id))


def list_tasks(session: Session, paths: TenantPathSet, *, employee_id: Optional[str] = None, project_id: Optional[str] = None) -> list[Task]:
    criteria = []
    if employee_id:
        criteria.append(Task.employee_id == employee_id)
    if project_id:
        criteria.append(Task.project_id == project_id)
    return list_in(session, Task, paths, K.TASKS, *criteria, order_by=Task.created_at)


def monthly_task_stats(tasks: Iterable[Task], month: str) -> list[dict[str, Any]]:
    """Per-employee task counts by status for tasks created in ``month``."""
    year, mon = parse_month(month)
    stats: dict[str, dict[str, int]] = defaultdict(lambda: {s.value: 0 for s in TaskStatus})
    for task in tasks:
        created = task.created_at
        if created is None or (created.year, created.month) != (year, mon):
            continue
        bucket = stats[task.employee_id]
        bucket[task.status] = bucket.get(task.status, 0) + 1
    rows = []
    for employee_id, counts in sorted(stats.items()):
        total = sum(counts.values())
        done = counts.get(TaskStatus.DONE.value, 0)
        rows.append(
            {
                "employeeId": employee_id,
                "total": total,
                "byStatus": counts,
                "completionRate": round(done * 100 / total, 2) if total else 0,
            }
        )
    return rows


# ---------------------------------------------------------------------------
# documents
# ---------------------------------------------------------------------------


def create_document(session: Session, paths: TenantPathSet, data: Mapping[str, Any], *, created_by: str) -> EmployeeDocument:
    require_member(session, paths, data["employee_id"])
    document = EmployeeDocument(collection=paths[K.DOCUMENTS], created_by=created_by, **data)
    with atomic(session):
        session.add(document)
    return document


def delete_document(session: Session, paths: TenantPathSet, document_id: str) -> None:
    with atomic(session):
        session.delete(get_or_404(session, EmployeeDocument, paths, K.DOCUMENTS, document_id))
