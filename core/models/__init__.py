from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

MONEY = Numeric(14, 2)


class Base(DeclarativeBase):
    pass


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Global (tenant-agnostic) tables
# ---------------------------------------------------------------------------


class Account(Base):
    """Identity store entry. Tenant placement is derived from the classification columns."""

    __tablename__ = "accounts"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(200), default="")
    password_hash: Mapped[str] = mapped_column(String(255), default="")
    full_name: Mapped[str] = mapped_column(String(200), default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_founder: Mapped[bool] = mapped_column(Boolean, default=False)
    is_platform_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    account_type: Mapped[str] = mapped_column(String(20), default="")
    organization_id: Mapped[Optional[str]] = mapped_column(String(80))
    owner_id: Mapped[Optional[str]] = mapped_column(String(32))
    provider_uid: Mapped[Optional[str]] = mapped_column(String(128), unique=True)
    # tenant users-collection the account was created under
    collection: Mapped[str] = mapped_column(String(255), default="", index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class AuthSession(Base):
    __tablename__ = "auth_sessions"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    path: Mapped[str] = mapped_column(String(255), nullable=False)
    body_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_root: Mapped[str] = mapped_column(String(255), default="")
    # both stay NULL while the first request under the key is still running
    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("tenant_root", "key", "method", "path", name="uq_idem_key_scope"),
    )


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)
    actor: Mapped[str] = mapped_column(String(120), default="")
    action: Mapped[str] = mapped_column(String(80), default="")
    resource: Mapped[str] = mapped_column(String(255), default="")
    tenant_root: Mapped[str] = mapped_column(String(255), default="", index=True)
    ip: Mapped[str] = mapped_column(String(64), default="")
    ua: Mapped[str] = mapped_column(String(255), default="")
    result: Mapped[str] = mapped_column(String(40), default="ok")
    meta_json: Mapped[str] = mapped_column(Text, default="{}")


# ---------------------------------------------------------------------------
# Tenant-owned tables. ``collection`` holds the physical path of the kind.
# ---------------------------------------------------------------------------


class Project(Base):
    __tablename__ = "projects"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_name: Mapped[str] = mapped_column(String(200), default="")
    project_title: Mapped[str] = mapped_column(String(200), default="")
    start_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    delivery_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    created_by: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    divisions: Mapped[list["Division"]] = relationship(
        back_populates="project", cascade="all, delete-orphan", order_by="Division.position"
    )


class Division(Base):
    __tablename__ = "divisions"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    project: Mapped[Project] = relationship(back_populates="divisions")
    items: Mapped[list["Item"]] = relationship(back_populates="division", cascade="all, delete-orphan")


class Item(Base):
    __tablename__ = "items"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    division_id: Mapped[str] = mapped_column(ForeignKey("divisions.id"), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="number")
    quantity: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    rate: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    priority: Mapped[str] = mapped_column(String(10), default="Mid")
    status: Mapped[str] = mapped_column(String(40), default="Not Started")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    division: Mapped[Division] = relationship(back_populates="items")


class Assignment(Base):
    __tablename__ = "assignments"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    assigned_by: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("collection", "project_id", "user_id", name="uq_assignment_project_user"),
    )


class EmployeeProfile(Base):
    __tablename__ = "employee_profiles"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    designation: Mapped[str] = mapped_column(String(120), default="")
    id_card: Mapped[str] = mapped_column(String(60), default="")
    whatsapp: Mapped[str] = mapped_column(String(40), default="")
    home_address: Mapped[str] = mapped_column(Text, default="")
    joining_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    basic_salary: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    traveling_allowance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    medical_allowance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    food_allowance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    salary_date: Mapped[int] = mapped_column(Integer, default=10)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("collection", "user_id", name="uq_employee_profile_user"),
    )


class ClientProfile(Base):
    __tablename__ = "client_profiles"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    company_name: Mapped[str] = mapped_column(String(200), default="")
    contact_number: Mapped[str] = mapped_column(String(40), default="")
    address: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("collection", "user_id", name="uq_client_profile_user"),
    )


class Task(Base):
    __tablename__ = "tasks"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    project_id: Mapped[Optional[str]] = mapped_column(String(32), index=True)
    employee_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    task_type: Mapped[str] = mapped_column(String(40), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="Undone")
    remarks: Mapped[str] = mapped_column(Text, default="")
    due_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    assigned_by: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class ProcurementItem(Base):
    __tablename__ = "procurement_items"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    project_cost: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    execution_cost: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    is_purchased: Mapped[bool] = mapped_column(Boolean, default=False)
    bill_number: Mapped[str] = mapped_column(String(80), default="")
    rental_details: Mapped[str] = mapped_column(Text, default="")
    quantity: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("1"))
    unit: Mapped[str] = mapped_column(String(20), default="number")
    notes: Mapped[str] = mapped_column(Text, default="")
    purchased_by: Mapped[str] = mapped_column(String(32), default="")
    purchased_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Attendance(Base):
    __tablename__ = "attendance"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    employee_id: Mapped[str] = mapped_column(String(32), nullable=False)
    attendance_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_present: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint("collection", "employee_id", "attendance_date", name="uq_attendance_employee_day"),
        Index("ix_attendance_employee_date", "collection", "employee_id", "attendance_date"),
    )


class SalaryAdvance(Base):
    __tablename__ = "salary_advances"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    employee_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    advance_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # optional target month (YYYY-MM); falls back to advance_date's month
    period: Mapped[Optional[str]] = mapped_column(String(7))
    reason: Mapped[str] = mapped_column(Text, default="")
    paid_by: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Salary(Base):
    __tablename__ = "salaries"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    employee_id: Mapped[str] = mapped_column(String(32), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    traveling_allowance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    medical_allowance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    food_allowance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    advance_paid: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    absent_deductions: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    other_deductions: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    net_salary: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    remaining_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False)
    is_held: Mapped[bool] = mapped_column(Boolean, default=False)
    paid_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    salary_date: Mapped[int] = mapped_column(Integer, default=10)
    attendance_days: Mapped[int] = mapped_column(Integer, default=0)
    total_working_days: Mapped[int] = mapped_column(Integer, default=0)
    generated_by: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    payments: Mapped[list["SalaryPayment"]] = relationship(
        back_populates="salary", cascade="all, delete-orphan", order_by="SalaryPayment.created_at"
    )

    __table_args__ = (
        UniqueConstraint("collection", "employee_id", "month", name="uq_salary_employee_month"),
    )


class SalaryPayment(Base):
    __tablename__ = "salary_payments"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    salary_id: Mapped[str] = mapped_column(ForeignKey("salaries.id"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(40), default="cash")
    notes: Mapped[str] = mapped_column(Text, default="")
    paid_by: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    salary: Mapped[Salary] = relationship(back_populates="payments")


class Comment(Base):
    __tablename__ = "comments"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class ProjectFinancials(Base):
    __tablename__ = "project_financials"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(String(32), nullable=False)
    contract_value: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    amount_received: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    work_completed: Mapped[int] = mapped_column(Integer, default=0)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    archived_date: Mapped[Optional[dt.date]] = mapped_column(Date)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("collection", "project_id", name="uq_financials_project"),
    )


class EmployeeDocument(Base):
    __tablename__ = "employee_documents"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    collection: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    employee_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    document_type: Mapped[str] = mapped_column(String(60), nullable=False)
    title: Mapped[str] = mapped_column(String(200), default="")
    body: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str] = mapped_column(String(32), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
