from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.domain import AccountType, ItemStatus, Priority, Role, TaskStatus, TaskType, Unit

MONTH_PATTERN = r"^\d{4}-\d{2}$"


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


def non_negative(default: str = "0"):
    return Field(default=Decimal(default), ge=0)


class HealthResponse(BaseModel):
    ok: bool
    status: Optional[str] = None
    error: Optional[str] = None


class SimpleOkResponse(BaseModel):
    ok: bool = True


class MetaResponse(BaseModel):
    app_version: str
    git_sha: Optional[str] = None
    build_ts: Optional[str] = None


# ---------------------------------------------------------------------------
# auth and users
# ---------------------------------------------------------------------------


class UserOut(ApiModel):
    id: str
    username: str
    full_name: str = ""
    email: str = ""
    role: Role
    is_active: bool = True
    account_type: str = ""
    organization_id: Optional[str] = None


class LoginRequest(ApiModel):
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=1)


class SignupRequest(ApiModel):
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=6)
    full_name: str = ""
    email: str = ""
    account_type: AccountType
    organization_id: Optional[str] = Field(default=None, max_length=80)


class ProviderSignInRequest(ApiModel):
    id_token: str = Field(min_length=1)


class TokenResponse(ApiModel):
    ok: bool = True
    token: str
    user: UserOut


class UserCreate(ApiModel):
    username: str = Field(min_length=1, max_length=120)
    password: Optional[str] = Field(default=None, min_length=6)
    role: Role
    full_name: str = ""
    email: str = ""
    provider_uid: Optional[str] = None


class UserUpdate(ApiModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=120)
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[Role] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# employees and clients
# ---------------------------------------------------------------------------


class EmployeeProfileFields(ApiModel):
    designation: str = ""
    id_card: str = ""
    whatsapp: str = ""
    home_address: str = ""
    joining_date: Optional[dt.date] = None
    basic_salary: Decimal = non_negative()
    traveling_allowance: Decimal = non_negative()
    medical_allowance: Decimal = non_negative()
    food_allowance: Decimal = non_negative()
    salary_date: int = Field(default=10, ge=1, le=31)


class EmployeeCreate(EmployeeProfileFields):
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=6)
    full_name: str = ""
    email: str = ""


class EmployeeUpdate(ApiModel):
    designation: Optional[str] = None
    id_card: Optional[str] = None
    whatsapp: Optional[str] = None
    home_address: Optional[str] = None
    joining_date: Optional[dt.date] = None
    basic_salary: Optional[Decimal] = Field(default=None, ge=0)
    traveling_allowance: Optional[Decimal] = Field(default=None, ge=0)
    medical_allowance: Optional[Decimal] = Field(default=None, ge=0)
    food_allowance: Optional[Decimal] = Field(default=None, ge=0)
    salary_date: Optional[int] = Field(default=None, ge=1, le=31)


class EmployeeOut(ApiModel):
    id: str
    user_id: str
    designation: str = ""
    id_card: str = ""
    whatsapp: str = ""
    home_address: str = ""
    joining_date: Optional[dt.date] = None
    basic_salary: float
    traveling_allowance: float
    medical_allowance: float
    food_allowance: float
    salary_date: int


class ClientCreate(ApiModel):
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=6)
    full_name: str = ""
    email: str = ""
    company_name: str = ""
    contact_number: str = ""
    address: str = ""


class ClientOut(ApiModel):
    id: str
    user_id: str
    company_name: str = ""
    contact_number: str = ""
    address: str = ""


# ---------------------------------------------------------------------------
# projects, divisions, items
# ---------------------------------------------------------------------------


class ProjectCreate(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    client_name: str = ""
    project_title: str = ""
    start_date: Optional[dt.date] = None
    delivery_date: Optional[dt.date] = None


class ProjectUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    client_name: Optional[str] = None
    project_title: Optional[str] = None
    start_date: Optional[dt.date] = None
    delivery_date: Optional[dt.date] = None


class ProjectOut(ApiModel):
    id: str
    name: str
    client_name: str = ""
    project_title: str = ""
    start_date: Optional[dt.date] = None
    delivery_date: Optional[dt.date] = None
    created_at: Optional[dt.datetime] = None


class DivisionCreate(ApiModel):
    project_id: str
    name: str = Field(min_length=1, max_length=200)
    position: Optional[int] = Field(default=None, ge=0)


class DivisionUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    position: Optional[int] = Field(default=None, ge=0)


class DivisionOut(ApiModel):
    id: str
    project_id: str
    name: str
    position: int


class ItemCreate(ApiModel):
    division_id: str
    description: str = Field(min_length=1)
    unit: Unit = Unit.NUMBER
    quantity: Decimal = non_negative()
    rate: Decimal = non_negative()
    priority: Priority = Priority.MID
    status: ItemStatus = ItemStatus.NOT_STARTED


class ItemUpdate(ApiModel):
    division_id: Optional[str] = None
    description: Optional[str] = Field(default=None, min_length=1)
    unit: Optional[Unit] = None
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    rate: Optional[Decimal] = Field(default=None, ge=0)
    priority: Optional[Priority] = None
    status: Optional[ItemStatus] = None


class ItemOut(ApiModel):
    id: str
    division_id: str
    description: str
    unit: str
    quantity: float
    rate: float
    priority: str
    status: str


class AssignRequest(ApiModel):
    user_id: str


class AssignmentCreate(AssignRequest):
    project_id: str


class AssignmentOut(ApiModel):
    id: str
    project_id: str
    user_id: str
    assigned_by: str = ""


class CommentCreate(ApiModel):
    project_id: str
    body: str = Field(min_length=1, max_length=4000)


class CommentOut(ApiModel):
    id: str
    project_id: str
    user_id: str
    body: str
    created_at: Optional[dt.datetime] = None


class FinancialsUpdate(ApiModel):
    contract_value: Optional[Decimal] = Field(default=None, ge=0)
    amount_received: Optional[Decimal] = Field(default=None, ge=0)
    work_completed: Optional[int] = Field(default=None, ge=0, le=100)
    is_archived: Optional[bool] = None


class FinancialsOut(ApiModel):
    project_id: str
    contract_value: float = 0
    amount_received: float = 0
    balance: float = 0
    work_completed: int = 0
    is_archived: bool = False
    archived_date: Optional[dt.date] = None


# ---------------------------------------------------------------------------
# tasks, attendance, procurement, documents
# ---------------------------------------------------------------------------


class TaskCreate(ApiModel):
    project_id: Optional[str] = None
    employee_id: str
    task_type: TaskType
    description: str = ""
    status: TaskStatus = TaskStatus.UNDONE
    remarks: str = ""
    due_date: Optional[dt.date] = None


class TaskUpdate(ApiModel):
    project_id: Optional[str] = None
    employee_id: Optional[str] = None
    task_type: Optional[TaskType] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    remarks: Optional[str] = None
    due_date: Optional[dt.date] = None


class TaskOut(ApiModel):
    id: str
    project_id: Optional[str] = None
    employee_id: str
    task_type: str
    description: str = ""
    status: str
    remarks: str = ""
    due_date: Optional[dt.date] = None
    assigned_by: str = ""


class AttendanceCreate(ApiModel):
    employee_id: Optional[str] = None
    attendance_date: dt.date
    is_present: bool = True
    notes: str = ""


class AttendanceUpdate(ApiModel):
    attendance_date: Optional[dt.date] = None
    is_present: Optional[bool] = None
    notes: Optional[str] = None


class AttendanceOut(ApiModel):
    id: str
    employee_id: str
    attendance_date: dt.date
    is_present: bool
    notes: str = ""


class ProcurementCreate(ApiModel):
    project_id: str
    item_name: str = Field(min_length=1, max_length=200)
    project_cost: Decimal = non_negative()
    execution_cost: Decimal = non_negative()
    is_purchased: bool = False
    bill_number: str = ""
    rental_details: str = ""
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit: Unit = Unit.NUMBER
    notes: str = ""
    purchased_by: str = ""
    purchased_date: Optional[dt.date] = None


class ProcurementUpdate(ApiModel):
    project_id: Optional[str] = None
    item_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    project_cost: Optional[Decimal] = Field(default=None, ge=0)
    execution_cost: Optional[Decimal] = Field(default=None, ge=0)
    is_purchased: Optional[bool] = None
    bill_number: Optional[str] = None
    rental_details: Optional[str] = None
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    unit: Optional[Unit] = None
    notes: Optional[str] = None
    purchased_by: Optional[str] = None
    purchased_date: Optional[dt.date] = None


class ProcurementOut(ApiModel):
    id: str
    project_id: str
    item_name: str
    project_cost: float
    execution_cost: float
    is_purchased: bool
    bill_number: str = ""
    rental_details: str = ""
    quantity: float
    unit: str
    notes: str = ""
    purchased_by: str = ""
    purchased_date: Optional[dt.date] = None


class DocumentCreate(ApiModel):
    employee_id: str
    document_type: str = Field(min_length=1, max_length=60)
    title: str = ""
    body: str = ""


class DocumentOut(ApiModel):
    id: str
    employee_id: str
    document_type: str
    title: str = ""
    body: str = ""
    created_at: Optional[dt.datetime] = None


# ---------------------------------------------------------------------------
# payroll
# ---------------------------------------------------------------------------


class SalaryGenerateRequest(ApiModel):
    employee_id: str
    month: str = Field(pattern=MONTH_PATTERN)
    other_deductions: Decimal = non_negative()


class SalaryOut(ApiModel):
    id: str
    employee_id: str
    month: str
    basic_salary: float
    traveling_allowance: float
    medical_allowance: float
    food_allowance: float
    total_earnings: float
    advance_paid: float
    absent_deductions: float
    other_deductions: float
    total_deductions: float
    net_salary: float
    paid_amount: float
    remaining_amount: float
    is_paid: bool
    is_held: bool
    paid_date: Optional[dt.date] = None
    salary_date: int
    attendance_days: int
    total_working_days: int


class PaymentCreate(ApiModel):
    salary_id: str
    amount: Decimal = Field(ge=0)
    payment_date: dt.date
    payment_method: str = "cash"
    notes: str = ""


class PaymentOut(ApiModel):
    id: str
    salary_id: str
    amount: float
    payment_date: dt.date
    payment_method: str
    notes: str = ""
    paid_by: str = ""


class AdvanceCreate(ApiModel):
    employee_id: str
    amount: Decimal = Field(ge=0)
    advance_date: dt.date
    period: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    reason: str = ""


class AdvanceOut(ApiModel):
    id: str
    employee_id: str
    amount: float
    advance_date: dt.date
    period: Optional[str] = None
    reason: str = ""
    paid_by: str = ""


def dump(model: type[ApiModel], record: Any) -> dict[str, Any]:
    """Serialize an ORM row through an output schema using API field names."""
    return model.model_validate(record).model_dump(by_alias=True, mode="json")
