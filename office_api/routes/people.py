"""Tenant directory: member accounts, employee profiles and client profiles."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from core.domain import Action, ResourceKind, Role
from core.errors import ValidationFailure
from core.services import accounts as account_service
from core.services import staff

from ..context import TenantContext, get_tenant_context
from ..database import get_db
from ..schemas import (
    ClientCreate,
    ClientOut,
    EmployeeCreate,
    EmployeeOut,
    EmployeeProfileFields,
    EmployeeUpdate,
    SimpleOkResponse,
    UserCreate,
    UserOut,
    UserUpdate,
    dump,
)

router = APIRouter(tags=["people"])

K = ResourceKind

ACCOUNT_FIELDS = ("username", "password", "full_name", "email")


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------


@router.get("/users")
def list_users(ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    rows = ctx.access.scope(K.USERS, account_service.list_members(db, ctx.paths))
    return {"ok": True, "items": [dump(UserOut, a) for a in rows]}


@router.get("/users/{user_id}")
def get_user(user_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    account = ctx.visible(K.USERS, account_service.get_member(db, ctx.paths, user_id))
    return dump(UserOut, account)


@router.post("/users", status_code=201)
def create_user(
    payload: UserCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    ctx.access.require_mutation(K.USERS, Action.CREATE)
    account = account_service.create_member(
        db,
        ctx.principal,
        ctx.paths,
        username=payload.username,
        role=Role(payload.role),
        password=payload.password,
        full_name=payload.full_name,
        email=payload.email,
        provider_uid=payload.provider_uid,
    )
    ctx.audit(request, "users.create", f"users/{account.id}", role=account.role)
    return dump(UserOut, account)


@router.patch("/users/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    target = account_service.get_member(db, ctx.paths, user_id)
    ctx.access.require_mutation(K.USERS, Action.UPDATE, target, changes)
    account = account_service.update_member(db, ctx.paths, user_id, changes)
    ctx.audit(request, "users.update", f"users/{user_id}", fields=sorted(changes))
    return dump(UserOut, account)


@router.delete("/users/{user_id}", response_model=SimpleOkResponse)
def delete_user(
    user_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    target = account_service.get_member(db, ctx.paths, user_id)
    ctx.access.require_mutation(K.USERS, Action.DELETE, target)
    if target.id == ctx.principal.id:
        raise ValidationFailure("you cannot delete your own account")
    account_service.delete_member(db, ctx.paths, user_id)
    ctx.audit(request, "users.delete", f"users/{user_id}")
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# employees
# ---------------------------------------------------------------------------


@router.get("/employees")
def list_employees(ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    rows = ctx.access.scope(K.EMPLOYEES, staff.list_employees(db, ctx.paths))
    return {"ok": True, "items": [dump(EmployeeOut, p) for p in rows]}


@router.get("/employees/{user_id}")
def get_employee(user_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    profile = ctx.visible(K.EMPLOYEES, staff.get_employee(db, ctx.paths, user_id))
    return dump(EmployeeOut, profile)


@router.post("/employees", status_code=201)
def create_employee(
    payload: EmployeeCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    ctx.access.require_mutation(K.EMPLOYEES, Action.CREATE)
    data = payload.model_dump()
    account_fields = {name: data.pop(name) for name in ACCOUNT_FIELDS}
    account, profile = staff.create_employee(db, ctx.principal, ctx.paths, account_fields, data)
    ctx.audit(request, "employees.create", f"employees/{account.id}")
    return {"ok": True, "user": dump(UserOut, account), "employee": dump(EmployeeOut, profile)}


@router.put("/employees/{user_id}/profile", status_code=201)
def add_employee_profile(
    user_id: str,
    payload: EmployeeProfileFields,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    """Attach a payroll profile to an existing member account."""
    ctx.access.require_mutation(K.EMPLOYEES, Action.CREATE, {"user_id": user_id})
    profile = staff.add_employee_profile(db, ctx.paths, user_id, payload.model_dump())
    return dump(EmployeeOut, profile)


@router.patch("/employees/{user_id}")
def update_employee(
    user_id: str,
    payload: EmployeeUpdate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    target = staff.get_employee(db, ctx.paths, user_id)
    ctx.access.require_mutation(K.EMPLOYEES, Action.UPDATE, target, changes)
    profile = staff.update_employee(db, ctx.paths, user_id, changes)
    ctx.audit(request, "employees.update", f"employees/{user_id}", fields=sorted(changes))
    return dump(EmployeeOut, profile)


# ---------------------------------------------------------------------------
# clients
# ---------------------------------------------------------------------------


@router.get("/clients")
def list_clients(ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    rows = ctx.access.scope(K.CLIENTS, staff.list_clients(db, ctx.paths))
    return {"ok": True, "items": [dump(ClientOut, c) for c in rows]}


@router.post("/clients", status_code=201)
def create_client(
    payload: ClientCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    ctx.access.require_mutation(K.CLIENTS, Action.CREATE)
    data = payload.model_dump()
    account_fields = {name: data.pop(name) for name in ACCOUNT_FIELDS}
    account, profile = staff.create_client(db, ctx.principal, ctx.paths, account_fields, data)
    ctx.audit(request, "clients.create", f"clients/{account.id}")
    return {"ok": True, "user": dump(UserOut, account), "client": dump(ClientOut, profile)}
