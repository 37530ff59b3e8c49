from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from core.domain import Action, ResourceKind
from core.metrics import observe_payroll
from core.models import Salary, SalaryAdvance
from core.repositories.tenant import list_in
from core.services.idempotency import run_idempotent
from core.services.payroll import PayrollEngine

from ..context import TenantContext, get_tenant_context
from ..database import get_db
from ..schemas import (
    MONTH_PATTERN,
    AdvanceCreate,
    AdvanceOut,
    PaymentCreate,
    PaymentOut,
    SalaryGenerateRequest,
    SalaryOut,
    SimpleOkResponse,
    dump,
)

logger = logging.getLogger("office_api.payroll")

router = APIRouter(tags=["payroll"])

K = ResourceKind


@router.get("/salaries")
def list_salaries(
    employee_id: Optional[str] = None,
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    criteria = []
    if employee_id:
        criteria.append(Salary.employee_id == employee_id)
    if month:
        criteria.append(Salary.month == month)
    rows = list_in(db, Salary, ctx.paths, K.SALARIES, *criteria, order_by=Salary.month.desc())
    return {"ok": True, "items": [dump(SalaryOut, s) for s in ctx.access.scope(K.SALARIES, rows)]}


@router.post("/salaries/generate")
def generate_salary(
    payload: SalaryGenerateRequest,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    ctx.access.require_mutation(K.SALARIES, Action.CREATE, {"employee_id": payload.employee_id})
    engine = PayrollEngine(db, ctx.paths)
    generated: list[Salary] = []

    def _produce():
        salary = engine.generate(
            payload.employee_id,
            payload.month,
            generated_by=ctx.principal.id,
            other_deductions=payload.other_deductions,
        )
        generated.append(salary)
        return dump(SalaryOut, salary), 201

    content, status = run_idempotent(
        db,
        request,
        scope=ctx.paths.root,
        payload=payload.model_dump(mode="json"),
        produce=_produce,
    )
    if generated:
        salary = generated[0]
        observe_payroll("generated")
        if salary.is_held:
            observe_payroll("held_on_generate")
        ctx.audit(
            request,
            "salaries.generate",
            f"salaries/{salary.id}",
            employee_id=salary.employee_id,
            month=salary.month,
            net_salary=str(salary.net_salary),
        )
    return JSONResponse(content=content, status_code=status)


@router.get("/salaries/{salary_id}")
def get_salary(salary_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    salary = ctx.visible(K.SALARIES, PayrollEngine(db, ctx.paths).get(salary_id))
    return dump(SalaryOut, salary)


@router.get("/salaries/{salary_id}/payments")
def list_salary_payments(salary_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    engine = PayrollEngine(db, ctx.paths)
    ctx.visible(K.SALARIES, engine.get(salary_id))
    rows = ctx.access.scope(K.SALARY_PAYMENTS, engine.payments(salary_id))
    return {"ok": True, "items": [dump(PaymentOut, p) for p in rows]}


def _set_hold(db: Session, ctx: TenantContext, request: Request, salary_id: str, held: bool) -> dict:
    engine = PayrollEngine(db, ctx.paths)
    ctx.access.require_mutation(K.SALARIES, Action.UPDATE, engine.get(salary_id), {"is_held": held})
    salary = engine.hold(salary_id) if held else engine.release(salary_id)
    event = "held" if held else "released"
    observe_payroll(event)
    ctx.audit(request, f"salaries.{event}", f"salaries/{salary_id}")
    return dump(SalaryOut, salary)


@router.post("/salaries/{salary_id}/hold")
def hold_salary(
    salary_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return _set_hold(db, ctx, request, salary_id, True)


@router.post("/salaries/{salary_id}/release")
def release_salary(
    salary_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return _set_hold(db, ctx, request, salary_id, False)


@router.delete("/salaries/{salary_id}", response_model=SimpleOkResponse)
def delete_salary(
    salary_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    engine = PayrollEngine(db, ctx.paths)
    ctx.access.require_mutation(K.SALARIES, Action.DELETE, engine.get(salary_id))
    engine.delete(salary_id)
    ctx.audit(request, "salaries.delete", f"salaries/{salary_id}")
    return SimpleOkResponse()


@router.post("/salary-payments")
def record_payment(
    payload: PaymentCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    engine = PayrollEngine(db, ctx.paths)
    ctx.access.require_mutation(K.SALARY_PAYMENTS, Action.CREATE, engine.get(payload.salary_id))
    recorded: list[tuple] = []

    def _produce():
        salary, payment = engine.record_payment(
            payload.salary_id,
            payload.amount,
            payload.payment_date,
            method=payload.payment_method,
            notes=payload.notes,
            paid_by=ctx.principal.id,
        )
        recorded.append((salary, payment))
        return {"ok": True, "salary": dump(SalaryOut, salary), "payment": dump(PaymentOut, payment)}, 201

    content, status = run_idempotent(
        db,
        request,
        scope=ctx.paths.root,
        payload=payload.model_dump(mode="json"),
        produce=_produce,
    )
    if recorded:
        salary, payment = recorded[0]
        observe_payroll("payment")
        if salary.is_paid:
            observe_payroll("settled")
        ctx.audit(
            request,
            "salaries.payment",
            f"salaries/{salary.id}",
            payment_id=payment.id,
            amount=str(payment.amount),
            remaining=str(salary.remaining_amount),
        )
    return JSONResponse(content=content, status_code=status)


@router.get("/salary-advances")
def list_advances(
    employee_id: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    criteria = [SalaryAdvance.employee_id == employee_id] if employee_id else []
    rows = list_in(db, SalaryAdvance, ctx.paths, K.SALARY_ADVANCES, *criteria, order_by=SalaryAdvance.advance_date)
    return {"ok": True, "items": [dump(AdvanceOut, a) for a in ctx.access.scope(K.SALARY_ADVANCES, rows)]}


@router.post("/salary-advances", status_code=201)
def create_advance(
    payload: AdvanceCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    ctx.access.require_mutation(K.SALARY_ADVANCES, Action.CREATE, {"employee_id": payload.employee_id})
    advance = PayrollEngine(db, ctx.paths).add_advance(
        payload.employee_id,
        payload.amount,
        payload.advance_date,
        period=payload.period,
        reason=payload.reason,
        paid_by=ctx.principal.id,
    )
    observe_payroll("advance")
    ctx.audit(request, "salaries.advance", f"salaryAdvances/{advance.id}", employee_id=advance.employee_id)
    return dump(AdvanceOut, advance)
