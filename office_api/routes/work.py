"""Day-to-day work records: tasks, attendance, procurement and documents."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from core.domain import Action, ResourceKind
from core.models import Attendance, EmployeeDocument, ProcurementItem, Task
from core.repositories.tenant import get_or_404, list_in
from core.services import procurement as procurement_service
from core.services import staff

from ..context import TenantContext, get_tenant_context
from ..database import get_db
from ..schemas import (
    MONTH_PATTERN,
    AttendanceCreate,
    AttendanceOut,
    AttendanceUpdate,
    DocumentCreate,
    DocumentOut,
    ProcurementCreate,
    ProcurementOut,
    ProcurementUpdate,
    SimpleOkResponse,
    TaskCreate,
    TaskOut,
    TaskUpdate,
    dump,
)

router = APIRouter(tags=["work"])

K = ResourceKind


# ---------------------------------------------------------------------------
# tasks
# ---------------------------------------------------------------------------


@router.get("/tasks")
def list_tasks(
    employee_id: Optional[str] = None,
    project_id: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    rows = staff.list_tasks(db, ctx.paths, employee_id=employee_id, project_id=project_id)
    return {"ok": True, "items": [dump(TaskOut, t) for t in ctx.access.scope(K.TASKS, rows)]}


@router.get("/tasks/stats/monthly")
def task_stats(
    month: str = Query(..., pattern=MONTH_PATTERN),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    rows = ctx.access.scope(K.TASKS, staff.list_tasks(db, ctx.paths))
    return {"ok": True, "month": month, "items": staff.monthly_task_stats(rows, month)}


@router.get("/tasks/{task_id}")
def get_task(task_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    return dump(TaskOut, ctx.visible(K.TASKS, get_or_404(db, Task, ctx.paths, K.TASKS, task_id)))


@router.post("/tasks", status_code=201)
def create_task(payload: TaskCreate, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    data = payload.model_dump()
    ctx.access.require_mutation(K.TASKS, Action.CREATE, data)
    return dump(TaskOut, staff.create_task(db, ctx.paths, data, assigned_by=ctx.principal.id))


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: str,
    payload: TaskUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    task = get_or_404(db, Task, ctx.paths, K.TASKS, task_id)
    ctx.access.require_mutation(K.TASKS, Action.UPDATE, task, changes)
    return dump(TaskOut, staff.update_task(db, ctx.paths, task, changes))


@router.delete("/tasks/{task_id}", response_model=SimpleOkResponse)
def delete_task(task_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    task = get_or_404(db, Task, ctx.paths, K.TASKS, task_id)
    ctx.access.require_mutation(K.TASKS, Action.DELETE, task)
    staff.delete_task(db, ctx.paths, task_id)
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# attendance
# ---------------------------------------------------------------------------


@router.get("/attendance")
def list_attendance(
    employee_id: Optional[str] = None,
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    rows = staff.list_attendance(db, ctx.paths, employee_id=employee_id, start=start, end=end)
    return {"ok": True, "items": [dump(AttendanceOut, r) for r in ctx.access.scope(K.ATTENDANCE, rows)]}


@router.post("/attendance", status_code=201)
def record_attendance(
    payload: AttendanceCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    employee_id = payload.employee_id or ctx.principal.id
    ctx.access.require_mutation(K.ATTENDANCE, Action.CREATE, {"employee_id": employee_id})
    record = staff.record_attendance(
        db,
        ctx.paths,
        employee_id,
        payload.attendance_date,
        is_present=payload.is_present,
        notes=payload.notes,
    )
    return dump(AttendanceOut, record)


@router.patch("/attendance/{attendance_id}")
def update_attendance(
    attendance_id: str,
    payload: AttendanceUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    target = get_or_404(db, Attendance, ctx.paths, K.ATTENDANCE, attendance_id)
    ctx.access.require_mutation(K.ATTENDANCE, Action.UPDATE, target, changes)
    return dump(AttendanceOut, staff.update_attendance(db, ctx.paths, attendance_id, changes))


@router.delete("/attendance/{attendance_id}", response_model=SimpleOkResponse)
def delete_attendance(attendance_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    target = get_or_404(db, Attendance, ctx.paths, K.ATTENDANCE, attendance_id)
    ctx.access.require_mutation(K.ATTENDANCE, Action.DELETE, target)
    staff.delete_attendance(db, ctx.paths, attendance_id)
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# procurement
# ---------------------------------------------------------------------------


def _procurement_out(ctx: TenantContext, item: ProcurementItem) -> dict:
    return ctx.access.redact(K.PROCUREMENT, dump(ProcurementOut, item))


@router.get("/procurement")
def list_procurement(
    project_id: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    rows = ctx.access.scope(K.PROCUREMENT, procurement_service.list_items(db, ctx.paths, project_id))
    return {"ok": True, "items": [_procurement_out(ctx, r) for r in rows]}


@router.get("/procurement/{item_id}")
def get_procurement(item_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    item = ctx.visible(K.PROCUREMENT, get_or_404(db, ProcurementItem, ctx.paths, K.PROCUREMENT, item_id))
    return _procurement_out(ctx, item)


@router.post("/procurement", status_code=201)
def create_procurement(
    payload: ProcurementCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    ctx.access.require_mutation(K.PROCUREMENT, Action.CREATE, data)
    item = procurement_service.create_item(db, ctx.paths, data)
    ctx.audit(request, "procurement.create", f"procurement/{item.id}", project_id=item.project_id)
    return _procurement_out(ctx, item)


@router.patch("/procurement/{item_id}")
def update_procurement(
    item_id: str,
    payload: ProcurementUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    target = get_or_404(db, ProcurementItem, ctx.paths, K.PROCUREMENT, item_id)
    ctx.access.require_mutation(K.PROCUREMENT, Action.UPDATE, target, changes)
    return _procurement_out(ctx, procurement_service.update_item(db, ctx.paths, item_id, changes))


@router.delete("/procurement/{item_id}", response_model=SimpleOkResponse)
def delete_procurement(
    item_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    target = get_or_404(db, ProcurementItem, ctx.paths, K.PROCUREMENT, item_id)
    ctx.access.require_mutation(K.PROCUREMENT, Action.DELETE, target)
    procurement_service.delete_item(db, ctx.paths, item_id)
    ctx.audit(request, "procurement.delete", f"procurement/{item_id}")
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# employee documents
# ---------------------------------------------------------------------------


@router.get("/documents")
def list_documents(
    employee_id: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    criteria = [EmployeeDocument.employee_id == employee_id] if employee_id else []
    rows = list_in(db, EmployeeDocument, ctx.paths, K.DOCUMENTS, *criteria, order_by=EmployeeDocument.created_at)
    return {"ok": True, "items": [dump(DocumentOut, d) for d in ctx.access.scope(K.DOCUMENTS, rows)]}


@router.post("/documents", status_code=201)
def create_document(payload: DocumentCreate, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    data = payload.model_dump()
    ctx.access.require_mutation(K.DOCUMENTS, Action.CREATE, data)
    return dump(DocumentOut, staff.create_document(db, ctx.paths, data, created_by=ctx.principal.id))


@router.delete("/documents/{document_id}", response_model=SimpleOkResponse)
def delete_document(document_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    target = get_or_404(db, EmployeeDocument, ctx.paths, K.DOCUMENTS, document_id)
    ctx.access.require_mutation(K.DOCUMENTS, Action.DELETE, target)
    staff.delete_document(db, ctx.paths, document_id)
    return SimpleOkResponse()
