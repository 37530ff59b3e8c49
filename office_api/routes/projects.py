from __future__ import annotations

import re
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from core.domain import Action, ResourceKind
from core.models import Assignment, Comment, Division, Item, Project
from core.repositories.tenant import get_or_404, list_in
from core.services import comments as comment_service
from core.services import projects as project_service
from core.services.calculation import to_decimal
from core.services.rendering import ExcelSummaryRenderer, SummaryRenderer

from ..context import TenantContext, get_tenant_context
from ..database import get_db
from ..schemas import (
    AssignmentCreate,
    AssignmentOut,
    AssignRequest,
    CommentCreate,
    CommentOut,
    DivisionCreate,
    DivisionOut,
    DivisionUpdate,
    FinancialsOut,
    FinancialsUpdate,
    ItemCreate,
    ItemOut,
    ItemUpdate,
    ProjectCreate,
    ProjectOut,
    ProjectUpdate,
    SimpleOkResponse,
    dump,
)

router = APIRouter(tags=["projects"])

K = ResourceKind


def _project(db: Session, ctx: TenantContext, project_id: str) -> Project:
    return ctx.visible(K.PROJECTS, get_or_404(db, Project, ctx.paths, K.PROJECTS, project_id))


def _project_summary(db: Session, ctx: TenantContext, project: Project) -> dict:
    divisions = ctx.access.scope(K.DIVISIONS, project_service.list_divisions(db, ctx.paths, project.id))
    items = ctx.access.scope(K.ITEMS, project_service.list_items(db, ctx.paths, project_id=project.id))
    return project_service.summarize(divisions, items)


# ---------------------------------------------------------------------------
# projects
# ---------------------------------------------------------------------------


@router.get("/projects")
def list_projects(ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    rows = list_in(db, Project, ctx.paths, K.PROJECTS, order_by=Project.created_at)
    return {"ok": True, "items": [dump(ProjectOut, p) for p in ctx.access.scope(K.PROJECTS, rows)]}


@router.get("/projects/{project_id}")
def get_project(project_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    return dump(ProjectOut, _project(db, ctx, project_id))


@router.post("/projects", status_code=201)
def create_project(
    payload: ProjectCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    ctx.access.require_mutation(K.PROJECTS, Action.CREATE)
    project = project_service.create_project(db, ctx.paths, payload.model_dump(), created_by=ctx.principal.id)
    ctx.audit(request, "projects.create", f"projects/{project.id}")
    return dump(ProjectOut, project)


@router.patch("/projects/{project_id}")
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    target = get_or_404(db, Project, ctx.paths, K.PROJECTS, project_id)
    ctx.access.require_mutation(K.PROJECTS, Action.UPDATE, target, changes)
    return dump(ProjectOut, project_service.update_project(db, ctx.paths, project_id, changes))


@router.delete("/projects/{project_id}", response_model=SimpleOkResponse)
def delete_project(
    project_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    target = get_or_404(db, Project, ctx.paths, K.PROJECTS, project_id)
    ctx.access.require_mutation(K.PROJECTS, Action.DELETE, target)
    project_service.delete_project(db, ctx.paths, project_id)
    ctx.audit(request, "projects.delete", f"projects/{project_id}")
    return SimpleOkResponse()


@router.get("/projects/{project_id}/summary")
def project_summary(project_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    project = _project(db, ctx, project_id)
    return {"ok": True, "projectId": project.id, "summary": _project_summary(db, ctx, project)}


@router.get("/projects/{project_id}/summary/export")
def export_project_summary(
    project_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    project = _project(db, ctx, project_id)
    renderer: SummaryRenderer = ExcelSummaryRenderer()
    title = project.project_title or project.name
    bio = renderer.render(title, _project_summary(db, ctx, project))
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", project.name).strip("_") or "project"
    filename = f"{safe}_summary.{renderer.extension}"
    return StreamingResponse(
        bio,
        media_type=renderer.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# divisions
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/divisions")
def list_divisions(project_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    _project(db, ctx, project_id)
    rows = ctx.access.scope(K.DIVISIONS, project_service.list_divisions(db, ctx.paths, project_id))
    return {"ok": True, "items": [dump(DivisionOut, d) for d in rows]}


@router.post("/divisions", status_code=201)
def create_division(
    payload: DivisionCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    ctx.access.require_mutation(K.DIVISIONS, Action.CREATE, {"project_id": payload.project_id})
    division = project_service.create_division(db, ctx.paths, payload.project_id, payload.name, payload.position)
    return dump(DivisionOut, division)


@router.patch("/divisions/{division_id}")
def update_division(
    division_id: str,
    payload: DivisionUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    target = get_or_404(db, Division, ctx.paths, K.DIVISIONS, division_id)
    ctx.access.require_mutation(K.DIVISIONS, Action.UPDATE, target, changes)
    return dump(DivisionOut, project_service.update_division(db, ctx.paths, division_id, changes))


@router.delete("/divisions/{division_id}", response_model=SimpleOkResponse)
def delete_division(division_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    target = get_or_404(db, Division, ctx.paths, K.DIVISIONS, division_id)
    ctx.access.require_mutation(K.DIVISIONS, Action.DELETE, target)
    project_service.delete_division(db, ctx.paths, division_id)
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# items
# ---------------------------------------------------------------------------


@router.get("/items")
def list_items(
    project_id: Optional[str] = None,
    division_id: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    rows = project_service.list_items(db, ctx.paths, division_id=division_id, project_id=project_id)
    return {"ok": True, "items": [dump(ItemOut, i) for i in ctx.access.scope(K.ITEMS, rows)]}


@router.get("/items/{item_id}")
def get_item(item_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    item = ctx.visible(K.ITEMS, get_or_404(db, Item, ctx.paths, K.ITEMS, item_id))
    return dump(ItemOut, item)


@router.post("/items", status_code=201)
def create_item(payload: ItemCreate, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    data = payload.model_dump()
    division_id = data.pop("division_id")
    division = get_or_404(db, Division, ctx.paths, K.DIVISIONS, division_id)
    ctx.access.require_mutation(K.ITEMS, Action.CREATE, {"project_id": division.project_id})
    return dump(ItemOut, project_service.create_item(db, ctx.paths, division_id, data))


@router.patch("/items/{item_id}")
def update_item(
    item_id: str,
    payload: ItemUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    target = get_or_404(db, Item, ctx.paths, K.ITEMS, item_id)
    ctx.access.require_mutation(K.ITEMS, Action.UPDATE, target, changes)
    return dump(ItemOut, project_service.update_item(db, ctx.paths, item_id, changes))


@router.delete("/items/{item_id}", response_model=SimpleOkResponse)
def delete_item(item_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    target = get_or_404(db, Item, ctx.paths, K.ITEMS, item_id)
    ctx.access.require_mutation(K.ITEMS, Action.DELETE, target)
    project_service.delete_item(db, ctx.paths, item_id)
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# assignments
# ---------------------------------------------------------------------------


def _assign(db: Session, ctx: TenantContext, request: Request, project_id: str, user_id: str) -> dict:
    ctx.access.require_mutation(K.ASSIGNMENTS, Action.CREATE, {"project_id": project_id, "user_id": user_id})
    assignment = project_service.assign_user(db, ctx.paths, project_id, user_id, assigned_by=ctx.principal.id)
    ctx.audit(request, "projects.assign", f"projects/{project_id}", user_id=user_id)
    return dump(AssignmentOut, assignment)


@router.post("/projects/{project_id}/assign", status_code=201)
def assign_to_project(
    project_id: str,
    payload: AssignRequest,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return _assign(db, ctx, request, project_id, payload.user_id)


@router.get("/assignments")
def list_assignments(
    project_id: Optional[str] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    criteria = [Assignment.project_id == project_id] if project_id else []
    rows = list_in(db, Assignment, ctx.paths, K.ASSIGNMENTS, *criteria, order_by=Assignment.created_at)
    return {"ok": True, "items": [dump(AssignmentOut, a) for a in ctx.access.scope(K.ASSIGNMENTS, rows)]}


@router.post("/assignments", status_code=201)
def create_assignment(
    payload: AssignmentCreate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    return _assign(db, ctx, request, payload.project_id, payload.user_id)


@router.delete("/assignments/{assignment_id}", response_model=SimpleOkResponse)
def delete_assignment(
    assignment_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    target = get_or_404(db, Assignment, ctx.paths, K.ASSIGNMENTS, assignment_id)
    ctx.access.require_mutation(K.ASSIGNMENTS, Action.DELETE, target)
    project_service.unassign(db, ctx.paths, assignment_id)
    ctx.audit(request, "projects.unassign", f"projects/{target.project_id}", user_id=target.user_id)
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# comments
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/comments")
def list_comments(project_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    _project(db, ctx, project_id)
    rows = ctx.access.scope(K.COMMENTS, comment_service.list_comments(db, ctx.paths, project_id))
    return {"ok": True, "items": [dump(CommentOut, c) for c in rows]}


@router.post("/comments", status_code=201)
def create_comment(payload: CommentCreate, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    ctx.access.require_mutation(K.COMMENTS, Action.CREATE, {"project_id": payload.project_id})
    comment = comment_service.add_comment(db, ctx.paths, payload.project_id, ctx.principal.id, payload.body)
    return dump(CommentOut, comment)


@router.delete("/comments/{comment_id}", response_model=SimpleOkResponse)
def delete_comment(comment_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    comment = get_or_404(db, Comment, ctx.paths, K.COMMENTS, comment_id)
    ctx.access.require_mutation(K.COMMENTS, Action.DELETE, comment)
    comment_service.delete_comment(db, comment)
    return SimpleOkResponse()


# ---------------------------------------------------------------------------
# financials
# ---------------------------------------------------------------------------


def _financials_out(project_id: str, record) -> dict:
    if record is None:
        return FinancialsOut(project_id=project_id).model_dump(by_alias=True, mode="json")
    contract = to_decimal(record.contract_value)
    received = to_decimal(record.amount_received)
    return FinancialsOut(
        project_id=project_id,
        contract_value=float(contract),
        amount_received=float(received),
        balance=float(contract - received),
        work_completed=record.work_completed or 0,
        is_archived=bool(record.is_archived),
        archived_date=record.archived_date,
    ).model_dump(by_alias=True, mode="json")


@router.get("/projects/{project_id}/financials")
def get_financials(project_id: str, ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    _project(db, ctx, project_id)
    record = project_service.get_financials(db, ctx.paths, project_id)
    ctx.visible(K.FINANCIALS, record if record is not None else {"project_id": project_id})
    return _financials_out(project_id, record)


@router.put("/projects/{project_id}/financials")
def put_financials(
    project_id: str,
    payload: FinancialsUpdate,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    ctx.access.require_mutation(K.FINANCIALS, Action.UPDATE, {"project_id": project_id}, changes)
    record = project_service.upsert_financials(db, ctx.paths, project_id, changes)
    ctx.audit(request, "projects.financials", f"projects/{project_id}", fields=sorted(changes))
    return _financials_out(project_id, record)
