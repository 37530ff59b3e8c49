from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.db import atomic
from core.domain import ITEM_STATUS_PROGRESS, ItemStatus, Priority, ResourceKind
from core.errors import Conflict, NotFound, ValidationFailure
from core.models import (
    Account,
    Assignment,
    Comment,
    Division,
    Item,
    ProcurementItem,
    Project,
    ProjectFinancials,
    Task,
)
from core.repositories.tenant import get_or_404, list_in
from core.tenancy import TenantPathSet

from .calculation import ZERO, round_money, to_decimal

logger = logging.getLogger("office_core.projects")

K = ResourceKind


def _apply(record: Any, changes: Mapping[str, Any]) -> None:
    for name, value in changes.items():
        setattr(record, name, value)


# ---------------------------------------------------------------------------
# projects
# ---------------------------------------------------------------------------


def create_project(session: Session, paths: TenantPathSet, data: Mapping[str, Any], *, created_by: str) -> Project:
    project = Project(collection=paths[K.PROJECTS], created_by=created_by, **data)
    with atomic(session):
        session.add(project)
    return project


def update_project(session: Session, paths: TenantPathSet, project_id: str, changes: Mapping[str, Any]) -> Project:
    with atomic(session):
        project = get_or_404(session, Project, paths, K.PROJECTS, project_id)
        _apply(project, changes)
    return project


def delete_project(session: Session, paths: TenantPathSet, project_id: str) -> None:
    """Delete a project and everything hanging off it in a single transaction.

    Tasks survive with their project link cleared; they still count for payroll holds.
    """
    with atomic(session):
        project = get_or_404(session, Project, paths, K.PROJECTS, project_id)
        for model, kind in (
            (Assignment, K.ASSIGNMENTS),
            (Comment, K.COMMENTS),
            (ProcurementItem, K.PROCUREMENT),
            (ProjectFinancials, K.FINANCIALS),
        ):
            session.query(model).filter(model.collection == paths[kind], model.project_id == project_id).delete(
                synchronize_session=False
            )
        session.query(Task).filter(Task.collection == paths[K.TASKS], Task.project_id == project_id).update(
            {Task.project_id: None}, synchronize_session=False
        )
        # divisions and their items go through the ORM cascade
        session.delete(project)
    logger.info("Deleted project %s in %s", project_id, paths.root)


# ---------------------------------------------------------------------------
# divisions and items
# ---------------------------------------------------------------------------


def create_division(session: Session, paths: TenantPathSet, project_id: str, name: str, position: Optional[int] = None) -> Division:
    project = get_or_404(session, Project, paths, K.PROJECTS, project_id)
    if position is None:
        position = len(project.divisions)
    division = Division(collection=paths[K.DIVISIONS], project_id=project.id, name=name, position=position)
    with atomic(session):
        session.add(division)
    return division


def update_division(session: Session, paths: TenantPathSet, division_id: str, changes: Mapping[str, Any]) -> Division:
    with atomic(session):
        division = get_or_404(session, Division, paths, K.DIVISIONS, division_id)
        _apply(division, changes)
    return division


def delete_division(session: Session, paths: TenantPathSet, division_id: str) -> None:
    with atomic(session):
        division = get_or_404(session, Division, paths, K.DIVISIONS, division_id)
        session.delete(division)


def list_divisions(session: Session, paths: TenantPathSet, project_id: Optional[str] = None) -> list[Division]:
    criteria = [Division.project_id == project_id] if project_id else []
    return list_in(session, Division, paths, K.DIVISIONS, *criteria, order_by=Division.position)


def _validate_item(data: Mapping[str, Any]) -> None:
    for name in ("quantity", "rate"):
        if name in data and to_decimal(data[name], field=name) < 0:
            raise ValidationFailure(f"{name} must not be negative", details={"field": name})


def create_item(session: Session, paths: TenantPathSet, division_id: str, data: Mapping[str, Any]) -> Item:
    _validate_item(data)
    division = get_or_404(session, Division, paths, K.DIVISIONS, division_id)
    item = Item(collection=paths[K.ITEMS], division_id=division.id, **data)
    with atomic(session):
        session.add(item)
    return item


def update_item(session: Session, paths: TenantPathSet, item_id: str, changes: Mapping[str, Any]) -> Item:
    _validate_item(changes)
    with atomic(session):
        item = get_or_404(session, Item, paths, K.ITEMS, item_id)
        if "division_id" in changes:
            # items never leave their project
            target = get_or_404(session, Division, paths, K.DIVISIONS, changes["division_id"])
            if target.project_id != item.division.project_id:
                raise ValidationFailure("an item cannot move to another project's division")
        _apply(item, changes)
    return item


def delete_item(session: Session, paths: TenantPathSet, item_id: str) -> None:
    with atomic(session):
        item = get_or_404(session, Item, paths, K.ITEMS, item_id)
        session.delete(item)


def list_items(session: Session, paths: TenantPathSet, *, division_id: Optional[str] = None, project_id: Optional[str] = None) -> list[Item]:
    query = session.query(Item).filter(Item.collection == paths[K.ITEMS])
    if division_id:
        query = query.filter(Item.division_id == division_id)
    if project_id:
        query = query.join(Division, Item.division_id == Division.id).filter(Division.project_id == project_id)
    return query.order_by(Item.created_at.asc()).all()


# ---------------------------------------------------------------------------
# assignments
# ---------------------------------------------------------------------------


def assign_user(session: Session, paths: TenantPathSet, project_id: str, user_id: str, *, assigned_by: str) -> Assignment:
    get_or_404(session, Project, paths, K.PROJECTS, project_id)
    member = (
        session.query(Account)
        .filter(Account.collection == paths[K.USERS], Account.id == user_id)
        .first()
    )
    if member is None:
        raise NotFound(f"users {user_id} not found")
    assignment = Assignment(
        collection=paths[K.ASSIGNMENTS], project_id=project_id, user_id=user_id, assigned_by=assigned_by
    )
    try:
        with atomic(session):
            session.add(assignment)
    except IntegrityError as exc:
        raise Conflict("user is already assigned to this project", code="assignment_exists") from exc
    return assignment


def unassign(session: Session, paths: TenantPathSet, assignment_id: str) -> None:
    with atomic(session):
        session.delete(get_or_404(session, Assignment, paths, K.ASSIGNMENTS, assignment_id))


# ---------------------------------------------------------------------------
# financials
# ---------------------------------------------------------------------------


def get_financials(session: Session, paths: TenantPathSet, project_id: str) -> ProjectFinancials | None:
    return (
        session.query(ProjectFinancials)
        .filter(ProjectFinancials.collection == paths[K.FINANCIALS], ProjectFinancials.project_id == project_id)
        .first()
    )


def upsert_financials(session: Session, paths: TenantPathSet, project_id: str, changes: Mapping[str, Any]) -> ProjectFinancials:
    get_or_404(session, Project, paths, K.PROJECTS, project_id)
    for name in ("contract_value", "amount_received"):
        if name in changes and to_decimal(changes[name], field=name) < 0:
            raise ValidationFailure(f"{name} must not be negative", details={"field": name})
    if "work_completed" in changes and not 0 <= int(changes["work_completed"]) <= 100:
        raise ValidationFailure("work_completed must be between 0 and 100", details={"field": "work_completed"})
    with atomic(session):
        record = get_financials(session, paths, project_id)
        if record is None:
            record = ProjectFinancials(collection=paths[K.FINANCIALS], project_id=project_id)
            session.add(record)
        was_archived = bool(record.is_archived)
        _apply(record, changes)
        if record.is_archived and not was_archived:
            record.archived_date = dt.date.today()
        elif not record.is_archived:
            record.archived_date = None
    return record


# ---------------------------------------------------------------------------
# summary
# ---------------------------------------------------------------------------


def item_cost(item: Item) -> Decimal:
    return to_decimal(item.quantity) * to_decimal(item.rate)


def summarize(divisions: Iterable[Division], items: Iterable[Item]) -> dict[str, Any]:
    """Aggregate item costs by priority, division and status.

    Overall progress is the mean of per-item status progress.
    """
    divisions = list(divisions)
    items = list(items)
    total = ZERO
    cost_by_priority: dict[str, Decimal] = {p.value: ZERO for p in Priority}
    count_by_priority: dict[str, int] = {p.value: 0 for p in Priority}
    status_breakdown: dict[str, int] = {s.value: 0 for s in ItemStatus}
    by_division: dict[str, list[Item]] = defaultdict(list)
    progress_sum = 0
    for item in items:
        cost = item_cost(item)
        total += cost
        cost_by_priority[item.priority] = cost_by_priority.get(item.priority, ZERO) + cost
        count_by_priority[item.priority] = count_by_priority.get(item.priority, 0) + 1
        status_breakdown[item.status] = status_breakdown.get(item.status, 0) + 1
        by_division[item.division_id].append(item)
        try:
            progress_sum += ITEM_STATUS_PROGRESS[ItemStatus(item.status)]
        except ValueError:
            logger.debug("Item %s has unknown status %r", item.id, item.status)

    breakdown = []
    for division in divisions:
        members = by_division.get(division.id, [])
        breakdown.append(
            {
                "divisionId": division.id,
                "divisionName": division.name,
                "projectId": division.project_id,
                "itemCount": len(members),
                "totalCost": float(round_money(sum((item_cost(i) for i in members), ZERO))),
            }
        )

    return {
        "totalItems": len(items),
        "totalCost": float(round_money(total)),
        "costByPriority": {k: float(round_money(v)) for k, v in cost_by_priority.items()},
        "countByPriority": count_by_priority,
        "divisionBreakdown": breakdown,
        "statusBreakdown": status_breakdown,
        "overallProgress": round(progress_sum / len(items), 2) if items else 0,
    }
