from __future__ import annotations

from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from core.db import atomic
from core.domain import ResourceKind
from core.errors import ValidationFailure
from core.models import ProcurementItem, Project
from core.repositories.tenant import get_or_404, list_in
from core.tenancy import TenantPathSet

from .calculation import round_money, to_decimal

K = ResourceKind

MONEY_FIELDS = ("project_cost", "execution_cost", "quantity")


def _clean(data: Mapping[str, Any]) -> dict[str, Any]:
    cleaned = dict(data)
    for name in MONEY_FIELDS:
        if name in cleaned:
            value = to_decimal(cleaned[name], field=name)
            if value < 0:
                raise ValidationFailure(f"{name} must not be negative", details={"field": name})
            cleaned[name] = round_money(value)
    return cleaned


def create_item(session: Session, paths: TenantPathSet, data: Mapping[str, Any]) -> ProcurementItem:
    cleaned = _clean(data)
    get_or_404(session, Project, paths, K.PROJECTS, cleaned["project_id"])
    item = ProcurementItem(collection=paths[K.PROCUREMENT], **cleaned)
    with atomic(session):
        session.add(item)
    return item


def update_item(session: Session, paths: TenantPathSet, item_id: str, changes: Mapping[str, Any]) -> ProcurementItem:
    cleaned = _clean(changes)
    if "project_id" in cleaned:
        get_or_404(session, Project, paths, K.PROJECTS, cleaned["project_id"])
    with atomic(session):
        item = get_or_404(session, ProcurementItem, paths, K.PROCUREMENT, item_id)
        for name, value in cleaned.items():
            setattr(item, name, value)
    return item


def delete_item(session: Session, paths: TenantPathSet, item_id: str) -> None:
    with atomic(session):
        session.delete(get_or_404(session, ProcurementItem, paths, K.PROCUREMENT, item_id))


def list_items(session: Session, paths: TenantPathSet, project_id: Optional[str] = None) -> list[ProcurementItem]:
    criteria = [ProcurementItem.project_id == project_id] if project_id else []
    return list_in(session, ProcurementItem, paths, K.PROCUREMENT, *criteria, order_by=ProcurementItem.created_at)
