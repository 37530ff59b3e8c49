"""Namespace-bound lookups shared by every tenant-owned model."""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from core.domain import ResourceKind
from core.errors import NotFound
from core.tenancy import TenantPathSet

M = TypeVar("M")


def get_in(session: Session, model: Type[M], paths: TenantPathSet, kind: ResourceKind, record_id: str) -> Optional[M]:
    return (
        session.query(model)
        .filter(model.collection == paths[kind], model.id == record_id)  # type: ignore[attr-defined]
        .first()
    )


def get_or_404(session: Session, model: Type[M], paths: TenantPathSet, kind: ResourceKind, record_id: str) -> M:
    record = get_in(session, model, paths, kind, record_id)
    if record is None:
        raise NotFound(f"{kind.value} {record_id} not found")
    return record


def list_in(
    session: Session,
    model: Type[M],
    paths: TenantPathSet,
    kind: ResourceKind,
    *criteria: Any,
    order_by: Any = None,
) -> list[M]:
    query = session.query(model).filter(model.collection == paths[kind], *criteria)  # type: ignore[attr-defined]
    if order_by is not None:
        query = query.order_by(order_by)
    return query.all()
