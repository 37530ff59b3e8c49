"""Role-based visibility and mutation rules inside one tenant namespace.

Reads are narrowed silently: ``scope`` drops rows the principal may not see.
Mutations are decided explicitly: ``authorize_mutation`` returns a
``Decision`` and ``require_mutation`` raises ``Unauthorized`` on denial.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, TypeVar

from sqlalchemy.orm import Session

from core.domain import Action, ResourceKind, Role
from core.errors import Unauthorized
from core.models import Assignment
from core.principal import Principal
from core.tenancy import TenantPathSet

logger = logging.getLogger("office_core.access")

T = TypeVar("T")

K = ResourceKind

# Rows that hang off a project; visible to non-owners through an assignment.
PROJECT_SCOPED = frozenset({K.PROJECTS, K.DIVISIONS, K.ITEMS, K.COMMENTS, K.PROCUREMENT, K.TASKS})

# Rows that belong to one person; non-owners only ever see their own.
PERSONAL = frozenset({K.TASKS, K.ATTENDANCE, K.SALARIES, K.SALARY_ADVANCES, K.SALARY_PAYMENTS, K.DOCUMENTS, K.EMPLOYEES})

CLIENT_VISIBLE = frozenset({K.PROJECTS, K.DIVISIONS, K.ITEMS, K.COMMENTS, K.PROCUREMENT, K.TASKS})
EMPLOYEE_PROJECT_VISIBLE = frozenset({K.PROJECTS, K.DIVISIONS, K.ITEMS, K.COMMENTS, K.PROCUREMENT})

EMPLOYEE_TASK_FIELDS = frozenset({"status", "remarks"})
REDACTED_PROCUREMENT_FIELDS = ("executionCost",)


def _field(record: Any, name: str) -> Any:
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def project_of(kind: ResourceKind, record: Any) -> Optional[str]:
    """Project id a project-scoped record belongs to."""
    if kind is K.PROJECTS:
        return _field(record, "id")
    if kind is K.ITEMS:
        division = _field(record, "division")
        if division is not None:
            return _field(division, "project_id")
        return _field(record, "project_id")
    return _field(record, "project_id")


def owner_of(kind: ResourceKind, record: Any) -> Optional[str]:
    """User id a personal record refers to."""
    if kind in (K.EMPLOYEES, K.CLIENTS, K.ASSIGNMENTS, K.COMMENTS):
        return _field(record, "user_id")
    if kind is K.USERS:
        return _field(record, "id")
    if kind is K.SALARY_PAYMENTS:
        salary = _field(record, "salary")
        return _field(salary, "employee_id") if salary is not None else _field(record, "employee_id")
    return _field(record, "employee_id")


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


class AccessFilter:
    def __init__(self, principal: Principal, assigned_project_ids: Iterable[str] = ()) -> None:
        self.principal = principal
        self.assigned_project_ids = frozenset(assigned_project_ids)

    @classmethod
    def for_principal(cls, session: Session, principal: Principal, paths: TenantPathSet) -> "AccessFilter":
        if principal.is_owner:
            return cls(principal)
        rows = (
            session.query(Assignment.project_id)
            .filter(Assignment.collection == paths[K.ASSIGNMENTS], Assignment.user_id == principal.id)
            .all()
        )
        return cls(principal, (r[0] for r in rows))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _is_self(self, kind: ResourceKind, record: Any) -> bool:
        return owner_of(kind, record) == self.principal.id

    def _assigned(self, kind: ResourceKind, record: Any) -> bool:
        return project_of(kind, record) in self.assigned_project_ids

    def can_read(self, kind: ResourceKind, record: Any) -> bool:
        role = self.principal.role
        if self.principal.is_owner:
            return True
        if kind is K.FINANCIALS:
            return False
        if kind in (K.USERS, K.ASSIGNMENTS) and role is not Role.PROCUREMENT:
            return self._is_self(kind, record)
        if role is Role.CLIENT:
            if kind is K.CLIENTS:
                return self._is_self(kind, record)
            if kind in CLIENT_VISIBLE:
                return self._assigned(kind, record)
            return False
        if role is Role.EMPLOYEE:
            if kind in PERSONAL:
                return self._is_self(kind, record)
            if kind in EMPLOYEE_PROJECT_VISIBLE:
                return self._assigned(kind, record)
            return False
        if role is Role.PROCUREMENT:
            if kind is K.USERS:
                return self._is_self(kind, record)
            if kind in PERSONAL:
                return self._is_self(kind, record)
            return True
        return False

    def scope(self, kind: ResourceKind, rows: Iterable[T]) -> list[T]:
        return [row for row in rows if self.can_read(kind, row)]

    def redact(self, kind: ResourceKind, payload: dict[str, Any]) -> dict[str, Any]:
        """Strip fields the principal may see the row but not the value of."""
        if kind is K.PROCUREMENT and self.principal.role is Role.CLIENT:
            payload = dict(payload)
            for name in REDACTED_PROCUREMENT_FIELDS:
                if name in payload:
                    payload[name] = 0
        return payload

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def authorize_mutation(
        self,
        kind: ResourceKind,
        action: Action,
        record: Any = None,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> Decision:
        role = self.principal.role
        if self.principal.is_owner:
            return ALLOW
        if kind is K.COMMENTS:
            if action is Action.CREATE:
                if self.can_read(K.PROJECTS, {"id": _field(record, "project_id")}):
                    return ALLOW
                return deny("project not visible")
            if action is Action.DELETE and self._is_self(kind, record):
                return ALLOW
            return deny("only the author may remove a comment")
        if role is Role.PROCUREMENT and kind is K.PROCUREMENT:
            return ALLOW
        if role is Role.EMPLOYEE:
            if kind is K.ATTENDANCE and action is Action.CREATE:
                if self._is_self(kind, record):
                    return ALLOW
                return deny("attendance may only be recorded for yourself")
            if kind is K.TASKS and action is Action.UPDATE:
                if not self._is_self(kind, record):
                    return deny("task belongs to another employee")
                extra = set(changes or {}) - EMPLOYEE_TASK_FIELDS
                if extra:
                    return deny(f"employees may only change {', '.join(sorted(EMPLOYEE_TASK_FIELDS))}")
                return ALLOW
        return deny(f"{role.value} may not {action.value} {kind.value}")

    def require_mutation(
        self,
        kind: ResourceKind,
        action: Action,
        record: Any = None,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        decision = self.authorize_mutation(kind, action, record, changes)
        if not decision:
            logger.info(
                "Denied %s on %s for %s (%s): %s",
                action.value, kind.value, self.principal.id, self.principal.role.value, decision.reason,
            )
            raise Unauthorized(decision.reason or "forbidden")
