"""Append-only audit trail for security-relevant and money-moving actions."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.db import session_scope
from core.models import AuditEvent

logger = logging.getLogger("office_core.audit")

# column widths of audit_events
_LIMITS = {"actor": 120, "action": 80, "resource": 255, "tenant_root": 255, "ip": 64, "ua": 255, "result": 40}


def _clip(name: str, value: Any) -> str:
    return str(value or "")[: _LIMITS[name]]


def record_event(
    *,
    actor: str,
    action: str,
    resource: str = "",
    tenant_root: str = "",
    ip: str = "",
    ua: str = "",
    result: str = "ok",
    meta: Optional[dict[str, Any]] = None,
) -> None:
    """Write one audit row in its own transaction.

    Call it after the business change has committed. A failed write never
    fails the request; the event is logged instead.
    """
    fields = {
        "actor": _clip("actor", actor) or "unknown",
        "action": _clip("action", action) or "event",
        "resource": _clip("resource", resource),
        "tenant_root": _clip("tenant_root", tenant_root),
        "ip": _clip("ip", ip),
        "ua": _clip("ua", ua),
        "result": _clip("result", result) or "ok",
    }
    try:
        with session_scope() as s:
            s.add(AuditEvent(meta_json=json.dumps(meta or {}, ensure_ascii=False, default=str), **fields))
    except SQLAlchemyError as exc:
        logger.warning(
            "Audit write failed for %s by %s: %s",
            fields["action"], fields["actor"],
            exc,
            extra={"event": fields["action"], "actor": fields["actor"], "tenant_root": fields["tenant_root"]},
        )
