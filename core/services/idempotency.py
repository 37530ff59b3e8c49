"""At-most-once execution of payroll writes keyed by the ``Idempotency-Key`` header.

A key is scoped to (tenant root, method, path). The first request under a key
runs and its JSON response is stored; a replay with the same body gets the
stored response back, a replay with a different body is a conflict.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Callable, Optional

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import Conflict, ValidationFailure
from core.models import IdempotencyRecord

logger = logging.getLogger("office_core.idempotency")

HEADER = "Idempotency-Key"
MAX_KEY_LENGTH = 200

Produced = tuple[dict[str, Any], int]


def fingerprint(payload: Any) -> str:
    """SHA-256 over the canonical JSON form of a request payload."""
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _lookup(db: Session, scope: str, key: str, method: str, path: str) -> Optional[IdempotencyRecord]:
    return (
        db.query(IdempotencyRecord)
        .filter_by(tenant_root=scope, key=key, method=method, path=path)
        .one_or_none()
    )


def _replay(record: IdempotencyRecord, body_hash: str) -> Produced:
    if record.body_hash != body_hash:
        raise Conflict("idempotency key reused with a different body", code="idempotency_conflict")
    if record.status_code is None:
        raise Conflict("a request with this idempotency key is still in progress", code="idempotency_in_progress")
    logger.info("Replaying %s %s for key %s", record.method, record.path, record.key)
    return json.loads(record.response_json or "{}"), int(record.status_code)


def _claim(db: Session, record: IdempotencyRecord) -> bool:
    """Insert the key row ahead of the write it guards; False when another request holds it."""
    db.add(record)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return False
    return True


def run_idempotent(
    db: Session,
    request: Request,
    *,
    scope: str,
    payload: Any,
    produce: Callable[[], Produced],
) -> Produced:
    """Run ``produce`` once per idempotency key; without a key it simply runs.

    The key row is flushed before ``produce`` runs, so it commits in the same
    transaction as the business write and a concurrent request with the same
    key fails on the unique constraint instead of writing twice.
    """
    key = (request.headers.get(HEADER) or "").strip()
    if not key:
        return produce()
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationFailure(f"{HEADER} must be at most {MAX_KEY_LENGTH} characters")

    method = request.method.upper()
    path = request.url.path
    body_hash = fingerprint(payload)

    existing = _lookup(db, scope, key, method, path)
    if existing is not None:
        return _replay(existing, body_hash)

    record = IdempotencyRecord(key=key, method=method, path=path, body_hash=body_hash, tenant_root=scope)
    if not _claim(db, record):
        winner = _lookup(db, scope, key, method, path)
        if winner is None:
            raise Conflict("idempotency key is being claimed concurrently", code="idempotency_in_progress")
        return _replay(winner, body_hash)

    try:
        content, status = produce()
    except Exception:
        # drops the claim along with whatever the failed write left behind
        db.rollback()
        raise

    record.status_code = status
    record.response_json = json.dumps(content, ensure_ascii=False, default=str)
    db.commit()
    return content, status
