from __future__ import annotations

from sqlalchemy.orm import Session

from core.db import atomic
from core.domain import ResourceKind
from core.errors import ValidationFailure
from core.models import Comment, Project
from core.repositories.tenant import get_or_404, list_in
from core.tenancy import TenantPathSet

K = ResourceKind


def add_comment(session: Session, paths: TenantPathSet, project_id: str, user_id: str, body: str) -> Comment:
    text = (body or "").strip()
    if not text:
        raise ValidationFailure("comment must not be empty", details={"field": "comment"})
    get_or_404(session, Project, paths, K.PROJECTS, project_id)
    comment = Comment(collection=paths[K.COMMENTS], project_id=project_id, user_id=user_id, body=text)
    with atomic(session):
        session.add(comment)
    return comment


def delete_comment(session: Session, comment: Comment) -> None:
    with atomic(session):
        session.delete(comment)


def list_comments(session: Session, paths: TenantPathSet, project_id: str) -> list[Comment]:
    return list_in(session, Comment, paths, K.COMMENTS, Comment.project_id == project_id, order_by=Comment.created_at)
