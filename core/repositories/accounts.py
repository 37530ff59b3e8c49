from __future__ import annotations

from sqlalchemy.orm import Session

from core.models import Account


def get_by_username(session: Session, username: str) -> Account | None:
    return session.query(Account).filter(Account.username == username).first()


def get_by_id(session: Session, account_id: str) -> Account | None:
    return session.get(Account, account_id)


def get_by_provider_uid(session: Session, provider_uid: str) -> Account | None:
    return session.query(Account).filter(Account.provider_uid == provider_uid).first()


def list_in_directory(session: Session, collection: str) -> list[Account]:
    return (
        session.query(Account)
        .filter(Account.collection == collection)
        .order_by(Account.created_at.asc())
        .all()
    )
