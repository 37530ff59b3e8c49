from __future__ import annotations

import datetime as dt
import secrets
from typing import Optional

import httpx
from jose import JWTError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash

from core.auth import make_access_token
from core.credentials import IdentityProviderVerifier, get_identity_provider
from core.db import atomic
from core.errors import AccountInactive, Unauthenticated
from core.models import Account, AuthSession
from core.repositories import accounts as accounts_repo
from core.settings import OfficeSettings, get_settings


def authenticate_password(session: Session, username: str, password: str) -> Account | None:
    account = accounts_repo.get_by_username(session, (username or "").strip())
    if account is None or not account.password_hash:
        return None
    if not check_password_hash(account.password_hash, password or ""):
        return None
    return account


def ensure_active(account: Account) -> Account:
    if not account.is_active:
        raise AccountInactive("account is inactive")
    return account


def issue_access_token(account: Account, settings: Optional[OfficeSettings] = None) -> str:
    cfg = settings or get_settings()
    return make_access_token(cfg.secret_key, account.id, account.username, account.role, ttl_seconds=cfg.access_token_ttl)


def open_session(session: Session, account: Account, settings: Optional[OfficeSettings] = None) -> AuthSession:
    cfg = settings or get_settings()
    now = dt.datetime.now(dt.UTC)
    record = AuthSession(
        id=secrets.token_urlsafe(32),
        account_id=account.id,
        created_at=now,
        expires_at=now + dt.timedelta(seconds=cfg.session_ttl),
    )
    with atomic(session):
        session.add(record)
    return record


def close_session(session: Session, session_id: Optional[str]) -> None:
    if not session_id:
        return
    with atomic(session):
        session.query(AuthSession).filter(AuthSession.id == session_id).delete(synchronize_session=False)


def sign_in_with_provider(
    session: Session,
    id_token: str,
    verifier: Optional[IdentityProviderVerifier] = None,
) -> Account:
    """Exchange a verified identity-provider token for the linked account."""
    provider = verifier or get_identity_provider()
    try:
        claims = provider.decode(id_token)
    except (JWTError, httpx.HTTPError, ValueError) as exc:
        raise Unauthenticated(f"identity provider token rejected: {exc}") from exc
    subject = str(claims.get("sub") or claims.get("user_id") or "")
    account = accounts_repo.get_by_provider_uid(session, subject) if subject else None
    if account is None:
        raise Unauthenticated("no account is linked to this identity", code="account_not_linked")
    return ensure_active(account)
