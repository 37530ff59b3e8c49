from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from core.domain import AccountType
from core.errors import RateLimited, Unauthenticated
from core.models import Account
from core.rate_limit import get_login_throttle
from core.repositories import accounts as accounts_repo
from core.services import accounts as account_service
from core.services.audit import record_event
from core.services.auth import (
    authenticate_password,
    close_session,
    ensure_active,
    issue_access_token,
    open_session,
    sign_in_with_provider,
)
from core.settings import get_settings

from ..context import TenantContext, client_ip, get_tenant_context
from ..database import get_db
from ..schemas import LoginRequest, ProviderSignInRequest, SignupRequest, SimpleOkResponse, TokenResponse, UserOut, dump

logger = logging.getLogger("office_api.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


def _start_session(db: Session, account: Account, response: Response) -> dict:
    """Issue a bearer token and a server-side session cookie for ``account``."""
    settings = get_settings()
    token = issue_access_token(account, settings)
    record = open_session(db, account, settings)
    response.set_cookie(
        settings.session_cookie_name,
        record.id,
        max_age=settings.session_ttl,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return TokenResponse(token=token, user=UserOut.model_validate(account)).model_dump(by_alias=True, mode="json")


@router.post("/login")
def login(payload: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    ip = client_ip(request)
    throttle = get_login_throttle()
    key = throttle.key(payload.username, ip)
    if throttle.locked(key):
        logger.warning("Login throttled for %s from %s", payload.username, ip)
        record_event(actor=f"anon:{ip}", action="auth.login", ip=ip, result="throttled", meta={"username": payload.username})
        raise RateLimited("too many failed sign-in attempts; try again later")
    account = authenticate_password(db, payload.username, payload.password)
    if account is None:
        throttle.record_failure(key)
        record_event(actor=f"anon:{ip}", action="auth.login", ip=ip, result="denied", meta={"username": payload.username})
        raise Unauthenticated("invalid username or password", code="invalid_credentials")
    ensure_active(account)
    throttle.clear(key)
    body = _start_session(db, account, response)
    record_event(actor=f"{account.role}:{account.id}", action="auth.login", tenant_root=account.collection, ip=ip)
    return body


@router.post("/signup", status_code=201)
def signup(payload: SignupRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    account = account_service.sign_up(
        db,
        username=payload.username,
        password=payload.password,
        account_type=AccountType(payload.account_type),
        full_name=payload.full_name,
        email=payload.email,
        organization_id=payload.organization_id,
    )
    body = _start_session(db, account, response)
    record_event(
        actor=f"{account.role}:{account.id}",
        action="auth.signup",
        tenant_root=account.collection,
        ip=client_ip(request),
    )
    return body


@router.post("/provider")
def provider_sign_in(payload: ProviderSignInRequest, response: Response, db: Session = Depends(get_db)):
    account = sign_in_with_provider(db, payload.id_token)
    return _start_session(db, account, response)


@router.post("/logout", response_model=SimpleOkResponse)
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    settings = get_settings()
    session_id: Optional[str] = request.cookies.get(settings.session_cookie_name)
    close_session(db, session_id)
    response.delete_cookie(settings.session_cookie_name)
    return SimpleOkResponse()


@router.get("/me")
def me(ctx: TenantContext = Depends(get_tenant_context), db: Session = Depends(get_db)):
    account = accounts_repo.get_by_id(db, ctx.principal.id)
    if account is None:
        raise Unauthenticated("authentication required")
    return {"ok": True, "user": dump(UserOut, account), "tenantRoot": ctx.paths.root}
