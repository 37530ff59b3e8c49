"""Per-request principal, tenant and access context.

Everything a handler needs to know about the caller travels in these values;
nothing is stashed on module globals or the request object.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

from fastapi import Depends, Header, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.access import AccessFilter
from core.credentials import InboundCredentials, build_resolver
from core.domain import ResourceKind, Role
from core.errors import AccountInactive, NotFound, StoreUnavailable, Unauthenticated, Unauthorized
from core.metrics import observe_auth
from core.principal import LoadStatus, Principal, PrincipalLoad, PrincipalLoader
from core.services.audit import record_event
from core.settings import get_settings
from core.tenancy import TenantPathSet, resolve

from .database import get_db

logger = logging.getLogger("office_api.context")

T = TypeVar("T")


@dataclass(frozen=True)
class RequestContext:
    load: PrincipalLoad

    @property
    def principal(self) -> Optional[Principal]:
        return self.load.principal


@dataclass(frozen=True)
class TenantContext:
    principal: Principal
    paths: TenantPathSet
    access: AccessFilter

    def require_role(self, *roles: Role) -> Principal:
        """Route-level guard; owners and platform admins always pass."""
        if self.principal.is_owner or self.principal.role in roles:
            return self.principal
        raise Unauthorized(f"{self.principal.role.value} may not use this endpoint")

    def require_owner(self) -> Principal:
        return self.require_role()

    def visible(self, kind: ResourceKind, record: T) -> T:
        """Return ``record`` if the caller may read it; hidden rows look absent."""
        if record is None or not self.access.can_read(kind, record):
            raise NotFound(f"{kind.value} not found")
        return record

    def audit(self, request: Request, action: str, resource: str = "", **meta: Any) -> None:
        record_event(
            actor=f"{self.principal.role.value}:{self.principal.id}",
            action=action,
            resource=resource or str(request.url.path),
            tenant_root=self.paths.root,
            ip=client_ip(request),
            ua=request.headers.get("user-agent", ""),
            meta=meta,
        )


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    return forwarded or (request.client.host if request.client else "")


def get_request_context(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
) -> RequestContext:
    settings = get_settings()
    inbound = InboundCredentials(
        authorization=authorization,
        session_cookie=request.cookies.get(settings.session_cookie_name),
    )
    claim = build_resolver(settings).resolve(inbound, db)
    load = PrincipalLoader(db).load(claim)
    observe_auth(claim.scheme.value, load.status.value)
    return RequestContext(load=load)


def get_tenant_context(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> TenantContext:
    if ctx.load.status is LoadStatus.INACTIVE:
        raise AccountInactive("account is inactive")
    principal = ctx.principal
    if principal is None:
        # an unreachable identity store fails closed; PrincipalLoader already logged it
        raise Unauthenticated("authentication required")
    paths = resolve(principal)
    try:
        access = AccessFilter.for_principal(db, principal, paths)
    except SQLAlchemyError as exc:
        logger.error("Could not load assignments for %s: %s", principal.id, exc)
        raise StoreUnavailable("data store unavailable") from exc
    return TenantContext(principal=principal, paths=paths, access=access)
