from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.credentials import CredentialClaim, CredentialScheme, LookupField
from core.domain import Role
from core.models import Account

logger = logging.getLogger("office_core.principal")


@dataclass(frozen=True)
class Principal:
    """Authenticated identity for one request. Never persisted."""

    id: str
    username: str
    role: Role
    full_name: str = ""
    is_active: bool = True
    is_founder: bool = False
    is_platform_admin: bool = False
    account_type: str = ""
    organization_id: Optional[str] = None
    owner_id: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account) -> "Principal":
        return cls(
            id=account.id,
            username=account.username,
            role=Role(account.role),
            full_name=account.full_name or "",
            is_active=bool(account.is_active),
            is_founder=bool(account.is_founder),
            is_platform_admin=bool(account.is_platform_admin),
            account_type=(account.account_type or "").strip().lower(),
            organization_id=(account.organization_id or None),
            owner_id=(account.owner_id or None),
        )

    @property
    def is_owner(self) -> bool:
        return self.role in (Role.OWNER, Role.PLATFORM_ADMIN)


class LoadStatus(str, Enum):
    LOADED = "loaded"
    ANONYMOUS = "anonymous"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class PrincipalLoad:
    status: LoadStatus
    principal: Optional[Principal] = None
    scheme: Optional[CredentialScheme] = None


class PrincipalLoader:
    """Loads the account behind a verified credential from the global identity store.

    Never raises for store failures: an unreachable store yields ``UNAVAILABLE``
    with no principal so routes answer 503 instead of crashing.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _find(self, claim: CredentialClaim) -> Optional[Account]:
        if claim.lookup is LookupField.PROVIDER_UID:
            return (
                self._session.query(Account)
                .filter(Account.provider_uid == claim.subject)
                .first()
            )
        return self._session.get(Account, claim.subject)

    def load(self, claim: CredentialClaim) -> PrincipalLoad:
        if claim.scheme is CredentialScheme.ANONYMOUS or not claim.subject:
            return PrincipalLoad(LoadStatus.ANONYMOUS)
        try:
            account = self._find(claim)
        except SQLAlchemyError as exc:
            logger.error("Identity store unavailable while loading principal: %s", exc)
            return PrincipalLoad(LoadStatus.UNAVAILABLE, scheme=claim.scheme)
        if account is None:
            logger.info("Credential subject %s has no account (%s)", claim.subject, claim.scheme.value)
            return PrincipalLoad(LoadStatus.NOT_FOUND, scheme=claim.scheme)
        if not account.is_active:
            return PrincipalLoad(LoadStatus.INACTIVE, scheme=claim.scheme)
        try:
            principal = Principal.from_account(account)
        except ValueError:
            logger.warning("Account %s carries unknown role %r", account.id, account.role)
            return PrincipalLoad(LoadStatus.NOT_FOUND, scheme=claim.scheme)
        return PrincipalLoad(LoadStatus.LOADED, principal=principal, scheme=claim.scheme)
