from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from core.db import atomic
from core.domain import AccountType, ResourceKind, Role
from core.errors import Conflict, NotFound, Unauthorized, ValidationFailure
from core.models import Account, new_id
from core.principal import Principal
from core.repositories import accounts as accounts_repo
from core.settings import OfficeSettings
from core.tenancy import TenantPathSet, inherit_tenant, resolve

logger = logging.getLogger("office_core.accounts")

# roles an owner may hand out inside its own tenant
MEMBER_ROLES = frozenset({Role.OWNER, Role.EMPLOYEE, Role.CLIENT, Role.PROCUREMENT})
SIGNUP_TYPES = frozenset({AccountType.INDIVIDUAL, AccountType.CUSTOM, AccountType.ORGANIZATION})


def _ensure_username_free(session: Session, username: str) -> str:
    name = (username or "").strip()
    if not name:
        raise ValidationFailure("username is required", details={"field": "username"})
    if accounts_repo.get_by_username(session, name) is not None:
        raise Conflict("username already taken", code="username_taken")
    return name


def _password_hash(password: Optional[str]) -> str:
    if not password:
        return ""
    if len(password) < 6:
        raise ValidationFailure("password must have at least 6 characters", details={"field": "password"})
    return generate_password_hash(password)


def build_member(
    session: Session,
    creator: Principal,
    paths: TenantPathSet,
    *,
    username: str,
    role: Role,
    password: Optional[str] = None,
    full_name: str = "",
    email: str = "",
    provider_uid: Optional[str] = None,
    settings: Optional[OfficeSettings] = None,
) -> Account:
    """Prepare (but do not commit) an account that lives in ``creator``'s tenant."""
    if role not in MEMBER_ROLES:
        raise Unauthorized(f"role {role.value} cannot be granted here")
    account = Account(
        id=new_id(),
        username=_ensure_username_free(session, username),
        password_hash=_password_hash(password),
        full_name=full_name or "",
        email=email or "",
        role=role.value,
        is_active=True,
        provider_uid=provider_uid or None,
        collection=paths[ResourceKind.USERS],
        **inherit_tenant(creator, settings),
    )
    return account


def create_member(session: Session, creator: Principal, paths: TenantPathSet, **fields: Any) -> Account:
    account = build_member(session, creator, paths, **fields)
    with atomic(session):
        session.add(account)
    logger.info("Created %s account %s in %s", account.role, account.id, paths.root)
    return account


def get_member(session: Session, paths: TenantPathSet, account_id: str) -> Account:
    account = accounts_repo.get_by_id(session, account_id)
    if account is None or account.collection != paths[ResourceKind.USERS]:
        raise NotFound(f"users {account_id} not found")
    return account


def list_members(session: Session, paths: TenantPathSet) -> list[Account]:
    return accounts_repo.list_in_directory(session, paths[ResourceKind.USERS])


def update_member(session: Session, paths: TenantPathSet, account_id: str, changes: Mapping[str, Any]) -> Account:
    changes = dict(changes)
    with atomic(session):
        account = get_member(session, paths, account_id)
        if "username" in changes and changes["username"] != account.username:
            account.username = _ensure_username_free(session, changes.pop("username"))
        changes.pop("username", None)
        if "password" in changes:
            account.password_hash = _password_hash(changes.pop("password"))
        if "role" in changes:
            role = Role(changes.pop("role"))
            if role not in MEMBER_ROLES:
                raise Unauthorized(f"role {role.value} cannot be granted here")
            account.role = role.value
        for name in ("full_name", "email", "is_active"):
            if name in changes:
                setattr(account, name, changes[name])
    return account


def delete_member(session: Session, paths: TenantPathSet, account_id: str) -> None:
    with atomic(session):
        session.delete(get_member(session, paths, account_id))


def sign_up(
    session: Session,
    *,
    username: str,
    password: str,
    account_type: AccountType,
    full_name: str = "",
    email: str = "",
    organization_id: Optional[str] = None,
    settings: Optional[OfficeSettings] = None,
) -> Account:
    """Create the owner account of a fresh tenant."""
    if account_type not in SIGNUP_TYPES:
        raise ValidationFailure("unsupported account type", details={"field": "accountType"})
    if not password:
        raise ValidationFailure("password is required", details={"field": "password"})
    account = Account(
        id=new_id(),
        username=_ensure_username_free(session, username),
        password_hash=_password_hash(password),
        full_name=full_name or "",
        email=email or "",
        role=Role.OWNER.value,
        is_active=True,
        account_type=account_type.value,
        organization_id=organization_id if account_type is not AccountType.INDIVIDUAL else None,
    )
    account.collection = resolve(Principal.from_account(account), settings)[ResourceKind.USERS]
    with atomic(session):
        session.add(account)
    logger.info("Signed up %s owner %s at %s", account_type.value, account.id, account.collection)
    return account
