from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from werkzeug.security import generate_password_hash

# Ensure project root is importable as a module path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.domain import ResourceKind, Role
from core.models import Account, Base, new_id
from core.principal import Principal
from core.tenancy import TenantPathSet, resolve

HOUSE_ROOT = "studio_office/data"
PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Fresh settings, engine, rate limiter and identity provider for every test."""
    from core.credentials import set_identity_provider
    from core.db import reset_engine
    from core.rate_limit import reset_login_throttle
    from core.settings import reset_settings_cache

    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("LOGIN_RATE_LIMIT_BACKEND", "memory")
    monkeypatch.delenv("IDP_JWKS_URL", raising=False)
    monkeypatch.delenv("TENANT_FALLBACK", raising=False)
    monkeypatch.delenv("PAYROLL_HOLD_BLOCKS_PAYMENT", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    reset_settings_cache()
    reset_engine()
    reset_login_throttle()
    set_identity_provider(None)
    yield
    set_identity_provider(None)
    reset_login_throttle()
    reset_engine()
    reset_settings_cache()


@pytest.fixture()
def session():
    """Provide an in-memory SQLite session for isolated tests."""

    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, future=True, expire_on_commit=False)
    with SessionLocal() as session:
        yield session
    engine.dispose()


@pytest.fixture()
def house_paths() -> TenantPathSet:
    return TenantPathSet.under(HOUSE_ROOT)


def seed_account(
    session,
    username: str,
    role: Role = Role.OWNER,
    *,
    account_type: str = "office",
    organization_id: Optional[str] = None,
    owner_id: Optional[str] = None,
    is_active: bool = True,
    provider_uid: Optional[str] = None,
    password: str = PASSWORD,
) -> Account:
    """Insert an account placed in the users directory of the tenant it resolves to."""
    account = Account(
        id=new_id(),
        username=username,
        password_hash=generate_password_hash(password),
        full_name=username.title(),
        role=role.value,
        is_active=is_active,
        account_type=account_type,
        organization_id=organization_id,
        owner_id=owner_id,
        provider_uid=provider_uid,
    )
    account.collection = resolve(Principal.from_account(account))[ResourceKind.USERS]
    session.add(account)
    session.commit()
    return account


@pytest.fixture()
def app_db():
    """Initialise the application's in-memory database and yield its sessionmaker."""
    from core.db import get_sessionmaker, init_database

    init_database(auto_apply_ddl=True)
    return get_sessionmaker()


@pytest.fixture()
def client(app_db):
    from fastapi.testclient import TestClient

    from app.main import create_app

    with TestClient(create_app()) as c:
        yield c


def bearer(account: Account) -> dict[str, str]:
    from core.services.auth import issue_access_token

    return {"Authorization": f"Bearer {issue_access_token(account)}"}
