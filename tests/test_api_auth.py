from __future__ import annotations

import base64

from jose import jwt
from sqlalchemy.exc import OperationalError

from conftest import PASSWORD, bearer, seed_account
from core.credentials import IdentityProviderVerifier, set_identity_provider
from core.domain import Role
from core.models import AuditEvent, AuthSession
from core.principal import PrincipalLoader
from core.settings import reset_settings_cache

IDP_SECRET = b"identity-provider-signing-key"


def _login(client, username, password=PASSWORD):
    return client.post("/api/auth/login", json={"username": username, "password": password})


def test_login_returns_token_and_session_cookie(client, app_db):
    with app_db() as s:
        seed_account(s, "olivia")

    r = _login(client, "olivia")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["token"]
    assert body["user"]["username"] == "olivia"
    assert body["user"]["role"] == "principle"
    assert "office_session" in r.cookies

    # the cookie alone authenticates follow-up requests
    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["tenantRoot"] == "studio_office/data"

    # so does the bearer token
    client.cookies.clear()
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.json()["user"]["username"] == "olivia"


def test_bad_password_is_rejected_and_audited(client, app_db):
    with app_db() as s:
        seed_account(s, "olivia")

    r = _login(client, "olivia", "wrong-password")
    assert r.status_code == 401
    assert r.json()["code"] == "invalid_credentials"

    with app_db() as s:
        events = s.query(AuditEvent).filter(AuditEvent.action == "auth.login").all()
    assert [e.result for e in events] == ["denied"]


def test_inactive_account_cannot_sign_in(client, app_db):
    with app_db() as s:
        account = seed_account(s, "idle", Role.EMPLOYEE, is_active=False)

    r = _login(client, "idle")
    assert r.status_code == 403
    assert r.json()["code"] == "account_inactive"

    # an old token stops working as well
    r = client.get("/api/auth/me", headers=bearer(account))
    assert r.status_code == 403


def test_anonymous_requests_are_rejected(client):
    r = client.get("/api/projects")
    assert r.status_code == 401
    assert r.json()["ok"] is False
    assert r.json()["code"] == "unauthenticated"


def test_login_is_rate_limited(monkeypatch, client, app_db):
    monkeypatch.setenv("LOGIN_RATE_LIMIT_ATTEMPTS", "3")
    reset_settings_cache()
    with app_db() as s:
        seed_account(s, "olivia")

    for _ in range(3):
        assert _login(client, "olivia", "nope-nope").status_code == 401
    r = _login(client, "olivia")
    assert r.status_code == 429
    assert r.json()["code"] == "too_many_requests"


def test_signup_creates_owner_of_a_fresh_tenant(client):
    r = client.post(
        "/api/auth/signup",
        json={"username": "indy", "password": "longenough", "accountType": "individual", "fullName": "Indy"},
    )
    assert r.status_code == 201, r.text
    user = r.json()["user"]
    assert user["role"] == "principle"
    assert user["accountType"] == "individual"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {r.json()['token']}"})
    assert me.json()["tenantRoot"] == f"individuals/{user['id']}/data"

    again = client.post(
        "/api/auth/signup",
        json={"username": "indy", "password": "longenough", "accountType": "organization"},
    )
    assert again.status_code == 409
    assert again.json()["code"] == "username_taken"


def test_signup_rejects_office_accounts(client):
    r = client.post("/api/auth/signup", json={"username": "sneaky", "password": "longenough", "accountType": "office"})
    assert r.status_code == 400


def test_logout_ends_the_session(client, app_db):
    with app_db() as s:
        seed_account(s, "olivia")
    _login(client, "olivia")
    assert client.get("/api/auth/me").status_code == 200

    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    with app_db() as s:
        assert s.query(AuthSession).count() == 0
    assert client.get("/api/auth/me").status_code == 401


def _configure_idp():
    jwks = {
        "keys": [
            {
                "kty": "oct",
                "kid": "k1",
                "alg": "HS256",
                "k": base64.urlsafe_b64encode(IDP_SECRET).decode().rstrip("="),
            }
        ]
    }
    set_identity_provider(IdentityProviderVerifier(lambda: jwks, audience="studio", algorithms=["HS256"]))


def _idp_token(sub: str) -> str:
    return jwt.encode({"sub": sub, "aud": "studio"}, IDP_SECRET.decode(), algorithm="HS256", headers={"kid": "k1"})


def test_provider_sign_in_for_linked_account(client, app_db):
    _configure_idp()
    with app_db() as s:
        seed_account(s, "linked", Role.EMPLOYEE, provider_uid="idp-123")

    r = client.post("/api/auth/provider", json={"idToken": _idp_token("idp-123")})
    assert r.status_code == 200, r.text
    assert r.json()["user"]["username"] == "linked"

    r = client.post("/api/auth/provider", json={"idToken": _idp_token("idp-unknown")})
    assert r.status_code == 401
    assert r.json()["code"] == "account_not_linked"


def test_provider_sign_in_rejects_garbage(client):
    _configure_idp()
    r = client.post("/api/auth/provider", json={"idToken": "not-a-jwt"})
    assert r.status_code == 401


def test_successful_login_clears_failed_attempts(monkeypatch, client, app_db):
    monkeypatch.setenv("LOGIN_RATE_LIMIT_ATTEMPTS", "3")
    reset_settings_cache()
    with app_db() as s:
        seed_account(s, "olivia")

    for _ in range(2):
        _login(client, "olivia", "nope-nope")
    assert _login(client, "olivia").status_code == 200
    for _ in range(2):
        _login(client, "olivia", "nope-nope")
    assert _login(client, "olivia").status_code == 200


def test_identity_store_outage_is_unauthenticated(client, app_db, monkeypatch, caplog):
    with app_db() as s:
        account = seed_account(s, "olivia")

    def _unreachable(self, claim):
        raise OperationalError("SELECT accounts", {}, Exception("connection refused"))

    monkeypatch.setattr(PrincipalLoader, "_find", _unreachable)
    r = client.get("/api/projects", headers=bearer(account))
    assert r.status_code == 401
    assert r.json()["code"] == "unauthenticated"
    assert "Identity store unavailable" in caplog.text
