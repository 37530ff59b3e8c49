"""Credential resolution: an ordered chain of verifier strategies.

Each strategy inspects the inbound credentials and returns a ``Verification``.
The first successful verification wins; when none succeeds the request is
anonymous, which is not an error.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Sequence

import httpx
from jose import JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.auth import verify_access_token
from core.models import AuthSession
from core.settings import OfficeSettings, get_settings

logger = logging.getLogger("office_core.credentials")


class CredentialScheme(str, Enum):
    SIGNED_TOKEN = "signed_token"
    IDENTITY_PROVIDER = "identity_provider"
    SESSION = "session"
    ANONYMOUS = "anonymous"


class LookupField(str, Enum):
    ACCOUNT_ID = "account_id"
    PROVIDER_UID = "provider_uid"


@dataclass(frozen=True)
class InboundCredentials:
    authorization: Optional[str] = None
    session_cookie: Optional[str] = None

    @property
    def bearer(self) -> Optional[str]:
        value = (self.authorization or "").strip()
        if value.lower().startswith("bearer "):
            token = value.split(" ", 1)[1].strip()
            return token or None
        return None


@dataclass(frozen=True)
class CredentialClaim:
    scheme: CredentialScheme
    subject: str
    lookup: LookupField = LookupField.ACCOUNT_ID
    role: Optional[str] = None


@dataclass(frozen=True)
class Verification:
    claim: Optional[CredentialClaim] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.claim is not None

    @classmethod
    def success(cls, claim: CredentialClaim) -> "Verification":
        return cls(claim=claim)

    @classmethod
    def rejected(cls, reason: str) -> "Verification":
        return cls(claim=None, reason=reason)


ANONYMOUS = CredentialClaim(scheme=CredentialScheme.ANONYMOUS, subject="")


class CredentialVerifier(Protocol):
    scheme: CredentialScheme

    def verify(self, inbound: InboundCredentials, session: Session) -> Verification:
        ...


class SignedTokenVerifier:
    scheme = CredentialScheme.SIGNED_TOKEN

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def verify(self, inbound: InboundCredentials, session: Session) -> Verification:
        token = inbound.bearer
        if not token:
            return Verification.rejected("no bearer token")
        payload = verify_access_token(self._secret, token)
        if payload is None:
            return Verification.rejected("invalid or expired signed token")
        return Verification.success(
            CredentialClaim(
                scheme=self.scheme,
                subject=str(payload["sub"]),
                lookup=LookupField.ACCOUNT_ID,
                role=str(payload.get("role") or "") or None,
            )
        )


KeySetProvider = Callable[[], dict[str, Any]]


class HttpKeySetProvider:
    """Fetches the provider's JSON Web Key Set once per process."""

    def __init__(self, url: str, *, timeout: float = 5.0) -> None:
        self._url = url
        self._timeout = timeout
        self._keys: Optional[dict[str, Any]] = None
        self._lock = threading.Lock()

    def __call__(self) -> dict[str, Any]:
        if self._keys is None:
            with self._lock:
                if self._keys is None:
                    response = httpx.get(self._url, timeout=self._timeout)
                    response.raise_for_status()
                    self._keys = response.json()
        return self._keys


class IdentityProviderVerifier:
    scheme = CredentialScheme.IDENTITY_PROVIDER

    def __init__(
        self,
        key_set: Optional[KeySetProvider],
        *,
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
        algorithms: Sequence[str] = ("RS256",),
    ) -> None:
        self._key_set = key_set
        self._audience = audience
        self._issuer = issuer
        self._algorithms = list(algorithms)

    def decode(self, token: str) -> dict[str, Any]:
        """Verify a provider token and return its claims; raises JWTError on failure."""
        if self._key_set is None:
            raise JWTError("identity provider is not configured")
        header = jwt.get_unverified_header(token)
        keys = self._key_set().get("keys", [])
        kid = header.get("kid")
        candidates = [k for k in keys if kid is None or k.get("kid") == kid]
        if not candidates:
            raise JWTError("no matching signing key")
        return jwt.decode(
            token,
            candidates[0],
            algorithms=self._algorithms,
            audience=self._audience,
            issuer=self._issuer,
            options={"verify_aud": self._audience is not None},
        )

    def verify(self, inbound: InboundCredentials, session: Session) -> Verification:
        token = inbound.bearer
        if not token:
            return Verification.rejected("no bearer token")
        if self._key_set is None:
            return Verification.rejected("identity provider is not configured")
        try:
            claims = self.decode(token)
        except (JWTError, httpx.HTTPError, ValueError) as exc:
            return Verification.rejected(f"identity provider token rejected: {exc}")
        subject = str(claims.get("sub") or claims.get("user_id") or "")
        if not subject:
            return Verification.rejected("identity provider token has no subject")
        return Verification.success(
            CredentialClaim(scheme=self.scheme, subject=subject, lookup=LookupField.PROVIDER_UID)
        )


class SessionCookieVerifier:
    scheme = CredentialScheme.SESSION

    def verify(self, inbound: InboundCredentials, session: Session) -> Verification:
        sid = (inbound.session_cookie or "").strip()
        if not sid:
            return Verification.rejected("no session cookie")
        try:
            record = session.get(AuthSession, sid)
        except SQLAlchemyError as exc:
            logger.error("Session store lookup failed: %s", exc)
            return Verification.rejected("session store unavailable")
        if record is None:
            return Verification.rejected("unknown session")
        expires = record.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=dt.UTC)
        if expires <= dt.datetime.now(dt.UTC):
            return Verification.rejected("session expired")
        return Verification.success(
            CredentialClaim(scheme=self.scheme, subject=record.account_id, lookup=LookupField.ACCOUNT_ID)
        )


class CredentialResolver:
    def __init__(self, verifiers: Sequence[CredentialVerifier]) -> None:
        self._verifiers = tuple(verifiers)

    def resolve(self, inbound: InboundCredentials, session: Session) -> CredentialClaim:
        for verifier in self._verifiers:
            result = verifier.verify(inbound, session)
            if result.ok:
                assert result.claim is not None
                return result.claim
            logger.debug("credential scheme %s skipped: %s", verifier.scheme.value, result.reason)
        return ANONYMOUS


_default_idp: Optional[IdentityProviderVerifier] = None
_default_idp_lock = threading.Lock()


def get_identity_provider(settings: Optional[OfficeSettings] = None) -> IdentityProviderVerifier:
    """Process-lifetime identity provider verifier built from settings."""
    global _default_idp
    if _default_idp is None:
        with _default_idp_lock:
            if _default_idp is None:
                cfg = settings or get_settings()
                keys = HttpKeySetProvider(cfg.idp_jwks_url) if cfg.idp_jwks_url else None
                _default_idp = IdentityProviderVerifier(keys, audience=cfg.idp_audience, issuer=cfg.idp_issuer)
    return _default_idp


def set_identity_provider(verifier: Optional[IdentityProviderVerifier]) -> None:
    """Replace the process-wide identity provider verifier (tests, custom wiring)."""
    global _default_idp
    with _default_idp_lock:
        _default_idp = verifier


def build_resolver(settings: Optional[OfficeSettings] = None) -> CredentialResolver:
    cfg = settings or get_settings()
    return CredentialResolver(
        [
            SignedTokenVerifier(cfg.secret_key),
            get_identity_provider(cfg),
            SessionCookieVerifier(),
        ]
    )
