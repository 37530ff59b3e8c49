from __future__ import annotations

import base64
import hmac
import json
import time
from hashlib import sha256
from typing import Any

from .settings import SEVEN_DAYS

TOKEN_TYPE = "access"
TOKEN_VERSION = 1


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip('=')


def _b64url_decode(data: str) -> bytes:
    s = data + '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(s.encode())


def make_access_token(
    secret: str,
    subject: str,
    username: str,
    role: str,
    *,
    ttl_seconds: int = SEVEN_DAYS,
    now: int | None = None,
) -> str:
    issued = int(time.time()) if now is None else int(now)
    payload = {
        "sub": str(subject),
        "usr": str(username),
        "role": str(role),
        "iat": issued,
        "exp": issued + int(ttl_seconds),
        "typ": TOKEN_TYPE,
        "ver": TOKEN_VERSION,
    }
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
    sig = hmac.new(secret.encode(), body, sha256).digest()
    return f"{_b64url(body)}.{_b64url(sig)}"


def verify_access_token(secret: str, token: str, *, now: int | None = None) -> dict[str, Any] | None:
    """Return the payload of a valid, unexpired access token, else None."""
    try:
        part_body, part_sig = token.split('.')
    except ValueError:
        return None
    try:
        body = _b64url_decode(part_body)
        got_sig = _b64url_decode(part_sig)
    except (ValueError, TypeError):
        return None
    exp_sig = hmac.new(secret.encode(), body, sha256).digest()
    if not hmac.compare_digest(exp_sig, got_sig):
        return None
    try:
        payload = json.loads(body.decode())
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    current = int(time.time()) if now is None else int(now)
    if int(payload.get("exp", 0)) < current:
        return None
    if payload.get("typ") != TOKEN_TYPE:
        return None
    if int(payload.get("ver", 0)) != TOKEN_VERSION:
        return None
    if not payload.get("sub"):
        return None
    return payload
