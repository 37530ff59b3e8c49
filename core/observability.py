from __future__ import annotations

import os
from typing import Any, Optional

from .settings import get_settings

_REDACTED_HEADERS = {"authorization", "cookie", "set-cookie"}


def _scrub_event(event: dict[str, Any], hint: dict[str, Any] | None) -> dict[str, Any] | None:
    req = event.get("request") or {}
    hdrs = req.get("headers") or {}
    for k in list(hdrs.keys()):
        if str(k).lower() in _REDACTED_HEADERS:
            hdrs[k] = "[redacted]"
    cookie_name = get_settings().session_cookie_name
    cookies = req.get("cookies")
    if isinstance(cookies, dict) and cookie_name in cookies:
        cookies[cookie_name] = "[redacted]"
    data = req.get("data")
    if isinstance(data, dict) and "password" in data:
        data["password"] = "[redacted]"
    if req:
        req["headers"] = hdrs
        event["request"] = req
    return event


def init_sentry() -> Optional[object]:
    """Initialize Sentry if SENTRY_DSN is set and sentry_sdk is installed.

    Returns the sentry SDK module when initialized, otherwise None.
    """
    dsn = (os.environ.get("SENTRY_DSN") or "").strip()
    if not dsn:
        return None
    try:
        import sentry_sdk
        from sentry_sdk.integrations.starlette import StarletteIntegration
    except ImportError:
        return None

    settings = get_settings()
    sentry_sdk.init(
        dsn=dsn,
        release=settings.git_sha or settings.app_version,
        traces_sample_rate=float(os.environ.get("SENTRY_TRACES_SAMPLE_RATE", "0.0") or 0.0),
        environment=os.environ.get("SENTRY_ENV") or os.environ.get("ENV") or "dev",
        integrations=[StarletteIntegration()],
        send_default_pii=False,
        before_send=_scrub_event,
    )
    return sentry_sdk
