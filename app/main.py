"""ASGI entry point: the office API plus the cross-cutting HTTP layer around it."""

from __future__ import annotations

import os
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import PlainTextResponse

from core.logging_utils import maybe_enable_json_logging, set_request_id
from core.metrics import export_prometheus, observe_request
from core.observability import init_sentry
from core.settings import get_settings
from office_api.main import lifespan as api_lifespan
from office_api.main import register_exception_handlers, router as api_router

API_PREFIX = "/api"
IDEMPOTENT_PATHS = (f"{API_PREFIX}/salaries/generate", f"{API_PREFIX}/salary-payments")
PUBLIC_PATHS = frozenset(
    f"{API_PREFIX}{p}"
    for p in ("/auth/login", "/auth/signup", "/auth/provider", "/healthz", "/livez", "/readyz", "/meta")
)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cross-Origin-Resource-Policy": "same-site",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(), usb=(), payment=()",
    # JSON API and spreadsheet downloads only; nothing here renders HTML
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

TAGS = [
    {"name": "auth", "description": "Password, session cookie and identity-provider sign-in."},
    {"name": "people", "description": "Tenant members, employee payroll profiles and clients."},
    {"name": "projects", "description": "Projects, divisions, items, assignments, comments and financials."},
    {"name": "work", "description": "Tasks, attendance, procurement and employee documents."},
    {"name": "payroll", "description": "Monthly salaries, the payment ledger, holds and advances."},
]

_ERROR_CODES = ("400", "401", "403", "404", "409")


def _cors_origins() -> list[str]:
    raw = (os.environ.get("API_CORS_ORIGINS") or "").strip()
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return [f"http://{host}:{port}" for host in ("localhost", "127.0.0.1") for port in (3000, 8000)]


def _is_https(request: Request) -> bool:
    forwarded = request.headers.get("x-forwarded-proto", "").split(",")[0].strip().lower()
    return (request.url.scheme or "").lower() == "https" or forwarded == "https"


def _install_middleware(application: FastAPI) -> None:
    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        # the session cookie has to survive cross-origin SPA calls
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Idempotency-Key", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )

    @application.middleware("http")
    async def timing_and_metrics(request: Request, call_next):
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            route = request.scope.get("route")
            handler = getattr(route, "path", None) or request.url.path
            observe_request(handler, request.method, status, max(0.0, time.perf_counter() - started))
        return response

    @application.middleware("http")
    async def hardening_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if _is_https(request):
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    @application.middleware("http")
    async def request_id(request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        set_request_id(rid)
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


def _enrich_openapi(schema: dict[str, Any]) -> dict[str, Any]:
    """Document auth schemes, the idempotency header and problem+json error bodies."""
    components = schema.setdefault("components", {})
    components.setdefault("securitySchemes", {}).update(
        {
            "BearerToken": {
                "type": "http",
                "scheme": "bearer",
                "description": "Signed office access token or identity-provider ID token",
            },
            "SessionCookie": {"type": "apiKey", "in": "cookie", "name": get_settings().session_cookie_name},
        }
    )
    components.setdefault("parameters", {})["IdempotencyKey"] = {
        "name": "Idempotency-Key",
        "in": "header",
        "required": False,
        "schema": {"type": "string", "maxLength": 200},
        "description": "Replays return the first response; a different body under the same key is a 409.",
    }
    components.setdefault("schemas", {})["ProblemDetails"] = {
        "type": "object",
        "properties": {
            "type": {"type": "string"},
            "title": {"type": "string"},
            "status": {"type": "integer"},
            "detail": {},
            "instance": {"type": "string"},
            "code": {"type": "string"},
            "request_id": {"type": "string"},
        },
    }
    problem = {
        "description": "Error",
        "content": {"application/problem+json": {"schema": {"$ref": "#/components/schemas/ProblemDetails"}}},
    }

    for path, operations in schema.get("paths", {}).items():
        for method, operation in operations.items():
            if not isinstance(operation, dict):
                continue
            if path not in PUBLIC_PATHS:
                operation["security"] = [{"BearerToken": []}, {"SessionCookie": []}]
            if method.lower() == "get":
                continue
            if path in IDEMPOTENT_PATHS:
                operation.setdefault("parameters", []).append({"$ref": "#/components/parameters/IdempotencyKey"})
            responses = operation.setdefault("responses", {})
            for code in _ERROR_CODES:
                responses.setdefault(code, problem)
    return schema


def create_app() -> FastAPI:
    maybe_enable_json_logging()
    init_sentry()
    settings = get_settings()
    application = FastAPI(
        title="Studio Office",
        version=settings.app_version,
        openapi_tags=TAGS,
        lifespan=api_lifespan,
    )
    application.include_router(api_router, prefix=API_PREFIX)
    register_exception_handlers(application)
    _install_middleware(application)

    @application.get("/metrics", include_in_schema=False)
    async def metrics():
        return PlainTextResponse(export_prometheus(), media_type="text/plain; version=0.0.4; charset=utf-8")

    def openapi():
        if application.openapi_schema is None:
            application.openapi_schema = _enrich_openapi(
                get_openapi(
                    title=application.title,
                    version=application.version,
                    description="Multi-tenant studio back office. Errors use problem+json when asked for it.",
                    routes=application.routes,
                    tags=application.openapi_tags,
                )
            )
        return application.openapi_schema

    application.openapi = openapi
    return application


app = create_app()
