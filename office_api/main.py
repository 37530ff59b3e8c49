from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.db import init_database
from core.errors import OfficeError, StoreUnavailable
from core.logging_utils import get_request_id
from core.settings import get_settings

from .database import get_db
from .routes.auth import router as auth_router
from .routes.payroll import router as payroll_router
from .routes.people import router as people_router
from .routes.projects import router as projects_router
from .routes.work import router as work_router
from .schemas import HealthResponse, MetaResponse, SimpleOkResponse

load_dotenv()

logger = logging.getLogger("office_api")


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_database()
    yield


router = APIRouter()
router.include_router(auth_router)
router.include_router(people_router)
router.include_router(projects_router)
router.include_router(work_router)
router.include_router(payroll_router)


def _format_error_payload(message: object, code: Optional[str] = None, details: Any = None) -> dict:
    if isinstance(message, dict):
        code = code or message.get("code")
        message = message.get("error") or message.get("detail") or str(message)
    payload: dict[str, Any] = {"ok": False, "error": str(message or "error")}
    if code:
        payload["code"] = str(code)
    if details is not None:
        payload["details"] = details
    return payload


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id") or get_request_id() or ""


def register_exception_handlers(target) -> None:
    def _wants_problem_json(request: Request) -> bool:
        accept = (request.headers.get("accept") or "").lower()
        return "application/problem+json" in accept

    def _problem_payload(request: Request, status: int, detail: Any = None, code: Optional[str] = None) -> dict:
        try:
            title = HTTPStatus(status).phrase
        except ValueError:
            title = "Error"
        payload = {
            "type": "about:blank",
            "title": title,
            "status": status,
            "detail": detail if detail is not None else "",
            "instance": str(request.url.path),
            "request_id": _request_id(request),
        }
        if code:
            payload["code"] = code
        return payload

    def _respond(request: Request, status: int, message: Any, code: Optional[str] = None, details: Any = None):
        if _wants_problem_json(request):
            content = _problem_payload(request, status, message if details is None else details, code)
            return JSONResponse(status_code=status, content=content, media_type="application/problem+json")
        payload = _format_error_payload(message, code, details)
        payload["request_id"] = _request_id(request)
        return JSONResponse(status_code=status, content=payload)

    async def office_error_handler(request: Request, exc: OfficeError):
        if isinstance(exc, StoreUnavailable):
            logger.error("Store unavailable on %s: %s", request.url.path, exc.message)
        return _respond(request, exc.status_code, exc.message, exc.code, exc.details)

    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _respond(request, exc.status_code, exc.detail)

    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        return _respond(request, 400, "validation_error", "validation_error", details)

    async def sa_integrity_error_handler(request: Request, exc: IntegrityError):
        logger.info("Constraint violation on %s: %s", request.url.path, exc.orig)
        return _respond(request, 409, "constraint_violation", "constraint_violation")

    async def sa_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Database error on %s: %s", request.url.path, exc)
        return _respond(request, 503, "data store unavailable", "store_unavailable")

    target.add_exception_handler(OfficeError, office_error_handler)
    target.add_exception_handler(StarletteHTTPException, http_exception_handler)
    target.add_exception_handler(RequestValidationError, validation_exception_handler)
    target.add_exception_handler(IntegrityError, sa_integrity_error_handler)
    target.add_exception_handler(SQLAlchemyError, sa_error_handler)


def _ping_store(db: Session) -> None:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise StoreUnavailable(str(exc)) from exc


@router.get("/healthz", response_model=HealthResponse)
def healthz(db: Session = Depends(get_db)):
    _ping_store(db)
    return {"ok": True, "status": "healthy"}


@router.get("/livez", response_model=SimpleOkResponse)
def livez():
    return SimpleOkResponse()


@router.get("/readyz", response_model=HealthResponse)
def readyz(db: Session = Depends(get_db)):
    _ping_store(db)
    return {"ok": True}


@router.get("/meta", response_model=MetaResponse)
def meta():
    settings = get_settings()
    return {
        "app_version": settings.app_version,
        "git_sha": settings.git_sha or "",
        "build_ts": settings.build_ts or "",
    }
