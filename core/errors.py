"""Domain error taxonomy shared by services and the HTTP layer."""

from __future__ import annotations

from typing import Any, Optional


class OfficeError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str = "", *, code: Optional[str] = None, details: Any = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code
        self.details = details


class Unauthenticated(OfficeError):
    status_code = 401
    code = "unauthenticated"


class Unauthorized(OfficeError):
    status_code = 403
    code = "forbidden"


class AccountInactive(Unauthorized):
    code = "account_inactive"


class NotFound(OfficeError):
    status_code = 404
    code = "not_found"


class Conflict(OfficeError):
    status_code = 409
    code = "conflict"


class ValidationFailure(OfficeError):
    status_code = 400
    code = "validation_error"


class StoreUnavailable(OfficeError):
    status_code = 503
    code = "store_unavailable"


class RateLimited(OfficeError):
    status_code = 429
    code = "too_many_requests"
