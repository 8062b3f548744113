"""
Central error handling for the EMS backend

Domain errors are HTTPException subclasses with a stable ``code`` so that
clients can tell "denied" from "not found" from "conflict" without parsing text.
"""
import logging
import traceback
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = logging.getLogger(__name__)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class DomainError(HTTPException):
    """Base class for errors that carry a machine-readable code"""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"
    default_detail = "Request failed"

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class AuthenticationFailure(DomainError):
    """Bad credentials. Surfaced to the user, never retried."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    default_detail = "Invalid email or password"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ClaimExpired(AuthenticationFailure):
    """The session claim is past its window; the client should refresh it"""
    code = "claim_expired"
    default_detail = "Session claim expired"


class RefreshExpired(AuthenticationFailure):
    """The refresh credential is invalid or expired; re-authentication is required"""
    code = "refresh_expired"
    default_detail = "Refresh credential expired or invalid"


class AuthorizationDenied(DomainError):
    """A policy rejected the operation. Distinct from not-found and from empty results."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "authorization_denied"
    default_detail = "Operation denied by policy"


class RecordNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Record not found"


class AccountNotFound(RecordNotFound):
    code = "account_not_found"
    default_detail = "Account not found"


class EmployeeNotFound(RecordNotFound):
    code = "employee_not_found"
    default_detail = "Employee not found"


class LinkageConflict(DomainError):
    """The employee is already linked to another account. Retryable by the actor."""
    status_code = status.HTTP_409_CONFLICT
    code = "linkage_conflict"
    default_detail = "Employee is already linked to another account"


class SelfModificationRejected(DomainError):
    """Guard against an actor demoting or deleting their own account"""
    code = "self_modification_rejected"
    default_detail = "You cannot change your own role or delete your own account"


class ReconciliationFailure(Exception):
    """Transient read failure while syncing a claim. Absorbed by the session layer."""


class AuditWriteFailure(Exception):
    """Audit entries could not be persisted. Logged, never surfaced."""


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        AuthenticationFailure,
        ClaimExpired,
        RefreshExpired,
        AuthorizationDenied,
        RecordNotFound,
        AccountNotFound,
        EmployeeNotFound,
        LinkageConflict,
        SelfModificationRejected,
    )
}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    headers = dict(_CORS_HEADERS)
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "status_code": exc.status_code,
            "code": getattr(exc, "code", None),
            "detail": exc.detail,
            "path": str(request.url.path)
        },
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from ems.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

    # Sanitize for JSON: e.g. ctx.error ValueError -> str
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "status_code": 422,
            "detail": "Validation error",
            "errors": errors,
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from ems.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "status_code": 500,
                "detail": "Internal server error",
                "path": str(request.url.path)
            },
            headers=_CORS_HEADERS,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "detail": str(exc),
            "path": str(request.url.path),
            "traceback": traceback.format_exc() if settings.APP_ENV == "local" else None
        },
        headers=_CORS_HEADERS,
    )
