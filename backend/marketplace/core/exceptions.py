"""
Error taxonomy and FastAPI exception handlers

Every error response has the shape ``{"error": <kind>, "message": <text>}``
(plus ``details`` when available). Clients must branch on ``error``.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette import status

logger = logging.getLogger(__name__)


def _error_payload(error: str, message: str, details: Optional[Any] = None) -> dict:
    payload = {"error": error, "message": message}
    if details is not None:
        payload["details"] = details
    return payload


class MarketplaceError(Exception):
    """Base exception for the marketplace API"""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class UnauthenticatedError(MarketplaceError):
    """Missing, malformed, expired or otherwise invalid credential"""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class UnauthorizedError(MarketplaceError):
    """Caller lacks the role or ownership the operation requires"""

    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"


class EmailNotVerifiedError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "email_not_verified"


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(MarketplaceError):
    """Illegal state transition or stale precondition"""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class ValidationError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class ServiceUnavailableError(MarketplaceError):
    """An external collaborator is not configured or not reachable"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "service_unavailable"


class ServerError(MarketplaceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "server_error"


_HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ValidationError.code,
    status.HTTP_401_UNAUTHORIZED: UnauthenticatedError.code,
    status.HTTP_403_FORBIDDEN: UnauthorizedError.code,
    status.HTTP_404_NOT_FOUND: NotFoundError.code,
    status.HTTP_409_CONFLICT: ConflictError.code,
}


def register_exception_handlers(app: FastAPI) -> None:
    """Register the marketplace exception handlers on a FastAPI app"""

    @app.exception_handler(MarketplaceError)
    async def _marketplace_error_handler(_request: Request, exc: MarketplaceError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_payload(
                ValidationError.code,
                "Invalid request",
                jsonable_errors(exc),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
        code = _HTTP_STATUS_CODES.get(exc.status_code, "http_error")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_payload(ServerError.code, "Internal server error"),
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. ValueError instances) from pydantic errors"""
    errors = []
    for err in exc.errors():
        errors.append({
            "loc": list(err.get("loc", ())),
            "msg": err.get("msg"),
            "type": err.get("type"),
        })
    return errors
