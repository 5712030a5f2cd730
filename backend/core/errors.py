"""
Error taxonomy and the exception handlers that render it.

Every error response has the same body:

    {"error": {"code", "message", "request_id", ["field"]}, "message": message, "detail": message}

and carries the request id in the x-request-id header. "message" and
"detail" repeat the text for clients that read the error as a string.
Status codes: 400 validation, 429 rate limited, 503 not configured, 500
provider or unexpected failure.
"""

import logging
from typing import Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from backend.core.logging import get_request_id

logger = logging.getLogger("clawdbot")


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    """Rejected input. `code` is one of the validation taxonomy codes."""
    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class RateLimitError(AppError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, message: str, *, retry_after: int = 60, limit: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.limit = limit


class NotConfiguredError(AppError):
    """A required upstream (e.g. the payment provider) has no credentials."""
    code = "not_configured"
    status_code = 503


class ProviderError(AppError):
    """Opaque upstream failure. The message never carries provider details."""
    code = "provider_error"
    status_code = 500

    def __init__(self, message: str = "Unable to start checkout. Please try again.", **kwargs):
        super().__init__(message, **kwargs)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def error_response(
    rid: str,
    code: str,
    message: str,
    status_code: int,
    *,
    field: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    error = {"code": code, "message": message, "request_id": rid}
    if field:
        error["field"] = field
    response = JSONResponse(status_code=status_code, content={"error": error, "message": message, "detail": message})
    response.headers["x-request-id"] = rid
    for name, value in (headers or {}).items():
        response.headers[name] = value
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _request_id(request)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    headers = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
        headers["X-RateLimit-Remaining"] = "0"
        if exc.limit is not None:
            headers["X-RateLimit-Limit"] = str(exc.limit)
    return error_response(
        rid, exc.code, exc.message, exc.status_code, field=getattr(exc, "field", None), headers=headers
    )


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return error_response(rid, code, exc.detail or "HTTP error", exc.status_code, headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """FastAPI parameter errors (e.g. missing ?tier=) rendered as 400 validation_error."""
    rid = _request_id(request)
    errors = exc.errors()
    loc = errors[0].get("loc", ()) if errors else ()
    field = str(loc[-1]) if loc else "request"
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400})
    return error_response(rid, "validation_error", f"Invalid value for {field}", 400, field=field)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return error_response(rid, "internal_error", "Unexpected error", 500)
