"""
Error envelope shared by every endpoint.

All failures are answered as ``{"success": false, "error": {...}}`` with a
machine-readable code, so clients can branch on ``error.code`` rather than
parsing messages.
"""
import logging
import math
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from loginguard.core.exceptions import InvalidIdentifierError

logger = logging.getLogger(__name__)


class ErrorCode:
    """Machine-readable error codes."""

    # Client input
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Admin API access
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Login flow
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse:
    """Builds the JSON error envelope."""

    @staticmethod
    def create(
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> JSONResponse:
        """
        Args:
            code: One of the ``ErrorCode`` constants
            message: Text safe to show an end user
            status_code: HTTP status code
            details: Structured extras, omitted when empty
            request_id: Correlation ID echoed from the request middleware
            headers: Extra response headers such as ``Retry-After``
        """
        error: Dict[str, Any] = {"code": code, "message": message}
        if details:
            error["details"] = details
        if request_id:
            error["request_id"] = request_id

        return JSONResponse(
            status_code=status_code,
            content={"success": False, "error": error},
            headers=headers,
        )


class HTTPError(HTTPException):
    """
    HTTPException carrying an error code and optional details.

    Usage:
        raise HTTPError(
            status_code=400,
            code=ErrorCode.VALIDATION_ERROR,
            message="identifier and type are required",
        )
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message, headers=headers)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


async def http_error_handler(request: Request, exc: HTTPError) -> JSONResponse:
    return ErrorResponse.create(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        request_id=_request_id(request),
        headers=exc.headers,
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed query/body input with 400 instead of FastAPI's 422."""
    fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
    logger.info("Request validation failed on %s: %s", request.url.path, fields)
    return ErrorResponse.create(
        code=ErrorCode.VALIDATION_ERROR,
        message="Invalid request",
        status_code=status.HTTP_400_BAD_REQUEST,
        details={"fields": fields},
        request_id=_request_id(request),
    )


async def invalid_identifier_handler(request: Request, exc: InvalidIdentifierError) -> JSONResponse:
    return ErrorResponse.create(
        code=ErrorCode.VALIDATION_ERROR,
        message=str(exc),
        status_code=status.HTTP_400_BAD_REQUEST,
        request_id=_request_id(request),
    )


# Shorthands raised by routes and dependencies

def unauthorized(message: str = "Unauthorized") -> HTTPError:
    return HTTPError(
        status.HTTP_401_UNAUTHORIZED,
        ErrorCode.UNAUTHORIZED,
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden(message: str = "Forbidden") -> HTTPError:
    return HTTPError(status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, message)


def validation_error(message: str, details: Optional[Dict[str, Any]] = None) -> HTTPError:
    return HTTPError(status.HTTP_400_BAD_REQUEST, ErrorCode.VALIDATION_ERROR, message, details)


def invalid_credentials() -> HTTPError:
    # Same answer for unknown account and wrong password
    return HTTPError(status.HTTP_401_UNAUTHORIZED, ErrorCode.INVALID_CREDENTIALS, "Invalid credentials")


def too_many_requests(message: str, retry_after_ms: int, details: Optional[Dict[str, Any]] = None) -> HTTPError:
    """429 with ``Retry-After`` in whole seconds, rounded up."""
    return HTTPError(
        status.HTTP_429_TOO_MANY_REQUESTS,
        ErrorCode.RATE_LIMITED,
        message,
        details,
        headers={"Retry-After": str(max(1, math.ceil(retry_after_ms / 1000)))},
    )
