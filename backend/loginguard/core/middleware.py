"""Request ID, size and content-type checks, and the last-resort 500 handler."""

import logging
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from loginguard.core.errors import ErrorCode, ErrorResponse

logger = logging.getLogger(__name__)


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID, then rejects oversized or non-JSON bodies.

    The ID comes from an incoming ``X-Request-ID`` header when present and is
    echoed on the response. Log records emitted meanwhile carry it through
    structlog contextvars.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 1024 * 1024,
        enforce_content_type: bool = True,
    ) -> None:
        super().__init__(app)
        self.max_request_size = max_request_size
        self.enforce_content_type = enforce_content_type

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        # Bind request_id to all log entries during this request
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        try:
            content_length = request.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > self.max_request_size:
                logger.warning("Request too large: %s bytes", content_length)
                return ErrorResponse.create(
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"Request too large. Maximum size is {self.max_request_size} bytes",
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    request_id=request_id,
                )

            if self.enforce_content_type and request.method in {"POST", "PUT", "PATCH"}:
                content_type = request.headers.get("content-type", "")
                # Bodyless POSTs (e.g. the dev reset shortcut) carry no content type
                has_body = bool(content_length and content_length != "0")
                if has_body and not content_type.startswith("application/json"):
                    logger.warning("Invalid Content-Type: %s", content_type)
                    return ErrorResponse.create(
                        code=ErrorCode.VALIDATION_ERROR,
                        message="Content-Type must be application/json",
                        status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                        request_id=request_id,
                    )

            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()


class ErrorResponseMiddleware(BaseHTTPMiddleware):
    """Turns any unhandled exception into a generic 500 envelope.

    The traceback is logged; nothing about it reaches the client.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Request error: %s %s", request.method, request.url.path)
            return ErrorResponse.create(
                code=ErrorCode.INTERNAL_ERROR,
                message="Internal server error",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                request_id=request_id,
            )
