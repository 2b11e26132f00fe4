import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from loginguard.api.auth import router as auth_router
from loginguard.api.dev import router as dev_router
from loginguard.api.security import router as security_router
from loginguard.core.config import APP_VERSION, Settings, settings as default_settings
from loginguard.core.errors import (
    HTTPError,
    http_error_handler,
    invalid_identifier_handler,
    request_validation_error_handler,
)
from loginguard.core.exceptions import InvalidIdentifierError
from loginguard.core.logging import setup_logging
from loginguard.core.middleware import ErrorResponseMiddleware, RequestValidationMiddleware
from loginguard.services.attempt_store import Clock
from loginguard.services.credentials import CredentialVerifier
from loginguard.services.login_limiter import LoginLimiter

logger = logging.getLogger(__name__)


def check_production_config(settings: Settings) -> None:
    """Fail fast on production settings that must never ship; warn on risky ones."""
    if not settings.is_production:
        return

    if settings.SECURITY_API_TOKEN is None and not settings.API_TOKENS:
        logger.warning(
            "No SECURITY_API_TOKEN or API_TOKENS configured; /api/security endpoints will reject every request"
        )

    if settings.DEBUG:
        raise RuntimeError(
            "CRITICAL SECURITY CONFIGURATION ERROR:\n"
            "  - DEBUG must not be enabled when ENVIRONMENT=production"
        )


def create_app(settings: Settings | None = None, clock: Clock | None = None) -> FastAPI:
    """Build the application with its own limiter state.

    Each call gets fresh attempt stores, so tests and embedded uses never share
    lockout state with another app instance.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application startup and shutdown."""
        setup_logging(settings)
        check_production_config(settings)
        logger.info(
            "Starting %s %s (environment=%s)", settings.APP_NAME, APP_VERSION, settings.ENVIRONMENT
        )

        yield

        stats = app.state.login_limiter.stats()
        logger.info(
            "Shutting down; discarding %d user and %d ip attempt records",
            stats["user"]["total"],
            stats["ip"]["total"],
        )

    app = FastAPI(
        title=settings.APP_NAME,
        version=APP_VERSION,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.state.settings = settings
    app.state.login_limiter = LoginLimiter.from_settings(settings, clock=clock)
    app.state.credential_verifier = CredentialVerifier(settings.LOGIN_ACCOUNTS)

    # Register custom exception handlers for standardized error responses
    app.add_exception_handler(HTTPError, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(InvalidIdentifierError, invalid_identifier_handler)

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        """Add OWASP-recommended security headers to all responses."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response

    # Request validation middleware (also assigns the request ID)
    app.add_middleware(
        RequestValidationMiddleware,
        max_request_size=settings.MAX_REQUEST_SIZE,
        enforce_content_type=True,
    )

    # Error response middleware (add last to catch all errors)
    app.add_middleware(ErrorResponseMiddleware)

    @app.get("/health")
    async def health_check(request: Request):
        """Liveness endpoint with tracked-key counts."""
        stats = request.app.state.login_limiter.stats()
        return {
            "status": "healthy",
            "version": APP_VERSION,
            "tracked": {"ip": stats["ip"]["total"], "user": stats["user"]["total"]},
        }

    # Include routers with /api prefix
    app.include_router(auth_router, prefix="/api")
    app.include_router(security_router, prefix="/api")
    app.include_router(dev_router, prefix="/api")

    return app


app = create_app()
