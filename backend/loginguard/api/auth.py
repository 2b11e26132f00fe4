import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import EmailStr, TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool

from loginguard.api.deps import (
    get_client_address,
    get_credential_verifier,
    get_login_limiter,
)
from loginguard.core.errors import invalid_credentials, too_many_requests, validation_error
from loginguard.models.attempt import LimiterDecision, LockReason
from loginguard.schemas.auth import LoginData, LoginRequest, LoginResponse
from loginguard.schemas.lockout import RateLimitData, RateLimitResponse
from loginguard.services.audit import audit_log
from loginguard.services.credentials import CredentialVerifier
from loginguard.services.lockout_policy import format_duration
from loginguard.services.login_limiter import LoginLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_email_adapter = TypeAdapter(EmailStr)


def lockout_message(decision: LimiterDecision) -> str:
    """User-facing text for a refused login; never exposes raw milliseconds."""
    wait = format_duration(decision.retry_after_ms or 0)
    if decision.reason is LockReason.IP_LOCKED:
        return f"Too many failed login attempts from your network. Try again in {wait}."
    return (
        f"Account temporarily locked due to too many failed login attempts. "
        f"Try again in {wait}."
    )


@router.get("/rate-limit", response_model=RateLimitResponse)
async def get_rate_limit_status(
    limiter: Annotated[LoginLimiter, Depends(get_login_limiter)],
    address: Annotated[str, Depends(get_client_address)],
    email: Annotated[str | None, Query(max_length=320)] = None,
):
    """Attempt counters and lock state for an email and the caller's address."""
    if email is None or not email.strip():
        raise validation_error("Email parameter is required")

    try:
        email = _email_adapter.validate_python(email.strip())
    except ValidationError:
        raise validation_error("Email parameter is not a valid email address")

    status = limiter.status(address, email=email)
    return RateLimitResponse(data=RateLimitData(user=status["user"], ip=status["ip"]))


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    limiter: Annotated[LoginLimiter, Depends(get_login_limiter)],
    verifier: Annotated[CredentialVerifier, Depends(get_credential_verifier)],
    address: Annotated[str, Depends(get_client_address)],
):
    """Check credentials behind the per-user and per-address lockout."""
    email = request.email.lower()

    decision = limiter.check_allowed(email, address)
    if not decision.allowed:
        audit_log(
            "auth.lockout_login_attempt",
            "user",
            email,
            {"reason": decision.reason.value},
            ip_address=address,
        )
        raise too_many_requests(
            lockout_message(decision),
            decision.retry_after_ms or 0,
            details={"reason": decision.reason.value},
        )

    # Password hashing is CPU bound; keep it off the event loop
    valid = await run_in_threadpool(verifier.verify, email, request.password)

    if not valid:
        limiter.on_failed_login(email, address)
        audit_log(
            "auth.login_failed",
            "user",
            email,
            {"reason": "invalid_credentials"},
            ip_address=address,
        )
        raise invalid_credentials()

    limiter.on_successful_login(email, address)
    audit_log("auth.login", "user", email, ip_address=address)
    logger.info("Login succeeded")

    return LoginResponse(data=LoginData(email=email))
