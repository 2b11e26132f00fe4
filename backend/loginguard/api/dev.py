"""Development-only helpers for clearing lockouts while testing the login flow."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from loginguard.api.deps import get_client_address, get_login_limiter, get_settings
from loginguard.api.security import parse_ip
from loginguard.core.config import Settings
from loginguard.core.errors import forbidden
from loginguard.models.attempt import KeyKind
from loginguard.schemas.lockout import ResetRateLimitRequest, ResetRateLimitResponse
from loginguard.services.audit import audit_log
from loginguard.services.login_limiter import LoginLimiter

logger = logging.getLogger(__name__)


def require_non_production(settings: Annotated[Settings, Depends(get_settings)]) -> None:
    if settings.is_production:
        raise forbidden("This endpoint is only available in development")


router = APIRouter(prefix="/dev", tags=["dev"], dependencies=[Depends(require_non_production)])


@router.post("/reset-rate-limit", response_model=ResetRateLimitResponse, response_model_exclude_none=True)
async def reset_rate_limit(
    limiter: Annotated[LoginLimiter, Depends(get_login_limiter)],
    address: Annotated[str, Depends(get_client_address)],
    body: ResetRateLimitRequest | None = None,
):
    """Reset every lockout, one address, or (by default) the caller's address."""
    action = body.action if body else None

    if action == "reset-all":
        cleared = limiter.reset_all()
        audit_log("lockout.reset_all", "store", None, {"cleared": cleared}, ip_address=address)
        logger.warning("All rate limits reset from %s", address)
        return ResetRateLimitResponse(
            message="All rate limits have been reset",
            client_ip=address,
            cleared=cleared,
        )

    if action == "reset-ip" and body.ip:
        target_ip = parse_ip(body.ip)
    else:
        target_ip = address

    limiter.reset(target_ip, KeyKind.IP)
    audit_log("lockout.reset", KeyKind.IP.value, target_ip, ip_address=address)

    return ResetRateLimitResponse(
        message=f"Rate limit for IP {target_ip} has been reset",
        client_ip=address,
        target_ip=target_ip,
    )


@router.get("/reset-rate-limit", response_model=dict)
async def reset_own_rate_limit(
    limiter: Annotated[LoginLimiter, Depends(get_login_limiter)],
    address: Annotated[str, Depends(get_client_address)],
):
    """Browser-friendly shortcut resetting the caller's own address."""
    limiter.reset(address, KeyKind.IP)
    audit_log("lockout.reset", KeyKind.IP.value, address, ip_address=address)

    return {
        "success": True,
        "message": f"Rate limit for IP {address} has been reset",
        "client_ip": address,
        "instructions": {
            "reset-all": 'POST /api/dev/reset-rate-limit with {"action": "reset-all"}',
            "reset-ip": 'POST /api/dev/reset-rate-limit with {"action": "reset-ip", "ip": "<address>"}',
        },
    }
