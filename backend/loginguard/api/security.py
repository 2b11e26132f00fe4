import ipaddress
import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from loginguard.api.deps import get_client_address, get_login_limiter, require_permission
from loginguard.core.errors import validation_error
from loginguard.models.attempt import KeyKind
from loginguard.models.principal import Principal
from loginguard.schemas.lockout import UnblockData, UnblockRequest, UnblockResponse
from loginguard.services.audit import audit_log
from loginguard.services.login_limiter import LoginLimiter
from loginguard.services.permissions import UNBLOCK_LOCKOUTS, VIEW_LOCKOUTS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/security", tags=["security"])


def parse_ip(value: str) -> str:
    """Validate and canonicalize an IP address, raising a 400 on garbage."""
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        raise validation_error(f"Invalid IP address: {value}")


@router.post("/unblock", response_model=UnblockResponse)
async def unblock(
    data: UnblockRequest,
    limiter: Annotated[LoginLimiter, Depends(get_login_limiter)],
    address: Annotated[str, Depends(get_client_address)],
    principal: Annotated[Principal, Depends(require_permission(UNBLOCK_LOCKOUTS))],
):
    """Lift an active lock on an address or account. The attempt count is kept."""
    identifier = parse_ip(data.identifier) if data.type is KeyKind.IP else data.identifier
    unblocked = limiter.unblock(identifier, data.type)

    audit_log(
        "lockout.unblock",
        data.type.value,
        identifier,
        {"unblocked": unblocked},
        actor=principal.name,
        ip_address=address,
    )

    if unblocked:
        message = f"Successfully unblocked {data.type.value}: {identifier}"
    else:
        message = f"No blocked record found for {data.type.value}: {identifier}"

    return UnblockResponse(
        success=unblocked,
        message=message,
        data=UnblockData(
            identifier=identifier,
            type=data.type,
            unblocked=unblocked,
            timestamp=datetime.now(timezone.utc),
        ),
    )


@router.get("/stats", response_model=dict)
async def get_security_stats(
    limiter: Annotated[LoginLimiter, Depends(get_login_limiter)],
    _: Annotated[Principal, Depends(require_permission(VIEW_LOCKOUTS))],
    action: Annotated[str | None, Query(max_length=16)] = None,
    ip: Annotated[str | None, Query(max_length=64)] = None,
    email: Annotated[str | None, Query(max_length=320)] = None,
):
    """Tracked and blocked key counts, or one key's status with ``action=info``."""
    timestamp = datetime.now(timezone.utc).isoformat()

    if action == "info" and ip:
        target_ip = parse_ip(ip)
        return {
            "success": True,
            "data": {
                "ip": target_ip,
                "email": email,
                "rate_limit_info": limiter.status(target_ip, email=email or None),
                "timestamp": timestamp,
            },
        }

    return {
        "success": True,
        "data": {
            "stats": limiter.stats(),
            "timestamp": timestamp,
        },
    }
