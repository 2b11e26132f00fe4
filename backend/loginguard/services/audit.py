"""
Audit logging service for lockout and administrative actions.

Usage:
    from loginguard.services.audit import audit_log
    audit_log("lockout.unblock", "ip", "203.0.113.7", {"unblocked": True}, actor="admin")

Entries go to the ``loginguard.audit`` logger so they can be routed
separately from application logs.
"""
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("loginguard.audit")


def audit_log(
    action: str,
    resource_type: str,
    resource_id: str | None = None,
    details: dict[str, Any] | None = None,
    actor: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    """Emit one audit entry and return it."""
    entry = {
        "action": action,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "actor": actor,
        "ip_address": ip_address,
        "details": details or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    logger.info("audit %s %s=%s", action, resource_type, resource_id, extra={"audit": entry})
    return entry
