"""
Permission checking service.

Resolves bearer tokens to principals and maps roles to permissions.
"""

import secrets
from typing import assert_never

from loginguard.core.config import Settings
from loginguard.models.principal import Principal, Role

VIEW_LOCKOUTS = "view_lockouts"
UNBLOCK_LOCKOUTS = "unblock_lockouts"


def permissions_for(role: Role) -> frozenset[str]:
    """Permissions granted to *role*."""
    match role:
        case Role.USER:
            return frozenset()
        case Role.MODERATOR:
            return frozenset({VIEW_LOCKOUTS})
        case Role.ADMIN:
            return frozenset({VIEW_LOCKOUTS, UNBLOCK_LOCKOUTS})
        case _:
            assert_never(role)


def has_permission(principal: Principal, permission: str) -> bool:
    return permission in permissions_for(principal.role)


def resolve_token(token: str, settings: Settings) -> Principal | None:
    """Return the principal for *token*, or None if it is unknown.

    Every configured token is compared in constant time.
    """
    principal: Principal | None = None

    if settings.SECURITY_API_TOKEN and secrets.compare_digest(
        token.encode(), settings.SECURITY_API_TOKEN.encode()
    ):
        principal = Principal(role=Role.ADMIN, name="security-api-token")

    for index, (candidate, role) in enumerate(settings.API_TOKENS.items()):
        if secrets.compare_digest(token.encode(), candidate.encode()) and principal is None:
            principal = Principal(role=role, name=f"api-token-{index}")

    return principal
