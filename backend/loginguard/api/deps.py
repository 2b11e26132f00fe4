from typing import Annotated, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from loginguard.core.config import Settings
from loginguard.core.errors import forbidden, unauthorized
from loginguard.models.principal import Principal
from loginguard.services.credentials import CredentialVerifier
from loginguard.services.login_limiter import LoginLimiter
from loginguard.services.permissions import has_permission, resolve_token
from loginguard.utils.request import get_client_ip

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_login_limiter(request: Request) -> LoginLimiter:
    return request.app.state.login_limiter


def get_credential_verifier(request: Request) -> CredentialVerifier:
    return request.app.state.credential_verifier


def get_client_address(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    return get_client_ip(request, trust_proxy_headers=settings.TRUST_PROXY_HEADERS)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise unauthorized()

    principal = resolve_token(credentials.credentials, settings)
    if principal is None:
        raise unauthorized("Invalid token")

    return principal


def require_permission(permission: str) -> Callable:
    """
    Dependency factory checking that the caller holds *permission*.

    Usage in endpoints:
        principal: Annotated[Principal, Depends(require_permission(UNBLOCK_LOCKOUTS))]
    """

    async def checker(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if not has_permission(principal, permission):
            raise forbidden(f"Permission required: {permission}")
        return principal

    return checker
