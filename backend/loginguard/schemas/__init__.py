from loginguard.schemas.auth import LoginData, LoginRequest, LoginResponse
from loginguard.schemas.lockout import (
    LockStatus,
    RateLimitData,
    RateLimitResponse,
    ResetRateLimitRequest,
    ResetRateLimitResponse,
    UnblockData,
    UnblockRequest,
    UnblockResponse,
    UserLockStatus,
)

__all__ = [
    "LockStatus",
    "LoginData",
    "LoginRequest",
    "LoginResponse",
    "RateLimitData",
    "RateLimitResponse",
    "ResetRateLimitRequest",
    "ResetRateLimitResponse",
    "UnblockData",
    "UnblockRequest",
    "UnblockResponse",
    "UserLockStatus",
]
