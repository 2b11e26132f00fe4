from datetime import datetime

from pydantic import BaseModel, Field

from loginguard.models.attempt import KeyKind


class LockStatus(BaseModel):
    attempts: int
    remaining_attempts: int
    max_attempts: int
    locked: bool
    lock_until: int | None = None  # epoch ms
    retry_after_ms: int = 0
    first_failure_at: int | None = None  # epoch ms
    last_failure_at: int | None = None  # epoch ms


class UserLockStatus(LockStatus):
    email: str
    next_lock_duration_ms: int
    next_lock_duration: str


class RateLimitData(BaseModel):
    user: UserLockStatus
    ip: LockStatus


class RateLimitResponse(BaseModel):
    success: bool = True
    data: RateLimitData


class UnblockRequest(BaseModel):
    identifier: str = Field(min_length=1, max_length=320)
    type: KeyKind


class UnblockData(BaseModel):
    identifier: str
    type: KeyKind
    unblocked: bool
    timestamp: datetime


class UnblockResponse(BaseModel):
    success: bool
    message: str
    data: UnblockData


class ResetRateLimitRequest(BaseModel):
    action: str | None = Field(default=None, max_length=32)
    ip: str | None = Field(default=None, max_length=64)


class ResetRateLimitResponse(BaseModel):
    success: bool = True
    message: str
    client_ip: str
    target_ip: str | None = None
    cleared: int | None = None
