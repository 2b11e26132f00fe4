"""Attempt records and the read-only views derived from them."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class KeyKind(str, Enum):
    """What an attempt key identifies."""

    USER = "user"
    IP = "ip"


class LockReason(str, Enum):
    USER_LOCKED = "user_locked"
    IP_LOCKED = "ip_locked"


@dataclass
class AttemptRecord:
    """Mutable failure counter for one key. Owned by an AttemptStore."""

    attempts: int
    first_failure_at: int  # epoch ms
    last_failure_at: int  # epoch ms
    locked_until: int | None = None  # epoch ms

    def is_locked(self, now: int) -> bool:
        return self.locked_until is not None and now < self.locked_until


@dataclass(frozen=True)
class AttemptStatus:
    """Snapshot of one key's state at a given instant."""

    attempts: int
    remaining: int
    max_attempts: int
    locked: bool
    lock_until: int | None
    retry_after_ms: int
    next_lock_duration_ms: int
    first_failure_at: int | None = None  # epoch ms
    last_failure_at: int | None = None  # epoch ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "remaining_attempts": self.remaining,
            "max_attempts": self.max_attempts,
            "locked": self.locked,
            "lock_until": self.lock_until,
            "retry_after_ms": self.retry_after_ms,
            "first_failure_at": self.first_failure_at,
            "last_failure_at": self.last_failure_at,
        }


@dataclass(frozen=True)
class LimiterDecision:
    """Outcome of a pre-login check across both limiter dimensions."""

    allowed: bool
    reason: LockReason | None = None
    retry_after_ms: int | None = None


@dataclass(frozen=True)
class StoreStats:
    total: int
    blocked: int
