from loginguard.models.attempt import (
    AttemptRecord,
    AttemptStatus,
    KeyKind,
    LimiterDecision,
    LockReason,
    StoreStats,
)
from loginguard.models.principal import Principal, Role

__all__ = [
    "AttemptRecord",
    "AttemptStatus",
    "KeyKind",
    "LimiterDecision",
    "LockReason",
    "Principal",
    "Role",
    "StoreStats",
]
