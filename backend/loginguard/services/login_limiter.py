"""
Login rate limiting across two independent dimensions.

A login must be permitted by both the per-user store (keyed by email) and
the per-address store (keyed by client IP). Each dimension keeps its own
counter and lock clock, so an attacker spraying many accounts from one
address is stopped by the address lock, while a single account under
attack from many addresses is stopped by the user lock.
"""

import logging
from typing import Any

from loginguard.core.config import Settings
from loginguard.models.attempt import KeyKind, LimiterDecision, LockReason
from loginguard.services.attempt_store import AttemptStore, Clock
from loginguard.services.lockout_policy import LockoutPolicy, format_duration

logger = logging.getLogger(__name__)


class LoginLimiter:
    """Composes a user store and an address store with AND semantics."""

    def __init__(self, user_store: AttemptStore, ip_store: AttemptStore) -> None:
        if user_store.kind is not KeyKind.USER or ip_store.kind is not KeyKind.IP:
            raise ValueError("LoginLimiter needs a user store and an ip store")
        self.user_store = user_store
        self.ip_store = ip_store

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock | None = None) -> "LoginLimiter":
        user_store = AttemptStore(
            KeyKind.USER,
            LockoutPolicy(settings.USER_MAX_ATTEMPTS, settings.USER_LOCK_TIERS_MS),
            record_ttl_ms=settings.USER_RECORD_TTL_SECONDS * 1000,
            max_keys=settings.USER_MAX_TRACKED_KEYS,
            sweep_every=settings.SWEEP_EVERY_N_WRITES,
            clock=clock,
        )
        ip_store = AttemptStore(
            KeyKind.IP,
            LockoutPolicy(settings.IP_MAX_ATTEMPTS, settings.IP_LOCK_TIERS_MS),
            record_ttl_ms=settings.IP_RECORD_TTL_SECONDS * 1000,
            max_keys=settings.IP_MAX_TRACKED_KEYS,
            sweep_every=settings.SWEEP_EVERY_N_WRITES,
            clock=clock,
        )
        return cls(user_store, ip_store)

    def store_for(self, kind: KeyKind) -> AttemptStore:
        if kind is KeyKind.USER:
            return self.user_store
        return self.ip_store

    def check_allowed(self, email: str, address: str) -> LimiterDecision:
        """Decide whether a login attempt may proceed. Never mutates state."""
        user_status = self.user_store.get_status(email)
        if user_status.locked:
            return LimiterDecision(
                allowed=False,
                reason=LockReason.USER_LOCKED,
                retry_after_ms=user_status.retry_after_ms,
            )

        ip_status = self.ip_store.get_status(address)
        if ip_status.locked:
            return LimiterDecision(
                allowed=False,
                reason=LockReason.IP_LOCKED,
                retry_after_ms=ip_status.retry_after_ms,
            )

        return LimiterDecision(allowed=True)

    def on_failed_login(self, email: str, address: str) -> None:
        """Count a failure against both keys, even if one is already locked."""
        user_record = self.user_store.record_failure(email)
        ip_record = self.ip_store.record_failure(address)
        logger.info(
            "Failed login recorded (user attempts=%d, ip attempts=%d)",
            user_record.attempts,
            ip_record.attempts,
        )

    def on_successful_login(self, email: str, address: str) -> None:
        self.user_store.reset(email)
        self.ip_store.reset(address)

    def status(self, address: str, email: str | None = None) -> dict[str, Any]:
        """Both dimensions' status, for display. The user side is None without an email."""
        ip_status = self.ip_store.get_status(address)
        result: dict[str, Any] = {"ip": ip_status.to_dict(), "user": None}

        if email is not None:
            user_status = self.user_store.get_status(email)
            result["user"] = {
                "email": self.user_store.normalize(email),
                **user_status.to_dict(),
                "next_lock_duration_ms": user_status.next_lock_duration_ms,
                "next_lock_duration": format_duration(user_status.next_lock_duration_ms),
            }

        return result

    def unblock(self, identifier: str, kind: KeyKind) -> bool:
        return self.store_for(kind).unblock(identifier)

    def reset(self, identifier: str, kind: KeyKind) -> bool:
        return self.store_for(kind).reset(identifier)

    def reset_all(self) -> int:
        return self.user_store.reset_all() + self.ip_store.reset_all()

    def stats(self) -> dict[str, Any]:
        user_stats = self.user_store.stats()
        ip_stats = self.ip_store.stats()
        return {
            "ip": {"total": ip_stats.total, "blocked": ip_stats.blocked},
            "user": {"total": user_stats.total, "blocked": user_stats.blocked},
            "config": {
                "ip": self.ip_store.config_dict(),
                "user": self.user_store.config_dict(),
            },
        }
