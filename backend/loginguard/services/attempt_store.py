"""
In-memory failed-attempt tracking.

One store per key kind (user email, client address). Lock expiry is decided
by comparing timestamps on every read; nothing is evicted by a timer. Idle
records are dropped opportunistically during writes and ignored on reads.
"""

import ipaddress
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import replace

from loginguard.core.exceptions import InvalidIdentifierError
from loginguard.models.attempt import AttemptRecord, AttemptStatus, KeyKind, StoreStats
from loginguard.services.audit import audit_log
from loginguard.services.lockout_policy import LockoutPolicy, format_duration

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


class AttemptStore:
    """Thread-safe attempt records for one key kind.

    Parameters
    ----------
    kind : KeyKind
        What the identifiers are; user identifiers are case-folded.
    policy : LockoutPolicy
        Threshold and progressive lock schedule.
    record_ttl_ms : int
        An unlocked record with no failure for this long is treated as absent.
    max_keys : int
        Upper bound on tracked keys; the least recently failed key is evicted.
    sweep_every : int
        Number of writes between opportunistic idle sweeps.
    clock : Clock
        Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        kind: KeyKind,
        policy: LockoutPolicy,
        record_ttl_ms: int,
        max_keys: int = 10_000,
        sweep_every: int = 100,
        clock: Clock | None = None,
    ) -> None:
        self.kind = kind
        self.policy = policy
        self.record_ttl_ms = record_ttl_ms
        self.max_keys = max_keys
        self.sweep_every = sweep_every
        self._clock = clock or system_clock_ms
        # key -> record, ordered by last failure (oldest first)
        self._records: OrderedDict[str, AttemptRecord] = OrderedDict()
        self._lock = threading.Lock()
        self._writes_since_sweep = 0

    def normalize(self, identifier: str | None) -> str:
        """Return the canonical key for *identifier*."""
        if identifier is None:
            raise InvalidIdentifierError(self.kind.value)
        key = identifier.strip()
        if self.kind is KeyKind.USER:
            key = key.lower()
        elif key:
            # Same address, same key: "::1" and "0:0::1" must not count separately
            try:
                key = str(ipaddress.ip_address(key))
            except ValueError:
                pass
        if not key:
            raise InvalidIdentifierError(self.kind.value)
        return key

    def record_failure(self, identifier: str) -> AttemptRecord:
        """Count one failure for *identifier* and apply the lock policy.

        Returns a copy of the updated record.
        """
        key = self.normalize(identifier)
        lock_event = None

        with self._lock:
            now = self._clock()
            record = self._lookup(key, now)
            if record is None:
                self._records.pop(key, None)
                self._evict_if_full(now)
                record = AttemptRecord(attempts=0, first_failure_at=now, last_failure_at=now)
                self._records[key] = record

            record.attempts += 1
            record.last_failure_at = now
            self._records.move_to_end(key)

            duration = self.policy.lock_duration_ms(record.attempts)
            if duration:
                lock_until = now + duration
                if record.locked_until is None or lock_until > record.locked_until:
                    lock_event = (record.is_locked(now), duration)
                    record.locked_until = lock_until

            self._writes_since_sweep += 1
            if self._writes_since_sweep >= self.sweep_every:
                self._sweep_locked(now)

            snapshot = replace(record)

        if lock_event is not None:
            extended, duration = lock_event
            logger.warning(
                "%s lockout %s: %s locked for %s after %d failures",
                self.kind.value,
                "extended" if extended else "started",
                key,
                format_duration(duration),
                snapshot.attempts,
            )
            audit_log(
                "lockout.extended" if extended else "lockout.started",
                self.kind.value,
                key,
                {
                    "attempts": snapshot.attempts,
                    "lock_duration_ms": duration,
                    "locked_until": snapshot.locked_until,
                },
            )

        return snapshot

    def get_status(self, identifier: str) -> AttemptStatus:
        """Read-only view of *identifier*; unknown keys look fresh."""
        key = self.normalize(identifier)

        with self._lock:
            now = self._clock()
            record = self._lookup(key, now)
            attempts = record.attempts if record else 0
            locked = record is not None and record.is_locked(now)
            lock_until = record.locked_until if locked else None
            first_failure_at = record.first_failure_at if record else None
            last_failure_at = record.last_failure_at if record else None

        return AttemptStatus(
            attempts=attempts,
            remaining=self.policy.remaining(attempts),
            max_attempts=self.policy.max_attempts,
            locked=locked,
            lock_until=lock_until,
            retry_after_ms=lock_until - now if lock_until is not None else 0,
            next_lock_duration_ms=self.policy.next_lock_duration_ms(attempts),
            first_failure_at=first_failure_at,
            last_failure_at=last_failure_at,
        )

    def reset(self, identifier: str) -> bool:
        """Forget *identifier* entirely. Returns whether a live record existed."""
        key = self.normalize(identifier)
        with self._lock:
            record = self._lookup(key, self._clock())
            self._records.pop(key, None)
        return record is not None

    def unblock(self, identifier: str) -> bool:
        """Lift the lock on *identifier* but keep its attempt count.

        The next failure is therefore lock-triggering again, at the next tier.
        Returns whether a live record existed.
        """
        key = self.normalize(identifier)
        with self._lock:
            record = self._lookup(key, self._clock())
            if record is None:
                return False
            record.locked_until = None
        return True

    def reset_all(self) -> int:
        """Drop every record. Returns how many were tracked."""
        with self._lock:
            count = len(self._records)
            self._records.clear()
            self._writes_since_sweep = 0
        return count

    def sweep(self, now: int | None = None) -> int:
        """Remove idle records. Returns the number removed."""
        with self._lock:
            return self._sweep_locked(self._clock() if now is None else now)

    def stats(self) -> StoreStats:
        with self._lock:
            now = self._clock()
            live = [r for r in self._records.values() if not self._is_stale(r, now)]
            blocked = sum(1 for r in live if r.is_locked(now))
        return StoreStats(total=len(live), blocked=blocked)

    def config_dict(self) -> dict:
        return {
            **self.policy.to_dict(),
            "record_ttl_ms": self.record_ttl_ms,
            "max_keys": self.max_keys,
        }

    def __len__(self) -> int:
        return len(self._records)

    def _is_stale(self, record: AttemptRecord, now: int) -> bool:
        return not record.is_locked(now) and now - record.last_failure_at >= self.record_ttl_ms

    def _lookup(self, key: str, now: int) -> AttemptRecord | None:
        record = self._records.get(key)
        if record is None or self._is_stale(record, now):
            return None
        return record

    def _evict_if_full(self, now: int) -> None:
        if len(self._records) < self.max_keys:
            return
        self._sweep_locked(now)

        while len(self._records) >= self.max_keys:
            # Oldest unlocked record first; a live lock is only dropped when nothing else is left
            victim = next((key for key, record in self._records.items() if not record.is_locked(now)), None)
            if victim is not None:
                del self._records[victim]
                logger.debug("%s store full, evicted %s", self.kind.value, victim)
            else:
                victim, _ = self._records.popitem(last=False)
                logger.warning(
                    "%s store full of locked records (max_keys=%d), evicted locked %s",
                    self.kind.value,
                    self.max_keys,
                    victim,
                )

    def _sweep_locked(self, now: int) -> int:
        self._writes_since_sweep = 0
        stale = [key for key, record in self._records.items() if self._is_stale(record, now)]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug("Swept %d idle %s records", len(stale), self.kind.value)
        return len(stale)
