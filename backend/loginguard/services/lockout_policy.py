"""
Progressive lockout policy.

Maps a failure count to a lock duration. The first ``max_attempts`` failures
are free; each failure after that selects the next tier of the schedule,
and the last tier repeats once the schedule is exhausted.
"""

import math
from collections.abc import Sequence

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE


class LockoutPolicy:
    """Pure attempt-count to lock-duration mapping for one key kind."""

    def __init__(self, max_attempts: int, tiers_ms: Sequence[int]) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not tiers_ms:
            raise ValueError("tiers_ms must contain at least one tier")
        if any(tier <= 0 for tier in tiers_ms):
            raise ValueError("tiers_ms must be positive")
        if any(later < earlier for earlier, later in zip(tiers_ms, tiers_ms[1:])):
            raise ValueError("tiers_ms must be non-decreasing")

        self.max_attempts = max_attempts
        self.tiers_ms: tuple[int, ...] = tuple(tiers_ms)

    @property
    def ceiling_ms(self) -> int:
        return self.tiers_ms[-1]

    def lock_duration_ms(self, attempts: int) -> int:
        """Return the lock a key with *attempts* failures is under (0 if none)."""
        if attempts <= self.max_attempts:
            return 0
        tier = min(attempts - self.max_attempts, len(self.tiers_ms))
        return self.tiers_ms[tier - 1]

    def next_lock_duration_ms(self, attempts: int) -> int:
        """Lock length a failure would trigger once the free attempts are used up."""
        return self.lock_duration_ms(max(attempts + 1, self.max_attempts + 1))

    def remaining(self, attempts: int) -> int:
        return max(0, self.max_attempts - attempts)

    def to_dict(self) -> dict:
        return {"max_attempts": self.max_attempts, "lock_tiers_ms": list(self.tiers_ms)}


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def format_duration(ms: int) -> str:
    """
    Render a duration for end users.

    Below one minute the value is shown in whole seconds, below one hour in
    whole minutes, otherwise in hours (plus minutes when not exact). Values
    are rounded up so a user is never told to retry too early.
    """
    seconds = max(1, math.ceil(ms / MS_PER_SECOND))
    if seconds < 60:
        return _plural(seconds, "second")

    minutes = math.ceil(ms / MS_PER_MINUTE)
    if minutes < 60:
        return _plural(minutes, "minute")

    hours, minutes = divmod(minutes, 60)
    if minutes == 0:
        return _plural(hours, "hour")
    return f"{_plural(hours, 'hour')} {_plural(minutes, 'minute')}"
