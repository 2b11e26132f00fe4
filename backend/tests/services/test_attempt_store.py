"""Tests for the in-memory attempt store."""

import logging
import threading

import pytest

from loginguard.core.config import DEFAULT_LOCK_TIERS_MS
from loginguard.core.exceptions import InvalidIdentifierError
from loginguard.models.attempt import KeyKind
from loginguard.services.attempt_store import AttemptStore
from loginguard.services.lockout_policy import LockoutPolicy

HOUR_MS = 60 * 60 * 1000


@pytest.fixture
def user_store(clock) -> AttemptStore:
    return AttemptStore(
        KeyKind.USER,
        LockoutPolicy(5, DEFAULT_LOCK_TIERS_MS),
        record_ttl_ms=24 * HOUR_MS,
        max_keys=100,
        clock=clock,
    )


@pytest.fixture
def ip_store(clock) -> AttemptStore:
    return AttemptStore(
        KeyKind.IP,
        LockoutPolicy(10, DEFAULT_LOCK_TIERS_MS),
        record_ttl_ms=HOUR_MS,
        max_keys=100,
        clock=clock,
    )


def fail(store: AttemptStore, identifier: str, times: int) -> None:
    for _ in range(times):
        store.record_failure(identifier)


class TestNormalize:
    def test_user_keys_are_case_folded_and_stripped(self, user_store):
        assert user_store.normalize("  Bob@Example.COM ") == "bob@example.com"

    def test_ip_keys_are_canonicalized(self, ip_store):
        assert ip_store.normalize(" 0:0::1 ") == "::1"
        assert ip_store.normalize("203.0.113.7") == "203.0.113.7"

    def test_unparseable_address_is_kept_verbatim(self, ip_store):
        assert ip_store.normalize("unknown") == "unknown"

    @pytest.mark.parametrize("identifier", ["", "   ", None])
    def test_empty_identifier_raises(self, user_store, identifier):
        with pytest.raises(InvalidIdentifierError):
            user_store.normalize(identifier)

    def test_invalid_identifier_is_a_value_error(self, ip_store):
        with pytest.raises(ValueError):
            ip_store.record_failure(" ")


class TestRecordFailure:
    def test_unknown_key_is_fresh(self, user_store):
        status = user_store.get_status("nobody@example.com")
        assert status.attempts == 0
        assert status.remaining == 5
        assert status.locked is False
        assert status.lock_until is None
        assert status.retry_after_ms == 0

    def test_increments_by_one(self, user_store):
        record = user_store.record_failure("bob@example.com")
        assert record.attempts == 1
        record = user_store.record_failure("BOB@example.com")
        assert record.attempts == 2

    def test_timestamps(self, user_store, clock):
        first = clock.now
        user_store.record_failure("bob@example.com")
        clock.advance(seconds=30)
        record = user_store.record_failure("bob@example.com")
        assert record.first_failure_at == first
        assert record.last_failure_at == clock.now

    def test_status_reports_failure_timestamps(self, user_store, clock):
        assert user_store.get_status("bob@example.com").first_failure_at is None

        first = clock.now
        user_store.record_failure("bob@example.com")
        clock.advance(seconds=30)
        user_store.record_failure("bob@example.com")

        status = user_store.get_status("bob@example.com")
        assert status.first_failure_at == first
        assert status.last_failure_at == clock.now
        assert status.to_dict()["first_failure_at"] == first

    def test_returned_record_is_a_copy(self, user_store):
        record = user_store.record_failure("bob@example.com")
        record.attempts = 100
        assert user_store.get_status("bob@example.com").attempts == 1

    def test_below_threshold_never_locks(self, user_store):
        fail(user_store, "bob@example.com", 5)
        status = user_store.get_status("bob@example.com")
        assert status.attempts == 5
        assert status.remaining == 0
        assert status.locked is False

    def test_first_lock_after_threshold(self, user_store, clock):
        fail(user_store, "bob@example.com", 6)
        status = user_store.get_status("bob@example.com")
        assert status.locked is True
        assert status.lock_until == clock.now + 60_000
        assert status.retry_after_ms == 60_000

    def test_lock_expires_by_timestamp(self, user_store, clock):
        fail(user_store, "bob@example.com", 6)
        clock.advance(seconds=59)
        assert user_store.get_status("bob@example.com").locked is True
        clock.advance(seconds=2)
        status = user_store.get_status("bob@example.com")
        assert status.locked is False
        assert status.lock_until is None
        # Not auto-reset: the count survives lock expiry
        assert status.attempts == 6

    def test_each_later_failure_escalates(self, user_store, clock):
        expected = [60_000, 300_000, 900_000, 3_600_000, 3_600_000]
        fail(user_store, "bob@example.com", 5)
        for duration in expected:
            user_store.record_failure("bob@example.com")
            assert user_store.get_status("bob@example.com").retry_after_ms == duration
            clock.advance(ms=duration)

    def test_failure_while_locked_extends_lock(self, user_store, clock):
        fail(user_store, "bob@example.com", 6)
        clock.advance(seconds=10)
        record = user_store.record_failure("bob@example.com")
        assert record.attempts == 7
        assert record.locked_until == clock.now + 300_000

    def test_lock_logs_and_audits(self, user_store, caplog):
        with caplog.at_level(logging.INFO):
            fail(user_store, "bob@example.com", 6)
        messages = [r.getMessage() for r in caplog.records]
        assert any("user lockout started" in m and "1 minute" in m for m in messages)
        assert any(r.name == "loginguard.audit" and "lockout.started" in r.getMessage() for r in caplog.records)

    def test_concurrent_increments_are_not_lost(self, ip_store):
        def worker():
            for _ in range(50):
                ip_store.record_failure("198.51.100.1")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert ip_store.get_status("198.51.100.1").attempts == 400


class TestResetAndUnblock:
    def test_reset_clears_everything(self, user_store):
        fail(user_store, "bob@example.com", 8)
        assert user_store.reset("bob@example.com") is True
        status = user_store.get_status("bob@example.com")
        assert status.attempts == 0
        assert status.locked is False

    def test_reset_unknown_key(self, user_store):
        assert user_store.reset("nobody@example.com") is False
        assert user_store.get_status("nobody@example.com").attempts == 0

    def test_unblock_keeps_attempts(self, user_store):
        fail(user_store, "bob@example.com", 6)
        assert user_store.unblock("Bob@Example.com") is True
        status = user_store.get_status("bob@example.com")
        assert status.locked is False
        assert status.attempts == 6

    def test_failure_after_unblock_locks_at_next_tier(self, user_store):
        fail(user_store, "bob@example.com", 6)
        user_store.unblock("bob@example.com")
        user_store.record_failure("bob@example.com")
        assert user_store.get_status("bob@example.com").retry_after_ms == 300_000

    def test_unblock_unknown_key(self, user_store):
        assert user_store.unblock("nobody@example.com") is False

    def test_reset_all(self, user_store):
        fail(user_store, "a@example.com", 1)
        fail(user_store, "b@example.com", 7)
        assert user_store.reset_all() == 2
        assert len(user_store) == 0
        assert user_store.get_status("b@example.com").locked is False


class TestIdleExpiry:
    def test_idle_record_reads_as_fresh(self, ip_store, clock):
        fail(ip_store, "198.51.100.1", 3)
        clock.advance(ms=HOUR_MS)
        assert ip_store.get_status("198.51.100.1").attempts == 0

    def test_idle_record_restarts_count(self, ip_store, clock):
        fail(ip_store, "198.51.100.1", 3)
        clock.advance(ms=HOUR_MS)
        record = ip_store.record_failure("198.51.100.1")
        assert record.attempts == 1
        assert record.first_failure_at == clock.now

    def test_locked_record_never_expires_while_locked(self, clock):
        store = AttemptStore(
            KeyKind.USER,
            LockoutPolicy(1, [10 * 60_000]),
            record_ttl_ms=60_000,
            clock=clock,
        )
        fail(store, "bob@example.com", 2)
        clock.advance(minutes=5)
        status = store.get_status("bob@example.com")
        assert status.locked is True
        assert status.attempts == 2

    def test_sweep_removes_only_idle_records(self, ip_store, clock):
        fail(ip_store, "198.51.100.1", 1)
        clock.advance(minutes=30)
        fail(ip_store, "198.51.100.2", 1)
        clock.advance(minutes=31)

        assert ip_store.sweep() == 1
        assert len(ip_store) == 1
        assert ip_store.get_status("198.51.100.2").attempts == 1

    def test_writes_trigger_opportunistic_sweep(self, clock):
        store = AttemptStore(
            KeyKind.IP,
            LockoutPolicy(10, DEFAULT_LOCK_TIERS_MS),
            record_ttl_ms=60_000,
            sweep_every=3,
            clock=clock,
        )
        store.record_failure("198.51.100.1")
        store.record_failure("198.51.100.2")
        clock.advance(minutes=2)
        store.record_failure("198.51.100.3")

        assert len(store) == 1


class TestBoundsAndStats:
    def test_least_recently_failed_key_is_evicted(self, clock):
        store = AttemptStore(
            KeyKind.IP,
            LockoutPolicy(10, DEFAULT_LOCK_TIERS_MS),
            record_ttl_ms=HOUR_MS,
            max_keys=2,
            clock=clock,
        )
        store.record_failure("198.51.100.1")
        store.record_failure("198.51.100.2")
        store.record_failure("198.51.100.1")
        store.record_failure("198.51.100.3")

        assert len(store) == 2
        assert store.get_status("198.51.100.2").attempts == 0
        assert store.get_status("198.51.100.1").attempts == 2

    def test_locked_record_is_not_evicted(self, clock):
        store = AttemptStore(
            KeyKind.USER,
            LockoutPolicy(5, DEFAULT_LOCK_TIERS_MS),
            record_ttl_ms=24 * HOUR_MS,
            max_keys=3,
            clock=clock,
        )
        fail(store, "victim@example.com", 6)
        for n in range(3):
            store.record_failure(f"filler{n}@example.com")

        status = store.get_status("victim@example.com")
        assert status.locked is True
        assert status.attempts == 6
        assert len(store) == 3
        # The oldest unlocked record made room instead
        assert store.get_status("filler0@example.com").attempts == 0

    def test_idle_records_are_swept_before_evicting(self, clock):
        store = AttemptStore(
            KeyKind.IP,
            LockoutPolicy(10, DEFAULT_LOCK_TIERS_MS),
            record_ttl_ms=60_000,
            max_keys=2,
            clock=clock,
        )
        store.record_failure("198.51.100.1")
        clock.advance(minutes=2)
        store.record_failure("198.51.100.2")
        store.record_failure("198.51.100.3")

        assert len(store) == 2
        assert store.get_status("198.51.100.2").attempts == 1
        assert store.get_status("198.51.100.3").attempts == 1

    def test_store_full_of_locks_evicts_oldest_lock(self, clock, caplog):
        store = AttemptStore(
            KeyKind.USER,
            LockoutPolicy(1, DEFAULT_LOCK_TIERS_MS),
            record_ttl_ms=24 * HOUR_MS,
            max_keys=2,
            clock=clock,
        )
        fail(store, "a@example.com", 2)
        fail(store, "b@example.com", 2)

        with caplog.at_level(logging.WARNING):
            store.record_failure("c@example.com")

        assert len(store) == 2
        assert store.get_status("a@example.com").attempts == 0
        assert store.get_status("b@example.com").locked is True
        assert any("evicted locked a@example.com" in r.getMessage() for r in caplog.records)

    def test_stats_counts_total_and_blocked(self, user_store, clock):
        fail(user_store, "a@example.com", 2)
        fail(user_store, "b@example.com", 6)
        stats = user_store.stats()
        assert stats.total == 2
        assert stats.blocked == 1

        clock.advance(minutes=2)
        assert user_store.stats().blocked == 0

    def test_config_dict(self, user_store):
        config = user_store.config_dict()
        assert config["max_attempts"] == 5
        assert config["lock_tiers_ms"] == DEFAULT_LOCK_TIERS_MS
        assert config["record_ttl_ms"] == 24 * HOUR_MS
