"""Unit tests for the account lockout policy."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from agent_portal.models.account import Account
from agent_portal.services.errors import AccountInactiveError, AccountLockedError
from agent_portal.services.lockout import LockoutPolicy

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _account(**overrides) -> Account:
    fields = {
        "id": uuid4(),
        "agent_id": "AG000001",
        "name": "Dana",
        "email": "dana@example.com",
    }
    fields.update(overrides)
    return Account(**fields)


@pytest.fixture
def policy():
    return LockoutPolicy(max_attempts=5, lock_duration=timedelta(minutes=30))


class TestRegisterFailure:
    def test_first_failure_increments_without_lock(self, policy):
        decision = policy.register_failure(0, NOW)

        assert decision.failed_attempts == 1
        assert decision.locked_until is None
        assert decision.locked is False
        assert decision.attempts_remaining == 4

    def test_fifth_failure_locks_for_exactly_thirty_minutes(self, policy):
        decision = policy.register_failure(4, NOW)

        assert decision.failed_attempts == 5
        assert decision.locked is True
        assert decision.locked_until == NOW + timedelta(minutes=30)
        assert decision.attempts_remaining == 0

    def test_counter_above_threshold_still_locks(self, policy):
        decision = policy.register_failure(7, NOW)
        assert decision.failed_attempts == 8
        assert decision.locked_until == NOW + timedelta(minutes=30)

    def test_five_consecutive_failures(self, policy):
        count = 0
        decisions = []
        for _ in range(5):
            decision = policy.register_failure(count, NOW)
            count = decision.failed_attempts
            decisions.append(decision)

        assert [d.locked for d in decisions] == [False, False, False, False, True]
        assert [d.attempts_remaining for d in decisions] == [4, 3, 2, 1, 0]


class TestEnsureCanAttempt:
    def test_active_unlocked_account_passes(self, policy):
        policy.ensure_can_attempt(_account(), NOW)

    def test_future_lock_rejected_with_unlock_time(self, policy):
        locked_until = NOW + timedelta(minutes=10)
        account = _account(locked_until=locked_until)

        with pytest.raises(AccountLockedError) as exc_info:
            policy.ensure_can_attempt(account, NOW)

        assert exc_info.value.locked_until == locked_until
        assert exc_info.value.status_code == 423
        assert locked_until.isoformat() in exc_info.value.details

    def test_expired_lock_is_ignored(self, policy):
        account = _account(locked_until=NOW - timedelta(seconds=1), failed_login_attempts=5)
        policy.ensure_can_attempt(account, NOW)

    def test_inactive_rejected_even_when_locked(self, policy):
        account = _account(is_active=False, locked_until=NOW + timedelta(minutes=5))

        with pytest.raises(AccountInactiveError):
            policy.ensure_can_attempt(account, NOW)

    def test_inactive_rejected_when_unlocked(self, policy):
        with pytest.raises(AccountInactiveError):
            policy.ensure_can_attempt(_account(is_active=False), NOW)


class TestDecisionFromCounter:
    def test_matches_register_failure(self, policy):
        for before in range(7):
            expected = policy.register_failure(before, NOW)
            stored = policy.decision_from_counter(
                before + 1, policy.lock_expiry(NOW) if before + 1 >= 5 else None
            )
            assert stored == expected

    def test_remaining_never_negative(self, policy):
        decision = policy.decision_from_counter(9, policy.lock_expiry(NOW))

        assert decision.attempts_remaining == 0
        assert decision.locked is True
