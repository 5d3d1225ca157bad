"""Per-account lockout after repeated failed logins."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from agent_portal.models.account import Account
from agent_portal.services.errors import AccountInactiveError, AccountLockedError


@dataclass(frozen=True)
class LockoutDecision:
    """Outcome of a failed password check.

    Attributes:
        failed_attempts: New value of the failed-attempt counter
        locked_until: Lock expiry if this failure locked the account
        attempts_remaining: Failures left before the account locks
    """

    failed_attempts: int
    locked_until: Optional[datetime]
    attempts_remaining: int

    @property
    def locked(self) -> bool:
        return self.locked_until is not None


class LockoutPolicy:
    """Counts failed logins per account and locks it for a fixed duration."""

    def __init__(
        self,
        max_attempts: int = 5,
        lock_duration: timedelta = timedelta(minutes=30),
    ):
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration

    def ensure_can_attempt(self, account: Account, now: datetime) -> None:
        """Reject inactive or currently locked accounts.

        Inactive accounts are rejected regardless of lock state. A lock is
        in force while locked_until is strictly in the future.

        Raises:
            AccountInactiveError: If the account is deactivated
            AccountLockedError: If the account is locked at ``now``
        """
        if not account.is_active:
            raise AccountInactiveError()

        if self.is_locked(account, now):
            raise AccountLockedError(account.locked_until)

    def is_locked(self, account: Account, now: datetime) -> bool:
        return account.locked_until is not None and account.locked_until > now

    def register_failure(self, failed_attempts: int, now: datetime) -> LockoutDecision:
        """Compute counter and lock state after a wrong password.

        Args:
            failed_attempts: Counter value before this failure
            now: Time of the failure

        Returns:
            LockoutDecision with the incremented counter; locked_until is
            ``now + lock_duration`` once the counter reaches max_attempts
        """
        new_count = (failed_attempts or 0) + 1
        locked_until = None
        if new_count >= self.max_attempts:
            locked_until = self.lock_expiry(now)

        return LockoutDecision(
            failed_attempts=new_count,
            locked_until=locked_until,
            attempts_remaining=max(0, self.max_attempts - new_count),
        )

    def lock_expiry(self, now: datetime) -> datetime:
        return now + self.lock_duration

    def decision_from_counter(
        self, failed_attempts: int, locked_until: Optional[datetime]
    ) -> LockoutDecision:
        """Describe a counter value that the store has already incremented."""
        return LockoutDecision(
            failed_attempts=failed_attempts,
            locked_until=locked_until,
            attempts_remaining=max(0, self.max_attempts - failed_attempts),
        )
