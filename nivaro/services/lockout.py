"""Account lockout policy.

States::

    Unlocked(failed=0..max-1) --failure at max-1--> Locked(until=now+window)
    Locked(until=T), now >= T  ==  Unlocked(failed=max-1)
    any Unlocked --success--> Unlocked(failed=0)

The policy evaluates state; the credential store applies the transitions
as single UPDATE statements so concurrent failures are never lost.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from nivaro.config import get_settings


@dataclass(frozen=True)
class LockoutState:
    """Lockout state of one account at a point in time."""

    failed_attempts: int
    locked_until: datetime | None = None

    @property
    def locked(self) -> bool:
        return self.locked_until is not None


class LockoutPolicy:
    """Decides whether an account may attempt a login."""

    def __init__(self, max_attempts: int | None = None, window: timedelta | None = None) -> None:
        settings = get_settings()
        self.max_attempts = max_attempts if max_attempts is not None else settings.LOCKOUT_MAX_ATTEMPTS
        self.window = window if window is not None else timedelta(minutes=settings.LOCKOUT_MINUTES)

    def evaluate(self, failed_attempts: int, locked_until: datetime | None, now: datetime) -> LockoutState:
        """Return the effective state for the stored counters at ``now``."""
        if locked_until is not None and now < locked_until:
            return LockoutState(failed_attempts=failed_attempts, locked_until=locked_until)
        if locked_until is not None:
            # Expired lock: one more failure locks again.
            return LockoutState(failed_attempts=self.max_attempts - 1)
        return LockoutState(failed_attempts=min(failed_attempts, self.max_attempts - 1))

    def lock_deadline(self, now: datetime) -> datetime:
        return now + self.window


_lockout_policy: LockoutPolicy | None = None


def get_lockout_policy() -> LockoutPolicy:
    """Get singleton lockout policy instance."""
    global _lockout_policy
    if _lockout_policy is None:
        _lockout_policy = LockoutPolicy()
    return _lockout_policy
