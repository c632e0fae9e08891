"""Lockout state machine.

    Unlocked(n) --failure, n+1 <  threshold--> Unlocked(n+1)
    Unlocked(n) --failure, n+1 >= threshold--> Locked(now + duration)
    Locked(t)   --now >= t-------------------> Unlocked(0)
    any         --success--------------------> Unlocked(0)

Pure functions over an immutable LockState. No DB access: the credential
verifier reads the account, computes the next state here, and writes it back
with a compare-and-swap on the account version. The lifecycle status column
is never touched here: an expired lock needs no write to lift.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any


@dataclass(frozen=True)
class LockState:
    """Failed-attempt counter plus optional lock expiry."""

    failed_attempts: int = 0
    locked_until: datetime | None = None

    @classmethod
    def of(cls, account: Any) -> LockState:
        return cls(failed_attempts=account.failed_attempts or 0, locked_until=account.locked_until)

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and now < self.locked_until


UNLOCKED = LockState()


class LockoutPolicy:
    """Threshold and duration for temporary lockout."""

    def __init__(self, threshold: int = 5, duration: timedelta = timedelta(minutes=15)) -> None:
        if threshold < 1:
            msg = f"Lockout threshold must be >= 1, got {threshold}"
            raise ValueError(msg)
        self.threshold = threshold
        self.duration = duration

    def normalize(self, state: LockState, now: datetime) -> LockState:
        """Expired lock -> Unlocked(0). Anything else is returned unchanged."""
        if state.locked_until is not None and now >= state.locked_until:
            return UNLOCKED
        return state

    def on_failure(self, state: LockState, now: datetime) -> LockState:
        state = self.normalize(state, now)
        failed = state.failed_attempts + 1
        if failed >= self.threshold:
            return LockState(failed_attempts=failed, locked_until=now + self.duration)
        return LockState(failed_attempts=failed)

    def on_success(self) -> LockState:
        return UNLOCKED

    def retry_after(self, state: LockState, now: datetime) -> int:
        """Whole seconds until the lock lifts (0 when not locked)."""
        if not state.is_locked(now):
            return 0
        assert state.locked_until is not None
        return max(1, math.ceil((state.locked_until - now).total_seconds()))
