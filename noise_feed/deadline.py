"""
Run-wide deadline shared by every fetch worker.
"""

import time
from typing import Callable


class DeadlineExceeded(TimeoutError):
    """Raised when work is attempted after the deadline has passed."""


class Deadline:
    """A fixed point in (monotonic) time after which no fetch work may continue."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        if seconds <= 0:
            raise ValueError(f"Deadline must be positive, got {seconds!r}")
        self._clock = clock
        self.seconds = seconds
        self.expires_at = clock() + seconds

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        """True once the deadline has passed."""
        return self._clock() >= self.expires_at

    def check(self, what: str) -> None:
        """Raises DeadlineExceeded if the deadline has passed."""
        if self.expired():
            raise DeadlineExceeded(
                f"Deadline of {self.seconds:g}s exceeded while {what}"
            )
