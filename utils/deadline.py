import time
from typing import Optional

from utils.errors import DeadlineExceeded


class Deadline:
    """
    Wall-clock budget shared by every network call of a run.

    `check` is called right before a request is sent, so an expired deadline never
    interrupts a call halfway and never leaves partially applied state behind.
    A call already in flight is bounded by the client timeouts instead, which `S3Gateway`
    caps at `remaining`; with retries one call may still take up to max attempts times that.
    """

    def __init__(self, seconds: Optional[float] = None, clock=time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self._expires_at = None if seconds is None else clock() + seconds

    @property
    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self._expires_at is not None and self._clock() >= self._expires_at

    def check(self, operation: str):
        if self.expired():
            raise DeadlineExceeded(f"Deadline of {self.seconds}s exceeded before {operation}")
