"""Cancellation and deadline handling for blocking build stages."""

from __future__ import annotations

import threading
import time
from typing import Callable

from kabuild.core.errors import BuildCancelled, DeadlineExceeded


class CancelToken:
    """
    Cancellation flag with an optional deadline.

    A token is threaded through every blocking call of a build. `cancel()`
    may be called from any thread (for example a signal handler); sleeping
    through `sleep()` wakes up as soon as the token is cancelled.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(self._deadline - self._clock(), 0.0)

    def check(self) -> None:
        """
        Raise if the token is cancelled or its deadline has passed.

        Raises:
            BuildCancelled: If cancel() was called.
            DeadlineExceeded: If the deadline has passed.
        """
        self.check_from(None)

    def check_from(self, exc: BaseException | None) -> None:
        """Like check(), chaining the raised error to `exc`."""
        if self._event.is_set():
            raise BuildCancelled("build cancelled") from exc
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceeded("build deadline exceeded") from exc

    def sleep(self, seconds: float) -> None:
        """Sleep up to `seconds`, waking early on cancellation or deadline."""
        self.check()
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)
        self.check()
