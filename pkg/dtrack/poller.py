from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from .client import DependencyTrackError
from .models import ProcessingStatus


StatusSource = Callable[[str], ProcessingStatus]
Sleep = Callable[[float], None]
ProgressHook = Callable[[int, int], None]

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_INTERVAL_SECONDS = 10.0
DEFAULT_SETTLE_SECONDS = 5.0


class PollTimeoutError(DependencyTrackError):
    """Processing did not finish within the attempt budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__("SBOM processing did not complete in time. Exiting...")
        self.attempts = attempts


@dataclass
class CompletionPoller:
    """Bounded-retry wait for SBOM processing to finish.

    Each attempt makes exactly one status call. Sleeps happen only between
    attempts, never after the last one. ``settle`` is the post-completion
    delay callers apply before reading score or violations; the server lags
    briefly after the processing flag flips.
    """

    fetch_status: StatusSource
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    sleep: Sleep = time.sleep
    on_waiting: ProgressHook | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be greater than zero")
        if self.interval_seconds < 0 or self.settle_seconds < 0:
            raise ValueError("poll delays cannot be negative")

    def await_completion(self, token: str) -> int:
        """Poll until processing is false. Returns the number of status calls made.

        Raises:
            PollTimeoutError: still processing after ``max_attempts`` calls.
        """
        for attempt in range(1, self.max_attempts + 1):
            status = self.fetch_status(token)
            if not status.processing:
                return attempt
            if self.on_waiting is not None:
                self.on_waiting(attempt, self.max_attempts)
            if attempt < self.max_attempts:
                self.sleep(self.interval_seconds)
        raise PollTimeoutError(self.max_attempts)

    def settle(self) -> None:
        """Settle."""
        if self.settle_seconds > 0:
            self.sleep(self.settle_seconds)
