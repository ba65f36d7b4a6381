"""
BackoffController - Decides how long to wait before retrying a failed attempt.

Rules, first match wins:
- attempt_index >= max_retries: abort
- RATE_LIMITED with a server hint: max(hint, exponential), the hint is a floor
- RATE_LIMITED without a hint, or SERVER_ERROR: exponential
- anything else: abort (retrying will not fix the request)

Exponential delay is base_delay_ms * 2 ** attempt_index.
"""

import random
from dataclasses import dataclass

from graphwire.services.classifier import ErrorKind


@dataclass(frozen=True)
class BackoffPolicy:
    """Configuration for retry backoff."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    # Extra random delay as a fraction of the computed delay; 0 disables it
    jitter_ratio: float = 0.0


class BackoffController:
    """
    Stateless backoff calculator.

    Usage:
        backoff = BackoffController(BackoffPolicy(max_retries=3))

        delay_ms = backoff.next_delay(attempt, ErrorKind.SERVER_ERROR)
        if delay_ms is None:
            raise error
        await asyncio.sleep(delay_ms / 1000)
    """

    def __init__(
        self,
        policy: BackoffPolicy | None = None,
        rng: random.Random | None = None,
    ):
        self.policy = policy or BackoffPolicy()
        self._rng = rng or random.Random()

    def next_delay(
        self,
        attempt_index: int,
        kind: ErrorKind,
        hint_seconds: int | None = None,
        max_retries: int | None = None,
    ) -> int | None:
        """
        Delay in milliseconds before the next attempt, or None to abort.

        Args:
            attempt_index: Zero-based index of the attempt that just failed
            kind: Classification of that failure
            hint_seconds: Server supplied Retry-After, if any
            max_retries: Per-call override of the policy's attempt budget
        """
        limit = self.policy.max_retries if max_retries is None else max_retries
        if attempt_index >= limit:
            return None

        exponential = (2**attempt_index) * self.policy.base_delay_ms

        if kind is ErrorKind.RATE_LIMITED:
            if hint_seconds is not None:
                return self._jitter(max(hint_seconds * 1000, exponential))
            return self._jitter(exponential)

        if kind is ErrorKind.SERVER_ERROR:
            return self._jitter(exponential)

        return None

    def _jitter(self, delay_ms: int) -> int:
        # Only ever lengthens the delay
        if self.policy.jitter_ratio <= 0:
            return delay_ms
        return delay_ms + int(delay_ms * self.policy.jitter_ratio * self._rng.random())


def parse_retry_after(value: str | None) -> int | None:
    """Parse a Retry-After header expressed in whole seconds."""
    if value is None:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    return int(value)
