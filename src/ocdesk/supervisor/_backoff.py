"""Exponential backoff between startup attempts.

Delays double on every retry, starting at one second. Jitter is off by
default because there is only ever one backend per launcher to restart.
"""

import random
from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff calculator with optional jitter.

    The delay for retry `n` (0-indexed) is:
        delay = min(base * (multiplier ^ n), max_delay)

    When jitter is set, the delay is moved by up to +/- jitter/2 of itself.

    Attributes:
        base: Delay in seconds before the first retry.
        max_delay: Upper bound for any delay.
        multiplier: Growth factor between consecutive retries.
        jitter: Fraction of the delay to randomize (0.0-1.0).
    """

    base: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: float = 0.0

    def delay(self, retry: int) -> float:
        """Calculate the delay before a retry.

        Args:
            retry: Retry number, 0 for the wait before the second attempt.

        Returns:
            Seconds to wait.
        """
        capped = min(self.base * (self.multiplier**retry), self.max_delay)
        if self.jitter > 0:
            spread = capped * self.jitter
            offset = random.uniform(-spread / 2, spread / 2)  # noqa: S311
            capped = max(0.0, capped + offset)
        return capped

    def schedule(self, retries: int) -> Iterator[float]:
        """Yield the delays for `retries` consecutive retries."""
        for retry in range(retries):
            yield self.delay(retry)
