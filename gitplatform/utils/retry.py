"""
Retry policy and backoff schedule for the REST transport.
"""

import random
from dataclasses import dataclass
from typing import Callable, Optional

from gitplatform.exceptions import GitPlatformError


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff settings.

    ``delay = min(max_delay, base_delay * backoff_factor ** (attempt - 1))``,
    then up to ``jitter * delay`` is added and the result re-capped at
    ``max_delay``.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    jitter: float = 0.1
    max_rate_limit_wait: float = 60.0

    def backoff_delay(
        self,
        attempt: int,
        rand: Callable[[float, float], float] = random.uniform,
    ) -> float:
        """
        Delay before retry number ``attempt`` (1-based).

        :param attempt: Retry number, starting at 1.
        :param rand: Uniform random source, injectable for tests.
        :return: Delay in seconds.
        """
        exponent = max(0, attempt - 1)
        delay = min(self.max_delay, self.base_delay * (self.backoff_factor**exponent))
        if self.jitter > 0 and delay > 0:
            delay += rand(0.0, delay * self.jitter)
        return min(self.max_delay, delay)

    def rate_limit_delay(self, error: GitPlatformError, attempt: int) -> float:
        """
        Delay before retrying a rate-limited request.

        Uses the upstream reset hint when present, otherwise the
        exponential schedule.
        """
        hinted: Optional[float] = error.retry_after
        if hinted is None:
            return self.backoff_delay(attempt)
        return min(hinted, self.max_rate_limit_wait)


def is_retryable(error: GitPlatformError) -> bool:
    """
    Classify an error as retryable or terminal.

    Rate limits, server errors and failures without an HTTP status
    (network errors, timeouts) are retryable. Everything else is terminal.
    """
    if error.is_rate_limited:
        return True
    if error.status is None:
        return True
    return error.is_server_error
