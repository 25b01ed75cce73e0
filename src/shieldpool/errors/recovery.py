"""Retry support for recoverable ShieldPool errors.

Only errors flagged ``retryable`` (today: stale roots) are retried; each
attempt is expected to rebuild its inputs, since resending the same proof
against a moved root cannot succeed.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .exceptions import ShieldPoolError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_retries: int = 3
    base_delay: float = 0.0
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = False

    def get_delay(self, attempt: int) -> float:
        """Get delay for the given attempt."""
        if attempt <= 0 or self.base_delay <= 0:
            return 0.0

        # Exponential backoff
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            delay *= random.uniform(0.5, 1.5)

        return delay

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Check whether ``error`` on ``attempt`` (1-based) warrants another try."""
        if attempt > self.max_retries:
            return False
        return isinstance(error, ShieldPoolError) and error.retryable

    def run(
        self,
        operation: Callable[[], T],
        on_retry: Optional[Callable[[ShieldPoolError, int], None]] = None,
    ) -> T:
        """Run ``operation`` until it succeeds or fails permanently.

        ``on_retry`` is called with the error and the attempt number before
        each new attempt, which is where callers refresh their view of state.
        """
        attempt = 0
        while True:
            try:
                return operation()
            except ShieldPoolError as e:
                attempt += 1
                if not self.should_retry(e, attempt):
                    raise
                logger.debug(
                    "Retrying after %s (attempt %d/%d)",
                    e.error_code,
                    attempt,
                    self.max_retries,
                )
                if on_retry is not None:
                    on_retry(e, attempt)
                delay = self.get_delay(attempt)
                if delay > 0:
                    time.sleep(delay)
