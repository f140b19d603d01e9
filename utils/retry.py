"""Retry with exponential backoff."""
import time
import logging
from dataclasses import dataclass

logger = logging.getLogger("poolwatch.retry")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 2.0     # seconds before the second attempt
    multiplier: float = 2.0
    max_delay: float = 60.0

    def delay_for(self, attempt):
        """Sleep after failed attempt number `attempt` (1-based)."""
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)


DEFAULT_POLICY = RetryPolicy()


class RetryExhausted(Exception):
    """All attempts failed (or a non-retryable error stopped the loop)."""
    def __init__(self, attempts, last_error):
        super().__init__(f"failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def _retryable(exc):
    return getattr(exc, "retryable", True)


def retry_call(func, policy=DEFAULT_POLICY, sleep=time.sleep, label="operation",
               retry_on=(Exception,)):
    """Call `func()` until it succeeds or the policy is exhausted.

    Returns (result, attempts). Raises RetryExhausted with the last error.
    Exceptions with a false `retryable` attribute stop immediately.
    """
    attempts = max(1, int(policy.max_attempts))
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            return func(), attempt
        except retry_on as e:
            last_error = e
            if not _retryable(e):
                logger.warning(f"{label}: attempt {attempt}/{attempts} failed, not retryable: {e}")
                raise RetryExhausted(attempt, e) from e
            if attempt < attempts:
                delay = policy.delay_for(attempt)
                logger.warning(f"{label}: attempt {attempt}/{attempts} failed: {e}, retrying in {delay:.2f}s")
                sleep(delay)
    raise RetryExhausted(attempts, last_error) from last_error
