"""
Retry policy for the recordings API.

Holds the fixed policy constants, the per-fetch retry state and the helpers
that decide whether a response or exception is retryable and how long to
wait before the next attempt.
"""

from dataclasses import dataclass
from typing import Optional

import requests


# Retries allowed per fetch; the attempt after the last retry fails fast.
MAX_RETRIES = 10

RETRYABLE_STATUS_CODES = frozenset({
    429,  # Too Many Requests
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
})

# (elapsed seconds upper bound, delay seconds), checked in order
BACKOFF_TIERS = (
    (5 * 60, 3),
    (10 * 60, 9),
)
FINAL_BACKOFF_SECONDS = 27

# Exceptions raised by the transport that are retried like a 503
TRANSIENT_EXCEPTIONS = (requests.exceptions.RequestException, OSError)


@dataclass
class RetryState:
    """
    Retry bookkeeping for a single fetch.

    Created when the fetch starts and discarded when it ends; never shared
    between fetches.
    """

    attempts: int = 0
    first_retry_at: Optional[float] = None
    last_delay: Optional[float] = None

    def register_retry(self, now: float) -> int:
        """Count one retryable result and return the new attempt count."""
        self.attempts += 1
        if self.first_retry_at is None:
            self.first_retry_at = now
        return self.attempts

    @property
    def exhausted(self) -> bool:
        return self.attempts > MAX_RETRIES

    def elapsed(self, now: float) -> float:
        """Seconds since the first retryable result (0 before any)."""
        if self.first_retry_at is None:
            return 0.0
        return max(0.0, now - self.first_retry_at)


def backoff_delay(elapsed_seconds: float) -> int:
    """
    Pick the tiered delay for a retry.

    Args:
        elapsed_seconds: Time since the first retryable result of this fetch

    Returns:
        3 seconds under 5 minutes, 9 seconds under 10 minutes, else 27 seconds
    """
    for upper_bound, delay in BACKOFF_TIERS:
        if elapsed_seconds < upper_bound:
            return delay
    return FINAL_BACKOFF_SECONDS


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """
    Parse a Retry-After header given in whole seconds.

    HTTP-date values, negative numbers and garbage return None so the caller
    falls back to tiered backoff.
    """
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except (ValueError, AttributeError):
        return None
    if seconds < 0:
        return None
    return seconds


def should_retry_http_status(status_code: int) -> bool:
    """
    Check if HTTP status code indicates a retryable error.

    Args:
        status_code: HTTP status code

    Returns:
        True if should retry
    """
    return status_code in RETRYABLE_STATUS_CODES


def is_transient_error(exception: BaseException) -> bool:
    """
    Determine if an exception raised while sending a request should be retried.

    Connection errors, timeouts and other transport failures are transient;
    anything else is treated as a bug and ends the fetch.
    """
    return isinstance(exception, TRANSIENT_EXCEPTIONS)
