"""
Retry-with-backoff for external calls.

Every provider call in the pipeline goes through ``RetryExecutor.execute``.
The executor knows nothing about stories; it only sees a zero-argument
callable, a label for logging and a ``RetryPolicy``.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from .errors import (
    ContentSafetyViolation,
    NonRetryableProviderError,
    PersistenceError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0

NON_RETRYABLE_STATUS_CODES = frozenset({400, 401, 403, 422})

# Matched case-insensitively against the error message when no typed
# classification is available.
NON_RETRYABLE_MESSAGES = (
    "invalid api key",
    "authentication failed",
    "quota exceeded",
    "rate limit exceeded",
)


def is_non_retryable(error: BaseException) -> bool:
    """
    Decide whether an error should abort the retry loop immediately.

    Typed pipeline errors are classified by type. Anything else is classified
    by an HTTP-like ``status_code`` attribute, then by message.
    """
    if isinstance(error, (NonRetryableProviderError, ContentSafetyViolation, PersistenceError)):
        return True
    if isinstance(error, TransientProviderError):
        return False

    status_code = getattr(error, "status_code", None)
    if status_code in NON_RETRYABLE_STATUS_CODES:
        return True

    message = str(error).lower()
    return any(fragment in message for fragment in NON_RETRYABLE_MESSAGES)


def _default_is_retryable(error: BaseException) -> bool:
    return not is_non_retryable(error)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff shape for one class of calls."""
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    is_retryable: Callable[[BaseException], bool] = field(default=_default_is_retryable)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


class RetryExecutor:
    """
    Runs an operation with bounded retries and exponential backoff.

    The sleep function is injectable so tests can run without waiting.
    """

    def __init__(self, policy: Optional[RetryPolicy] = None, sleep: Callable[[float], None] = time.sleep):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def execute(
        self,
        operation: Callable[[], T],
        label: str,
        policy: Optional[RetryPolicy] = None,
    ) -> T:
        """
        Call ``operation`` until it succeeds or the policy gives up.

        Args:
            operation: Zero-argument callable performing one attempt
            label: Operation name used in log lines
            policy: Overrides the executor's default policy for this call

        Returns:
            The operation's return value

        Raises:
            The non-retryable error as soon as it is seen, or the last error
            once all attempts have failed.
        """
        policy = policy or self.policy
        max_attempts = max(1, policy.max_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                result = operation()
            except Exception as e:
                if not policy.is_retryable(e):
                    logger.error(
                        f"{label}: attempt {attempt}/{max_attempts} failed with non-retryable error: {e}"
                    )
                    raise
                if attempt >= max_attempts:
                    logger.error(f"{label}: giving up after {attempt} attempts: {e}")
                    raise
                delay = policy.delay_for(attempt)
                logger.warning(
                    f"{label}: attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.1f}s"
                )
                self._sleep(delay)
            else:
                if attempt > 1:
                    logger.info(f"{label}: succeeded on attempt {attempt}/{max_attempts}")
                else:
                    logger.debug(f"{label}: succeeded on first attempt")
                return result

        # max_attempts >= 1 guarantees the loop either returns or raises
        raise RuntimeError(f"{label}: retry loop exited without a result")
