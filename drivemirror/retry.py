"""Retry policy for transient Graph failures."""

import logging
import time
from typing import Callable, Optional, TypeVar

from .exceptions import GraphNetworkError, TransientFailure
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Runs remote calls, waiting and retrying while the server is busy.

    Only :class:`TransientFailure` (HTTP 429, 503, 504) and
    :class:`GraphNetworkError` are retried. Every other exception is
    raised on the first attempt. All wrapped calls are reads, so
    repeating them verbatim is safe.

    Examples:
        >>> policy = RetryPolicy(max_attempts=3)
        >>> page = policy.execute(lambda: client.list_children(drive, item))
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the retry policy.

        Args:
            max_attempts: Total attempts before giving up (default: 10)
            base_delay: Wait per attempt number when the server sends no
                Retry-After hint (default: 10 seconds)
            sleep: Function used to wait (replaced in tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    def compute_delay(self, error: Exception, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based).

        The server's Retry-After hint wins; otherwise the wait grows
        linearly with the attempt number.
        """
        retry_after: Optional[float] = getattr(error, "retry_after", None)
        if retry_after is not None:
            return retry_after
        return self.base_delay * attempt

    def execute(self, operation: Callable[[], T], description: str = "") -> T:
        """Run ``operation`` until it succeeds or a limit is hit.

        Args:
            operation: Zero-argument callable performing one remote call
            description: What the call does, for log messages

        Returns:
            Whatever ``operation`` returns

        Raises:
            Exception: The non-retryable error, or the last transient
                error once ``max_attempts`` attempts were made
        """
        attempt = 1
        while True:
            try:
                return operation()
            except (TransientFailure, GraphNetworkError) as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        "Giving up on %s after %d attempts: %s",
                        description or "request",
                        attempt,
                        e,
                    )
                    raise
                delay = self.compute_delay(e, attempt)
                status = getattr(e, "status_code", None) or "network"
                logger.warning(
                    "Throttled or busy (%s) on %s, waiting %.0fs before retry "
                    "(attempt %d/%d)",
                    status,
                    description or "request",
                    delay,
                    attempt,
                    self.max_attempts,
                )
                self.sleep(delay)
                attempt += 1
