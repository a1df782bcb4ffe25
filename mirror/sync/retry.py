"""Retry logic with exponential backoff for transient Notion API errors.

Rate limit responses honour the server's Retry-After hint when it is longer
than the computed backoff. Permanent errors are passed through immediately.
"""

import logging
import threading
import time
from typing import Callable, TypeVar

from mirror.providers.notion import RateLimitedError, TransientAPIError
from mirror.sync.exceptions import RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Backoff:
    """Exponential backoff policy: base, 2*base, 4*base ... capped at max_delay."""

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        sleep: Callable[[float], None] | None = None,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def delay_for(self, retry_num: int, error: Exception) -> float:
        delay = min(self.base_delay * (2**retry_num), self.max_delay)
        if isinstance(error, RateLimitedError) and error.retry_after:
            delay = max(delay, error.retry_after)
        return delay

    def wait(self, delay: float, cancel_event: threading.Event | None = None) -> None:
        if self._sleep is not None:
            self._sleep(delay)
        elif cancel_event is not None:
            # wakes early on cancellation
            cancel_event.wait(delay)
        else:
            time.sleep(delay)

    def call(
        self,
        func: Callable[..., T],
        *args,
        cancel_event: threading.Event | None = None,
        **kwargs,
    ) -> T:
        """Call func, retrying on transient errors.

        Args:
            func: The remote operation to execute
            *args: Positional arguments to pass to the function
            cancel_event: Stops waiting between attempts once set
            **kwargs: Keyword arguments to pass to the function

        Returns:
            The return value of the function

        Raises:
            RetriesExhaustedError: If every attempt failed transiently
            Other exceptions: Passed through immediately without retry
        """
        for retry_num in range(self.max_attempts):
            try:
                return func(*args, **kwargs)
            except TransientAPIError as e:
                attempt = retry_num + 1
                if attempt >= self.max_attempts or (cancel_event is not None and cancel_event.is_set()):
                    logger.warning(f"Giving up after {attempt} attempt(s): {e}")
                    raise RetriesExhaustedError(
                        f"Notion API failure after {attempt} attempt(s): {e}",
                        attempts=attempt,
                        last_error=e,
                    ) from e

                delay = self.delay_for(retry_num, e)
                logger.info(
                    f"Transient error, retrying in {delay:.1f}s "
                    f"(retry {attempt}/{self.max_attempts - 1}): {e}"
                )
                self.wait(delay, cancel_event)

        # max_attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")
