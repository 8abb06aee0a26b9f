"""
Retry decorator with exponential backoff.

Only used for explicit rate-limit answers from caption hosts. Timeouts are
never retried automatically; they surface to the consumer as retryable.
"""

import time
import random
import logging
import functools
from typing import Callable, Tuple, Type, Optional, Any

logger = logging.getLogger('lingoplay')


def retry(
    max_attempts: int = 3,
    delay: float = 2.0,
    backoff: float = 2.0,
    jitter: float = 1.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> Callable:
    """
    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for delay after each retry
        jitter: Upper bound of the random seconds added to each wait
        exceptions: Exception types that trigger a retry
        on_retry: Optional callback receiving (exception, attempt)
        sleep: Sleep function, defaults to time.sleep

    Example:
        @retry(max_attempts=3, exceptions=(RateLimitedError,))
        def download(url):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            current_delay = delay

            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(f"[RETRY] {func.__name__} failed after {max_attempts} attempts: {e}")
                        raise

                    wait_time = current_delay + random.uniform(0, jitter)
                    logger.warning(
                        f"[RETRY] {func.__name__} attempt {attempt}/{max_attempts} failed: {e}. "
                        f"Retrying in {wait_time:.1f}s..."
                    )
                    if on_retry:
                        on_retry(e, attempt)

                    (sleep or time.sleep)(wait_time)
                    current_delay *= backoff

        return wrapper
    return decorator
