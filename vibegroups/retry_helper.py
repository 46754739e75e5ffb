"""
Retry Helper - Exponential backoff for transient request failures

Provides a decorator that retries a call with increasing delays. Only
exceptions derived from RetryableError are retried by default; everything
else (including auth and fetch errors) propagates immediately.
"""
import logging
import time
from functools import wraps
from typing import Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """Base exception for errors that should trigger a retry"""
    pass


class NetworkError(RetryableError):
    """Raised when the network connection fails or times out"""
    pass


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    max_delay: float = 30.0,
    exceptions: Tuple[Type[Exception], ...] = (RetryableError,),
    sleep: Optional[Callable[[float], None]] = None,
):
    """
    Decorator that retries a function with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds before first retry
        backoff_multiplier: Multiplier for delay after each retry
        max_delay: Maximum delay between retries in seconds
        exceptions: Tuple of exception types to catch and retry
        sleep: Called with each delay instead of time.sleep (e.g. a
            cancellation token's sleep, which raises once cancelled)

    Returns:
        Decorated function that retries on failure

    Example:
        @retry_with_backoff(max_retries=3, initial_delay=1.0)
        def make_api_call():
            return session.get(url)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            delay = initial_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    # Don't retry on the last attempt
                    if attempt == max_retries:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} retries: {e}"
                        )
                        raise

                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt + 1}/{max_retries + 1}), "
                        f"retrying in {delay:.1f}s: {e}"
                    )

                    (sleep or time.sleep)(delay)
                    delay = min(delay * backoff_multiplier, max_delay)

        return wrapper
    return decorator
