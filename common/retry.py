"""
Retry decorator shared by the upstream clients.
"""

import time
from functools import wraps
from typing import Any, Callable, Optional

from common.logging import LoggingManager

logger = LoggingManager.get_logger('app.retry')

DEFAULT_MAX_RETRIES = 3


def retry_on_failure(max_retries: Optional[int] = None, delay: float = 1.0, backoff: float = 2.0,
                     retryable: Callable[[Exception], bool] = lambda e: True):
    """Decorator to retry a function on transient failure.

    Args:
        max_retries: Maximum number of retry attempts. When None, the
            ``max_retries`` attribute of the decorated method's instance is
            used, falling back to DEFAULT_MAX_RETRIES.
        delay: Initial delay between retries in seconds.
        backoff: Multiplier for delay after each retry.
        retryable: Decides whether an exception is worth another attempt;
            anything it rejects is raised immediately.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            retries = max_retries
            if retries is None:
                retries = getattr(args[0], "max_retries", DEFAULT_MAX_RETRIES) if args else DEFAULT_MAX_RETRIES
            current_delay = delay

            for attempt in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not retryable(e):
                        raise
                    logger.warning(f"Attempt {attempt + 1}/{retries + 1} of {func.__name__} failed: {str(e)}")
                    if attempt < retries:
                        logger.info(f"Retrying in {current_delay:.2f} seconds...")
                        time.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(f"All {retries + 1} attempts of {func.__name__} failed. Last error: {str(e)}")
                        raise

        return wrapper

    return decorator
