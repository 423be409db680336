"""Error handling utilities for provider access and request validation.

Provides the exception taxonomy, retry logic with backoff and jitter, and
safe arithmetic helpers.
"""

import logging
import math
import random
import time
from functools import wraps
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger("credit_screener.error_handling")

T = TypeVar('T')

RETRYABLE_STATUS_CODES = frozenset({408, 429})


class ScreeningError(Exception):
    """Base exception for screening-related errors."""
    pass


class RequestValidationError(ValueError, ScreeningError):
    """Raised when a boundary request is malformed.

    Carries an HTTP 400-equivalent status for the request handlers.
    """

    status = 400


class DataValidationError(ValueError, ScreeningError):
    """Raised when provider or file data fails validation."""
    pass


class ConfigurationError(ScreeningError):
    """Raised when configuration or credentials are missing or invalid."""
    pass


class ProviderError(ScreeningError):
    """Raised when a data provider call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableProviderError(ProviderError):
    """Transient provider failure (408/429/5xx) that may succeed on retry."""

    def __init__(self, message: str, status_code: int | None = None,
                 retry_after: float | None = None):
        super().__init__(message, status_code)
        self.retry_after = retry_after


def is_retryable_status(status_code: int) -> bool:
    """True for rate-limit, timeout and server-error responses."""
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.25,
    backoff_factor: float = 2.0,
    max_jitter: float = 0.1,
    exceptions: Tuple[Type[Exception], ...] = (RetryableProviderError,),
    sleep: Callable[[float], None] = time.sleep,
):
    """Decorator to retry a function with exponential backoff plus jitter.

    Args:
        max_retries: Number of retries after the first attempt
        base_delay: Delay before the first retry, in seconds
        backoff_factor: Multiplier per attempt (wait = base_delay * backoff_factor ** attempt)
        max_jitter: Upper bound of random seconds added to each wait
        exceptions: Exception types that trigger a retry; anything else raises immediately
        sleep: Sleep function (injectable for tests)

    Returns:
        Decorated function with retry logic

    Example:
        >>> @retry_with_backoff(max_retries=3)
        >>> def fetch_quote():
        >>>     return client.get_latest_quote("SPY")

    Raises:
        The last exception if all retries are exhausted
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            attempts = max_retries + 1
            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == attempts - 1:
                        logger.error(
                            "Function %s failed after %d attempts: %s",
                            func.__name__, attempts, e
                        )
                        raise

                    retry_after = getattr(e, 'retry_after', None)
                    if retry_after is not None:
                        wait_time = float(retry_after)
                    else:
                        wait_time = base_delay * (backoff_factor ** attempt)
                    wait_time += random.uniform(0, max_jitter)

                    logger.warning(
                        "Attempt %d/%d failed for %s: %s. Retrying in %.2fs...",
                        attempt + 1, attempts, func.__name__, e, wait_time
                    )
                    sleep(wait_time)

            # Should never reach here, but for type checking
            raise RuntimeError(f"Unexpected state in retry logic for {func.__name__}")

        return wrapper
    return decorator


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers, returning default on a zero denominator.

    Example:
        >>> safe_divide(10, 2)
        5.0
        >>> safe_divide(10, 0)
        0.0
    """
    if denominator == 0:
        logger.debug("Division by zero: %s/%s, returning %s", numerator, denominator, default)
        return default
    return numerator / denominator


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up.

    Example:
        >>> round_half_up(2.5)
        3
        >>> round(2.5)
        2
    """
    return int(math.floor(value + 0.5))
