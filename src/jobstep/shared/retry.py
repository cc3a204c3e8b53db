"""Retry utilities with growing holdoff between attempts."""

import logging
import random
import time
from functools import wraps
from typing import Callable, Optional, Tuple, Type, TypeVar

T = TypeVar('T')

logger = logging.getLogger(__name__)


def retry_with_backoff(
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    exponential: bool = True,
    jitter: bool = True,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
):
    """
    Decorator for retrying a function with a growing holdoff.

    Args:
        max_attempts: Maximum number of attempts
        backoff_seconds: Holdoff before the second attempt
        exponential: Double the holdoff on each retry instead of growing linearly
        jitter: Randomize the holdoff by +/-50%
        exceptions: Exception types that trigger a retry

    Returns:
        Decorated function
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            strategy = RetryStrategy(
                max_attempts=max_attempts,
                backoff_seconds=backoff_seconds,
                exponential=exponential,
                jitter=jitter,
                retry_on=exceptions,
            )
            return strategy.execute(func, *args, **kwargs)

        return wrapper
    return decorator


class RetryStrategy:
    """Configurable retry strategy used for file copies and uploads."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        exponential: bool = True,
        jitter: bool = True,
        max_backoff: float = 60.0,
        retry_on: Tuple[Type[Exception], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got: {max_attempts}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.exponential = exponential
        self.jitter = jitter
        self.max_backoff = max_backoff
        self.retry_on = retry_on
        self._sleep = sleep

    def execute(
        self,
        func: Callable[..., T],
        *args,
        **kwargs
    ) -> T:
        """
        Execute a function with retry logic.

        Exceptions outside ``retry_on`` propagate immediately.

        Raises:
            Last exception if all attempts fail
        """
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                last_exception = e

                if attempt == self.max_attempts:
                    raise

                wait_time = self._calculate_backoff(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} of "
                    f"{getattr(func, '__name__', 'call')} failed ({e}); "
                    f"retrying in {wait_time:.1f}s"
                )
                self._sleep(wait_time)

        if last_exception:
            raise last_exception
        raise RuntimeError("Retry logic failed unexpectedly")

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate holdoff time for given attempt number."""
        if self.exponential:
            wait_time = self.backoff_seconds * (2 ** (attempt - 1))
        else:
            wait_time = self.backoff_seconds * attempt

        wait_time = min(wait_time, self.max_backoff)

        if self.jitter:
            wait_time = wait_time * (0.5 + random.random())

        return wait_time
