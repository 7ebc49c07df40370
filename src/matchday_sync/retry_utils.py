# SPDX-License-Identifier: MIT
"""Retry utilities for upstream calls and caller-side sync retries."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

from .logging_config import get_detail_logger


detail_logger = get_detail_logger()

T = TypeVar("T")


def compute_backoff_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: float = 0.0,
) -> float:
    """Return the delay before retry number ``attempt`` (1-based).

    Exponential growth from ``initial_delay`` plus uniform jitter in
    ``[0, jitter]``, capped at ``max_delay``.
    """
    delay = initial_delay * (exponential_base ** (attempt - 1))
    if jitter > 0:
        delay += random.uniform(0, jitter)
    return min(delay, max_delay)


def async_retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: float = 0.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator for retrying async functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Maximum random seconds added to each delay
        exceptions: Tuple of exception types to catch and retry
        retry_if: Optional predicate; a caught exception is re-raised
            immediately when it returns False

    Returns:
        Decorated async function

    Example:
        >>> @async_retry_with_backoff(max_retries=3, jitter=0.5)
        ... async def fetch_fixtures():
        ...     return await client.get_json("fixtures/")
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0

            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        detail_logger.debug(
                            f"{func.__name__} failed with non-retryable error: {e}"
                        )
                        raise

                    if attempt == max_retries:
                        detail_logger.debug(
                            f"{func.__name__} failed after {max_retries} retries: {e}"
                        )
                        raise

                    attempt += 1
                    delay = compute_backoff_delay(
                        attempt, initial_delay, max_delay, exponential_base, jitter
                    )
                    detail_logger.debug(
                        f"{func.__name__} failed (attempt {attempt}/{max_retries}): {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
