"""Retry utilities with exponential backoff for background jobs."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from src.constants import JOB_MAX_ATTEMPTS, JOB_RETRY_BASE_DELAY, JOB_RETRY_MAX_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = JOB_MAX_ATTEMPTS
    base_delay: float = JOB_RETRY_BASE_DELAY  # seconds
    max_delay: float = JOB_RETRY_MAX_DELAY  # seconds
    exponential_base: float = 2.0
    non_retryable_exceptions: tuple[type[BaseException], ...] = field(default_factory=tuple)

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (1-based) failed attempt."""
        return min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)


DEFAULT_RETRY_CONFIG = RetryConfig()


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    operation_name: str = "operation",
    **kwargs: Any,
) -> T:
    """Execute an async function with retry logic and exponential backoff.

    The wrapped function performs a single attempt; this helper owns retries.

    Args:
        func: Async function to execute
        *args: Positional arguments for the function
        config: Retry configuration
        operation_name: Name of the operation for logging
        **kwargs: Keyword arguments for the function

    Returns:
        The result of the function

    Raises:
        The last exception once all attempts failed, or any non-retryable
        exception immediately
    """
    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except config.non_retryable_exceptions as e:
            logger.error(f"{operation_name}: Non-retryable error: {e}")
            raise
        except Exception as e:
            if attempt >= config.max_attempts:
                logger.error(f"{operation_name}: Failed after {config.max_attempts} attempts: {e}")
                raise
            delay = config.delay_for(attempt)
            logger.warning(
                f"{operation_name}: {type(e).__name__}, "
                f"retrying in {delay:.1f}s (attempt {attempt}/{config.max_attempts})"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{operation_name}: max_attempts must be at least 1")
