"""
Fixed-interval retry used for polling.

Only the login poll retries; HTTP calls are never retried implicitly.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 600
    delay: float = 1.0  # Seconds between attempts, constant


class RetryableError(Exception):
    """Exception that should trigger another attempt."""
    pass


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call `func` until it returns without raising RetryableError.

    Args:
        func: Coroutine function taking no arguments
        config: Attempt budget and fixed delay
        sleep: Awaitable sleep, replaceable in tests

    Raises:
        RetryableError: The last error once the attempt budget is spent
    """
    last_exception = None

    for attempt in range(config.max_attempts):
        try:
            return await func()

        except RetryableError as e:
            last_exception = e

            if attempt < config.max_attempts - 1:
                if attempt and attempt % 30 == 0:
                    logger.debug(
                        f"Still waiting: {e} (attempt {attempt + 1}/{config.max_attempts})"
                    )
                await sleep(config.delay)

    if last_exception is None:
        raise RetryableError("No attempts were made")
    raise last_exception
