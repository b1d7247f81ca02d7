"""
Retry utilities for ledger calls.

Implements exponential backoff with jitter. Only the ledger client uses
this, for idempotent reads; the lifecycle manager never retries on its own.
"""

import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import structlog

from algopay.transactions.config import RetryConfig

logger = structlog.get_logger()

T = TypeVar("T")


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Backoff delay before retry number ``attempt + 1`` (attempt is zero-based)."""
    delay = min(
        config.initial_delay * (config.exponential_base**attempt),
        config.max_delay,
    )
    if config.jitter:
        delay = delay * (0.5 + random.random() * 0.5)
    return delay


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    operation_name: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Execute a function with exponential backoff retry.

    Args:
        func: Async function to execute
        config: Retry configuration
        operation_name: Name for logging
        retry_on: Exception types that are worth another attempt; anything
            else propagates immediately

    Returns:
        Function result

    Raises:
        Exception: Last exception if all retries exhausted
    """
    for attempt in range(config.max_attempts):
        try:
            return await func()
        except retry_on as e:
            attempt_num = attempt + 1

            if attempt_num >= config.max_attempts:
                logger.error(
                    "retry.exhausted",
                    operation=operation_name,
                    attempts=attempt_num,
                    error=str(e),
                )
                raise

            delay = compute_delay(config, attempt)
            logger.warning(
                "retry.attempt",
                operation=operation_name,
                attempt=attempt_num,
                max_attempts=config.max_attempts,
                delay_seconds=round(delay, 3),
                error=str(e),
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop exited without a result")
