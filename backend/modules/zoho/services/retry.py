# backend/modules/zoho/services/retry.py

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

import httpx


logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for retry behavior"""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 2.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter_ratio: float = 0.3,
        retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    ):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter_ratio = jitter_ratio
        self.retryable_exceptions = retryable_exceptions or (
            httpx.TransportError,
            asyncio.TimeoutError,
            ConnectionError,
        )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)"""
        delay = min(
            self.initial_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay,
        )
        return delay + random.uniform(0, delay * self.jitter_ratio)

    def is_retryable(self, error: Exception) -> bool:
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code >= 500
        return isinstance(error, self.retryable_exceptions)


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    operation: str = "request",
) -> Any:
    """Run ``func`` until it succeeds, retrying transient failures only."""
    config = config or RetryConfig()
    attempt = 1
    while True:
        try:
            return await func()
        except Exception as e:
            if attempt >= config.max_attempts or not config.is_retryable(e):
                raise
            delay = config.calculate_delay(attempt)
            logger.warning(
                f"{operation} failed (attempt {attempt}/{config.max_attempts}): {e}. "
                f"Retrying in {delay:.1f}s"
            )
            await sleep(delay)
            attempt += 1
