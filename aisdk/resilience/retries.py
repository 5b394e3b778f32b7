import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from ..exceptions import (
    BodyReadError,
    ConnectTimeoutError,
    HttpStatusError,
    IdleReadTimeoutError,
    NetworkError,
    ProviderError,
    RateLimitError,
    RequestTimeoutError,
    StreamClosedError,
)

logger = logging.getLogger("aisdk.retry")

T = TypeVar("T")


class RetryConfig:
    """
    Exponential backoff settings. Intervals are in seconds.
    The delay for attempt n (1-based) is min(max_interval, initial_interval * multiplier ** (n - 1)),
    unless the server supplied a retry-after hint, which always wins (still capped).
    """
    def __init__(
        self,
        max_retries: int = 3,
        initial_interval: float = 0.05,
        max_interval: float = 1.0,
        multiplier: float = 2.0,
    ):
        self.max_retries = max_retries
        self.initial_interval = initial_interval
        self.max_interval = max_interval
        self.multiplier = multiplier

    @classmethod
    def quick(cls) -> "RetryConfig":
        return cls(max_retries=3, initial_interval=0.05, max_interval=1.0)

    @classmethod
    def network(cls) -> "RetryConfig":
        return cls(max_retries=5, initial_interval=0.25, max_interval=10.0)

    @classmethod
    def api(cls) -> "RetryConfig":
        return cls(max_retries=5, initial_interval=1.0, max_interval=60.0)

    def calculate_backoff(self, attempt: int, retry_after: Optional[float] = None) -> float:
        if retry_after is not None:
            return min(retry_after, self.max_interval)
        delay = self.initial_interval * (self.multiplier ** max(attempt - 1, 0))
        return min(delay, self.max_interval)


def should_retry(exception: BaseException) -> bool:
    """Retry on I/O interruptions, timeouts, 429 and any 5xx."""
    if isinstance(exception, (RateLimitError, RequestTimeoutError)):
        return True
    if isinstance(exception, (NetworkError, ConnectTimeoutError, IdleReadTimeoutError, BodyReadError, StreamClosedError)):
        return True
    if isinstance(exception, (HttpStatusError, ProviderError)):
        status = exception.status or 0
        return status == 429 or 500 <= status < 600
    if isinstance(exception, httpx.HTTPStatusError):
        code = exception.response.status_code
        return code == 429 or 500 <= code < 600
    if isinstance(exception, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    return False


def retry_after_seconds(exception: BaseException) -> Optional[float]:
    ms = getattr(exception, "retry_after_ms", None)
    if ms is None:
        return None
    return ms / 1000.0


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, float, BaseException], Any]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run `operation` until it succeeds, a non-retryable error occurs, or
    `max_retries` is exhausted. The last error is raised unchanged.
    """
    config = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not should_retry(e):
                raise
            attempt += 1
            if attempt > config.max_retries:
                logger.warning(f"Giving up after {config.max_retries} retries: {e}")
                raise
            delay = config.calculate_backoff(attempt, retry_after_seconds(e))
            logger.info(f"Retry {attempt}/{config.max_retries} in {delay:.3f}s after: {e}")
            if on_retry is not None:
                on_retry(attempt, delay, e)
            await sleep(delay)
