import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from services.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnRetry = Callable[[BaseException, int], None]
Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(base_delay: float, attempt: int) -> float:
    return base_delay * 2 ** (attempt - 1)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    retries: int = 2,
    on_retry: Optional[OnRetry] = None,
    base_delay: float = 1.0,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation``, retrying retryable failures with exponential backoff.

    Attempt ``n`` failing with a retryable error waits ``base_delay * 2 ** (n - 1)``
    seconds before attempt ``n + 1``. The last error is re-raised unchanged when
    it is not retryable or no attempts remain.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt > retries or not is_retryable(e):
                raise
            if on_retry is not None:
                on_retry(e, attempt)
            delay = backoff_delay(base_delay, attempt)
            logger.warning(f"Attempt {attempt} failed ({e}); retrying in {delay:.1f}s")
            await sleep(delay)
            attempt += 1
