"""
Retry utilities with exponential backoff for Shopify calls.

Nothing in the snapshot pipeline retries on its own. Callers that want
resilience opt in by decorating their own coroutine:

    @retry_async(max_attempts=3)
    async def load_orders(client):
        return await client.fetch_all("orders.json", {"status": "any"})
"""
import asyncio
import functools
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import httpx

from app.connectors.errors import TransportError, UpstreamError
from app.utils.logger import log

# 429 = Shopify rate limit; 5xx = transient upstream trouble
RETRYABLE_STATUS_CODES: Tuple[int, ...] = (429, 500, 502, 503, 504)


@dataclass
class RetryStats:
    """Tracks retry statistics for a single operation."""
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    success: bool = False

    def record_attempt(self, error: Optional[Exception] = None, delay: float = 0.0):
        """Record a retry attempt."""
        self.attempts += 1
        self.total_delay_seconds += delay
        if error:
            error_str = f"{type(error).__name__}: {str(error)}"
            self.last_error = error_str
            self.errors.append(error_str)

    def mark_success(self):
        self.success = True

    def to_dict(self) -> dict:
        return {
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 2),
            "success": self.success,
            "last_error": self.last_error,
            "errors": self.errors[:5]  # Cap at 5 errors
        }


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Calculate delay for exponential backoff.

    Args:
        attempt: Current attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential_base: Base for exponential calculation
        jitter: Add 0-25% randomness to prevent thundering herd

    Returns:
        Delay in seconds
    """
    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)

    if jitter:
        delay += delay * random.uniform(0, 0.25)

    return delay


def is_retryable_error(
    error: Exception,
    retryable_status_codes: Tuple[int, ...] = RETRYABLE_STATUS_CODES
) -> bool:
    """
    Check if an error is worth retrying.

    Transport failures (timeouts, refused/reset connections) and rate-limit or
    5xx upstream responses are; auth, parse and 4xx errors are not.
    """
    if isinstance(error, UpstreamError):
        return error.status_code in retryable_status_codes
    return isinstance(error, (TransportError, httpx.TransportError, ConnectionError, TimeoutError))


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None
):
    """
    Async decorator for retrying operations with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Initial delay between retries
        max_delay: Maximum delay cap
        exponential_base: Base for exponential backoff
        on_retry: Callback called on each retry (attempt, error, delay)
    """
    def decorator(func: Callable):
        # Mutable container to hold last call's stats (accessible from get_retry_stats)
        last_stats = [None]

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            stats = RetryStats()
            last_stats[0] = stats

            for attempt in range(1, max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                    stats.record_attempt()
                    stats.mark_success()

                    if attempt > 1:
                        log.info(
                            f"{func.__name__} succeeded on attempt {attempt} "
                            f"after {stats.total_delay_seconds:.1f}s total delay"
                        )

                    return result

                except Exception as e:
                    if attempt >= max_attempts or not is_retryable_error(e):
                        stats.record_attempt(error=e)
                        log.error(f"{func.__name__} failed after {attempt} attempts: {e}")
                        raise

                    delay = calculate_backoff(
                        attempt,
                        base_delay=base_delay,
                        max_delay=max_delay,
                        exponential_base=exponential_base
                    )

                    stats.record_attempt(error=e, delay=delay)

                    log.warning(
                        f"{func.__name__} attempt {attempt} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    if on_retry:
                        on_retry(attempt, e, delay)

                    await asyncio.sleep(delay)

            raise RuntimeError("Retry exhausted")

        # Attach stats getter for testing/monitoring (returns stats from last call)
        wrapper.get_retry_stats = lambda: last_stats[0]
        return wrapper

    return decorator
