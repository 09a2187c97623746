import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    base_delay: float = 2.0
    multiplier: float = 1.5
    jitter: float = 1.0

    def delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Seconds to wait after failed attempt `attempt` (0-indexed)."""
        uniform = (rng or random).uniform
        jitter = uniform(0, self.jitter) if self.jitter > 0 else 0.0
        return self.base_delay * (self.multiplier**attempt) + jitter


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    policy: BackoffPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    description: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> T:
    """
    Run `operation` up to `max_retries` times, sleeping `policy.delay(k)`
    after failed attempt k. The last error is re-raised once every attempt
    has failed; errors outside `retry_on` propagate immediately.
    """
    if max_retries <= 0:
        raise ValueError("max_retries must be > 0")
    for attempt in range(max_retries):
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= max_retries - 1:
                logger.warning(
                    "%s failed after %d attempt(s): %s", description, max_retries, exc
                )
                raise
            wait_for = policy.delay(attempt, rng)
            logger.info(
                "%s failed (attempt %d/%d): %s. Retrying in %.2fs",
                description,
                attempt + 1,
                max_retries,
                exc,
                wait_for,
            )
            await sleep(wait_for)
    raise AssertionError("unreachable")
