import asyncio
from collections import deque
from typing import Callable, Deque, Optional


class AsyncSlidingWindowLimiter:
    """Allow at most `max_requests` acquisitions in any rolling `window` seconds."""

    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be > 0")
        if window <= 0:
            raise ValueError("window must be > 0")
        self._max_requests = int(max_requests)
        self._window = float(window)
        self._clock = clock
        self._requests: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    def _evict(self, now: float) -> None:
        while self._requests and self._requests[0] <= now - self._window:
            self._requests.popleft()

    @property
    def in_window(self) -> int:
        return len(self._requests)

    async def acquire(self) -> None:
        while True:
            async with self._lock:
                now = self._now()
                self._evict(now)
                if len(self._requests) < self._max_requests:
                    self._requests.append(now)
                    return
                wait_for = self._requests[0] + self._window - now
            await asyncio.sleep(max(wait_for, 0.001))
