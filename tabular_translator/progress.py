import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional, Tuple

HISTORY_WINDOW = 30 * 60
STALL_CHECK_INTERVAL = 5 * 60
STALL_WINDOW = 5 * 60
RATE_WINDOW = 10 * 60

Sample = Tuple[float, int]


@dataclass(frozen=True)
class ProgressStatus:
    completed: int
    total: int
    percent: float
    remaining: int
    rate_per_minute: float
    eta_seconds: Optional[float]
    is_stalled: bool
    stalled_seconds: float
    seconds_since_last_update: float


class ProgressMonitor:
    """
    Throughput, ETA and stall detection over a trailing window of samples.

    Stalls are re-evaluated at most once per `stall_check_interval`; a raised
    flag stays up until the completed count moves again.
    """

    def __init__(
        self,
        total: int,
        starting_count: int = 0,
        min_rate_per_minute: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        history_window: float = HISTORY_WINDOW,
        stall_check_interval: float = STALL_CHECK_INTERVAL,
        stall_window: float = STALL_WINDOW,
        rate_window: float = RATE_WINDOW,
    ) -> None:
        self.total = total
        self.min_rate_per_minute = min_rate_per_minute
        self.history_window = history_window
        self.stall_check_interval = stall_check_interval
        self.stall_window = stall_window
        self.rate_window = rate_window
        self._clock = clock

        now = clock()
        self._started = now
        self._samples: Deque[Sample] = deque([(now, starting_count)])
        self._last_count = starting_count
        self._last_change = now
        self._last_update = now
        self._last_stall_check = now
        self._stalled = False
        self._stalled_since: Optional[float] = None

    @property
    def samples(self) -> Tuple[Sample, ...]:
        return tuple(self._samples)

    def observe(self, completed: int, now: Optional[float] = None) -> ProgressStatus:
        now = self._clock() if now is None else now
        since_update = now - self._last_update

        self._samples.append((now, completed))
        cutoff = now - self.history_window
        while len(self._samples) > 1 and self._samples[0][0] < cutoff:
            self._samples.popleft()

        if completed != self._last_count:
            self._last_change = now
            self._stalled = False
            self._stalled_since = None

        if now - self._last_stall_check >= self.stall_check_interval:
            self._last_stall_check = now
            stalled = self._check_for_stall(completed, now)
            if stalled and not self._stalled:
                self._stalled_since = min(now, self._last_change + self.stall_window)
            self._stalled = stalled
            if not stalled:
                self._stalled_since = None

        self._last_count = completed
        self._last_update = now

        rate = self._rate_per_minute()
        remaining = max(self.total - completed, 0)
        eta = remaining / rate * 60.0 if rate > 0 else None
        percent = 100.0 * completed / self.total if self.total else 100.0
        stalled_seconds = (
            now - self._stalled_since
            if self._stalled and self._stalled_since is not None
            else 0.0
        )
        return ProgressStatus(
            completed=completed,
            total=self.total,
            percent=percent,
            remaining=remaining,
            rate_per_minute=rate,
            eta_seconds=eta,
            is_stalled=self._stalled,
            stalled_seconds=stalled_seconds,
            seconds_since_last_update=since_update,
        )

    def _rate_per_minute(self) -> float:
        if len(self._samples) < 2:
            return 0.0
        oldest_ts, oldest_count = self._samples[0]
        newest_ts, newest_count = self._samples[-1]
        minutes = (newest_ts - oldest_ts) / 60.0
        if minutes <= 0:
            return 0.0
        return (newest_count - oldest_count) / minutes

    def _check_for_stall(self, completed: int, now: float) -> bool:
        if self.total and completed >= self.total:
            return False
        # 1. no change at all over the stall window
        if now - self._last_change >= self.stall_window:
            return True
        # 2. too slow over the rate window, once there is enough history
        if now - self._started < self.rate_window:
            return False
        window_start = now - self.rate_window
        baseline = None
        for ts, count in self._samples:
            if ts <= window_start:
                baseline = count
            else:
                if baseline is None:
                    baseline = count
                break
        if baseline is None:
            baseline = completed
        rate = (completed - baseline) / (self.rate_window / 60.0)
        return rate < self.min_rate_per_minute


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "Unknown"
    minutes = int(seconds // 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_status(status: ProgressStatus) -> str:
    message = (
        f"Progress: {status.percent:.1f}% | {status.completed}/{status.total} | "
        f"Rate: {status.rate_per_minute:.1f}/min | "
        f"ETA: {format_duration(status.eta_seconds)}"
    )
    if status.is_stalled:
        message += " | WARNING: Progress may be stalled!"
    return message
