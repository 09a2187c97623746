"""
Bounded, refilling pool of translation requests.

Workers only talk to the remote service. Everything that touches shared
state (the translation cache, the progress monitor, checkpoint saves and
failure counters) happens in the single coroutine that drives the pool.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Sequence

from .batching import Batch
from .checkpoint import CheckpointScheduler
from .config import ERROR_SENTINEL, TranslatorSettings
from .errors import BackendUnavailableError, StallError, TranslationServiceError
from .progress import ProgressMonitor, ProgressStatus
from .providers.base import AsyncTranslator
from .rate_limiters import AsyncSlidingWindowLimiter
from .retry import BackoffPolicy, retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    batch: Batch
    translations: Optional[List[str]] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.translations is not None


@dataclass
class ExecutionReport:
    batches_total: int = 0
    batches_succeeded: int = 0
    batches_failed: int = 0
    texts_translated: int = 0
    texts_failed: int = 0
    cancelled: bool = False


def _result_text(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    text = getattr(result, "text", None)
    return text if isinstance(text, str) else ""


class TranslationExecutor:
    def __init__(
        self,
        translator: AsyncTranslator,
        source_lang: str,
        target_lang: str,
        settings: TranslatorSettings,
        rate_limiter: Optional[AsyncSlidingWindowLimiter] = None,
        monitor: Optional[ProgressMonitor] = None,
        checkpoints: Optional[CheckpointScheduler] = None,
        stop_event: Optional[asyncio.Event] = None,
        on_progress: Optional[Callable[[ProgressStatus], None]] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.translator = translator
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.monitor = monitor
        self.checkpoints = checkpoints
        self.stop_event = stop_event
        self.on_progress = on_progress
        self.policy = BackoffPolicy(
            base_delay=settings.retry_base_delay,
            multiplier=settings.retry_multiplier,
            jitter=settings.retry_jitter,
        )
        self._sleep = sleep
        self._rng = rng
        self._completed = 0
        self._stall_reported = False

    async def translate_batch(self, batch: Batch) -> List[str]:
        """Translate one batch, retrying failed or timed-out attempts."""
        timeout = self.settings.request_timeout

        async def attempt() -> List[str]:
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            try:
                results = await asyncio.wait_for(
                    self.translator.translate(
                        list(batch), src=self.source_lang, dest=self.target_lang
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as exc:
                raise TranslationServiceError(
                    f"Request timed out after {timeout:.0f}s"
                ) from exc
            if results is None or len(results) != len(batch):
                received = 0 if results is None else len(results)
                raise TranslationServiceError(
                    f"Expected {len(batch)} translations, received {received}"
                )
            return [_result_text(result) for result in results]

        return await retry_with_backoff(
            attempt,
            self.settings.max_retries,
            self.policy,
            description=f"Batch of {len(batch)} text(s)",
            sleep=self._sleep,
            rng=self._rng,
        )

    async def _run_batch(self, batch: Batch) -> BatchOutcome:
        try:
            translations = await self.translate_batch(batch)
        except Exception as exc:
            return BatchOutcome(batch, error=exc)
        return BatchOutcome(batch, translations=translations)

    def _merge(
        self,
        outcome: BatchOutcome,
        cache: MutableMapping[str, str],
        report: ExecutionReport,
    ) -> None:
        if outcome.ok:
            report.batches_succeeded += 1
            for text, translated in zip(outcome.batch, outcome.translations):
                previous = cache.get(text, "")
                if translated.strip():
                    # The latest successful resolution wins.
                    cache[text] = translated
                    report.texts_translated += 1
                elif not previous:
                    cache[text] = ERROR_SENTINEL
                    report.texts_failed += 1
                if not previous and cache[text]:
                    self._completed += 1
            return

        report.batches_failed += 1
        logger.error(
            "Batch of %d text(s) failed permanently: %s",
            len(outcome.batch),
            outcome.error,
        )
        for text in outcome.batch:
            if not cache.get(text):
                cache[text] = ERROR_SENTINEL
                report.texts_failed += 1
                self._completed += 1

    def _observe(self) -> Optional[ProgressStatus]:
        if self.monitor is None:
            return None
        status = self.monitor.observe(self._completed)
        if status.is_stalled and not self._stall_reported:
            logger.warning(
                "Translation progress may be stalled: %d/%d texts done",
                status.completed,
                status.total,
            )
        self._stall_reported = status.is_stalled
        if self.on_progress is not None:
            self.on_progress(status)
        return status

    async def _abort(
        self,
        in_flight: Dict["asyncio.Task[BatchOutcome]", Batch],
        cache: MutableMapping[str, str],
        report: ExecutionReport,
        error: Exception,
    ) -> None:
        """Stop dispatching, keep whatever in-flight work completes, checkpoint, raise."""
        if in_flight:
            logger.warning(
                "%s Waiting up to %.0fs for %d batch(es) in flight",
                error,
                self.settings.request_timeout,
                len(in_flight),
            )
            done, pending = await asyncio.wait(
                in_flight, timeout=self.settings.request_timeout
            )
            for task in done:
                self._merge(task.result(), cache, report)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            in_flight.clear()
        if self.checkpoints is not None:
            self.checkpoints.save(cache)
        raise error

    async def run(
        self, batches: Sequence[Batch], cache: MutableMapping[str, str]
    ) -> ExecutionReport:
        report = ExecutionReport(batches_total=len(batches))
        self._completed = sum(1 for value in cache.values() if value)
        queue = list(reversed(batches))
        in_flight: Dict["asyncio.Task[BatchOutcome]", Batch] = {}
        consecutive_failures = 0
        limit = self.settings.max_concurrency

        try:
            while True:
                while queue and len(in_flight) < limit:
                    if self.stop_event is not None and self.stop_event.is_set():
                        if not report.cancelled:
                            logger.warning(
                                "Stop requested; %d batch(es) left undispatched, "
                                "waiting for %d in flight",
                                len(queue),
                                len(in_flight),
                            )
                        report.cancelled = True
                        break
                    batch = queue.pop()
                    task = asyncio.create_task(self._run_batch(batch))
                    in_flight[task] = batch

                if not in_flight:
                    break

                done, _ = await asyncio.wait(
                    in_flight,
                    timeout=self.settings.heartbeat_seconds,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                status = None
                for task in done:
                    in_flight.pop(task)
                    outcome = task.result()
                    self._merge(outcome, cache, report)
                    consecutive_failures = 0 if outcome.ok else consecutive_failures + 1
                    if self.checkpoints is not None:
                        self.checkpoints.record_batch()
                    status = self._observe()
                if not done:
                    status = self._observe()

                if consecutive_failures > self.settings.max_consecutive_failures:
                    await self._abort(
                        in_flight,
                        cache,
                        report,
                        BackendUnavailableError(consecutive_failures),
                    )
                if (
                    status is not None
                    and status.stalled_seconds > self.settings.max_stall_seconds
                ):
                    await self._abort(
                        in_flight, cache, report, StallError(status.stalled_seconds)
                    )
                if self.checkpoints is not None:
                    self.checkpoints.maybe_save(cache)
        finally:
            for task in in_flight:
                task.cancel()

        if self.checkpoints is not None:
            self.checkpoints.save(cache)
        logger.info(
            "Processed %d batch(es): %d succeeded, %d failed%s",
            report.batches_succeeded + report.batches_failed,
            report.batches_succeeded,
            report.batches_failed,
            " (stopped early)" if report.cancelled else "",
        )
        return report
