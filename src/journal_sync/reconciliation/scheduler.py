"""Cooperative one-item-at-a-time scheduler shared by Check, Insert and Update.

State machine per run::

    IDLE ──start()──▶ RUNNING ──cancel()──▶ DRAINING
                         │                     │
                   queue empty           next step()
                         ▼                     ▼
                      FINISHED ◀───────────────┘

:meth:`ReconciliationScheduler.step` processes exactly one queued item and
returns the delay (seconds) before the next tick, or ``None`` once the job
is terminal.  Nothing loops synchronously: the host decides how ticks are
scheduled (``run()`` uses ``asyncio.sleep``; tests call ``step()``
directly and inspect the job in between).

Per-item work happens in :meth:`_process`, which returns a
:class:`StepResult`.  The result is committed to the job and the shared
session in one synchronous block after the item's remote call returns.
If cancel was requested while that call was in flight its result is
discarded.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from journal_sync.core.clock import IClock, WallClock
from journal_sync.core.config import PropertyNames, ReconciliationConfig
from journal_sync.core.enums import JobKind, JobState, Outcome, RowStatus
from journal_sync.core.errors import (
    IndexLoadError,
    JobInProgressError,
    RemoteJournalError,
)
from journal_sync.core.interfaces import IRemoteJournal
from journal_sync.observability.logger import set_run_id
from journal_sync.trades.record import TradeRecord

from .job import QueueItem, ReconciliationJob
from .report import build_report, format_duration
from .session import SessionState, StepResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ReconciliationJob], None]


class ReconciliationScheduler(abc.ABC):
    """Drives one :class:`ReconciliationJob` a step at a time.

    Parameters
    ----------
    client:
        Remote journal client.
    session:
        Shared row status / diff / remote id state.
    config:
        Retry and pacing settings.
    clock:
        Time source for elapsed tracking (``WallClock`` by default).
    names:
        Notion property names.
    """

    kind: JobKind

    def __init__(
        self,
        client: IRemoteJournal,
        session: SessionState,
        *,
        config: ReconciliationConfig | None = None,
        clock: IClock | None = None,
        names: PropertyNames | None = None,
    ) -> None:
        self._client = client
        self._session = session
        self._config = config or ReconciliationConfig()
        self._clock = clock or WallClock()
        self._names = names or PropertyNames()
        self._job = ReconciliationJob(kind=self.kind)
        self.load_error: str | None = None

    @property
    def job(self) -> ReconciliationJob:
        return self._job

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, batch: Sequence[QueueItem]) -> ReconciliationJob:
        """Replace the previous job with a fresh one over *batch*."""
        if self._job.in_progress:
            raise JobInProgressError(f"{self.kind.value} job already running")

        job = ReconciliationJob.for_batch(self.kind, list(batch))
        job.state = JobState.RUNNING
        job.started_at_ms = self._clock.monotonic_ms()
        self._job = job
        self.load_error = None
        set_run_id(job.run_id)
        logger.info("%s run %s started: %d items", self.kind.value, job.run_id, job.total)

        try:
            await self._prepare(job)
        except IndexLoadError as exc:
            self._abort(job, exc)
            return job

        if not job.queue:
            self._finish(job)
        return job

    def cancel(self) -> None:
        """Request cancellation. Observed by the next :meth:`step`."""
        job = self._job
        if job.in_progress and not job.cancel_requested:
            job.cancel_requested = True
            job.state = JobState.DRAINING
            logger.info("%s run %s cancel requested", self.kind.value, job.run_id)

    async def step(self) -> float | None:
        """Process one queued item. Returns next-tick delay or ``None`` when done."""
        job = self._job
        if not job.in_progress:
            return None
        if job.cancel_requested:
            self._drain(job)
            return None
        if not job.queue:
            self._finish(job)
            return None

        record, idx = job.queue[0]
        job.current = (record, idx)

        try:
            result = await self._process(record, idx, job)
        except Exception as exc:
            logger.exception("%s step failed for row %d", self.kind.value, idx)
            result = StepResult(
                outcome=Outcome.ERROR,
                status=RowStatus.ERROR,
                message=f"{record.title_key or idx}: {exc}",
            )

        if job.cancel_requested or self._job is not job:
            # Cancelled (or superseded) while the remote call was in flight
            if job.in_progress:
                self._drain(job)
            return None

        self._commit(job, record, idx, result)

        if not job.queue:
            self._finish(job)
            return None
        return result.delay_ms / 1000.0

    async def run(
        self,
        on_progress: ProgressCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> ReconciliationJob:
        """Tick until the job is terminal, yielding to the loop between items."""
        job = self._job
        while True:
            delay = await self.step()
            if on_progress is not None:
                on_progress(job)
            if delay is None:
                break
            await sleep(delay)
        return job

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def _prepare(self, job: ReconciliationJob) -> None:
        """Per-run bulk loading. Raise ``IndexLoadError`` to abort the run."""

    @abc.abstractmethod
    async def _process(
        self, record: TradeRecord, idx: int, job: ReconciliationJob
    ) -> StepResult:
        """Handle one item. Must not mutate the job or the session."""

    def summary(self, job: ReconciliationJob) -> str:
        return build_report(job.results, job.total, job.processed, job.remaining)

    # ------------------------------------------------------------------
    # Shared retry policy (Insert / Update)
    # ------------------------------------------------------------------

    def _spacing_ms(self) -> int:
        return self._config.inter_item_delay_ms

    def _retry_or_fail(
        self,
        job: ReconciliationJob,
        idx: int,
        label: str,
        exc: RemoteJournalError,
    ) -> StepResult:
        """Requeue at the back with linear backoff, or give up after max retries."""
        retries = job.retry_counts.get(idx, 0)
        if retries < self._config.max_retries:
            backoff = self._config.retry_backoff_ms * (retries + 1)
            logger.warning(
                "%s %s failed (retry %d/%d in %dms): %s",
                self.kind.value,
                label,
                retries + 1,
                self._config.max_retries,
                backoff,
                exc,
            )
            return StepResult(
                outcome=Outcome.RETRYING,
                status=RowStatus.RETRYING,
                done=False,
                requeue=True,
                retry_count=retries + 1,
                delay_ms=backoff,
            )
        logger.error(
            "%s %s failed after %d retries: %s", self.kind.value, label, retries, exc
        )
        return StepResult(
            outcome=Outcome.ERROR,
            status=RowStatus.ERROR,
            message=f"{label}: {exc}",
            delay_ms=self._spacing_ms(),
        )

    # ------------------------------------------------------------------
    # Internal transitions
    # ------------------------------------------------------------------

    def _commit(
        self, job: ReconciliationJob, record: TradeRecord, idx: int, result: StepResult
    ) -> None:
        job.queue.popleft()
        if result.requeue:
            job.queue.append((record, idx))
        if result.retry_count is not None:
            job.retry_counts[idx] = result.retry_count
        job.results[idx] = result.outcome
        if result.done:
            job.processed += 1
        job.exists_count += result.exists_delta
        job.missing_count += result.missing_delta
        if result.message:
            job.messages.append(result.message)
        job.elapsed_ms = self._clock.monotonic_ms() - (job.started_at_ms or 0)
        self._session.apply(idx, result)

    def _finish(self, job: ReconciliationJob) -> None:
        now = self._clock.monotonic_ms()
        if job.finished_at_ms is None:
            job.finished_at_ms = now
        started = job.started_at_ms if job.started_at_ms is not None else job.finished_at_ms
        job.elapsed_ms = job.finished_at_ms - started
        job.state = JobState.FINISHED
        job.current = None
        report = self.summary(job)
        job.messages.append(report)
        logger.info(
            "%s run %s finished in %s: %s",
            self.kind.value,
            job.run_id,
            format_duration(job.elapsed_ms),
            report,
        )

    def _drain(self, job: ReconciliationJob) -> None:
        job.queue.clear()
        logger.info(
            "%s run %s cancelled after %d/%d",
            self.kind.value,
            job.run_id,
            job.processed,
            job.total,
        )
        self._finish(job)

    def _abort(self, job: ReconciliationJob, exc: Exception) -> None:
        """Bulk load failed: every queued item is an error, run ends now."""
        indices = [idx for _, idx in job.queue]
        self._session.mark_all(indices, RowStatus.ERROR)
        for idx in indices:
            job.results[idx] = Outcome.ERROR
        job.queue.clear()
        self.load_error = f"Failed to fetch Notion records: {exc}"
        job.messages.append(self.load_error)
        logger.error("%s run %s aborted: %s", self.kind.value, job.run_id, exc)
        self._finish(job)
