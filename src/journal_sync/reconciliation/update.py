"""Update: push local values to remote pages that have drifted.

The full local property set is sent, not a field-level patch.  The page
is then re-fetched and re-diffed to confirm convergence.  Trades whose
remote id is not known in this session are skipped silently; run a Check
first to learn them.
"""

from __future__ import annotations

import logging

from journal_sync.core.enums import JobKind, Outcome, RowStatus
from journal_sync.core.errors import RecordNotFoundError, RemoteJournalError
from journal_sync.notion.properties import to_properties
from journal_sync.trades.record import TradeRecord

from .diff import diff_record, format_diff
from .job import ReconciliationJob
from .report import tally
from .scheduler import ReconciliationScheduler
from .session import StepResult

logger = logging.getLogger(__name__)


class UpdateScheduler(ReconciliationScheduler):
    kind = JobKind.UPDATE

    async def _process(
        self, record: TradeRecord, idx: int, job: ReconciliationJob
    ) -> StepResult:
        key = record.title_key
        remote_id = self._session.remote_id(key)
        if remote_id is None:
            logger.debug("No known remote id for row %d, skipping", idx)
            return StepResult(outcome=Outcome.SKIPPED)

        try:
            updated = await self._client.update_record(
                remote_id, to_properties(record, self._names)
            )
        except RecordNotFoundError as exc:
            # Deleted remotely, terminal
            logger.error("Cannot update %s: %s", key, exc)
            return StepResult(
                outcome=Outcome.ERROR,
                status=RowStatus.ERROR,
                message=f"{key or idx}: {exc}",
                delay_ms=self._spacing_ms(),
            )
        except RemoteJournalError as exc:
            return self._retry_or_fail(job, idx, key or str(idx), exc)

        try:
            remote = await self._client.retrieve_record(remote_id)
        except RemoteJournalError as exc:
            logger.warning("Re-fetch of %s failed, diffing update response: %s", key, exc)
            remote = updated

        diff = diff_record(record, remote, self._names)
        if diff:
            logger.warning("%s still differs after update: %s", key, format_diff(diff))
        return StepResult(
            outcome=Outcome.UPDATED,
            status=RowStatus.EXISTS,
            set_diff=True,
            diff=diff,
            delay_ms=self._spacing_ms(),
        )

    def summary(self, job: ReconciliationJob) -> str:
        counts = tally(job.results)
        return (
            f"Processed {job.processed}/{job.total}"
            f" · Updated: {counts.get(Outcome.UPDATED, 0)}"
            f" · Skipped: {counts.get(Outcome.SKIPPED, 0)}"
            f" · Errors: {counts.get(Outcome.ERROR, 0)}"
            f" · Retrying: {counts.get(Outcome.RETRYING, 0)}"
            f" · Remaining: {job.remaining}"
        )
