"""Check: classify each local trade as existing or missing remotely.

The existence index is loaded once when the run starts; each step is then
an in-memory lookup plus, for existing trades, one fetch of the remote
page to compute its field diff.
"""

from __future__ import annotations

import logging

from journal_sync.core.enums import JobKind, Outcome, RowStatus
from journal_sync.core.errors import IndexLoadError, RemoteJournalError
from journal_sync.trades.record import TradeRecord

from .diff import diff_record
from .index import ExistenceIndex
from .job import ReconciliationJob
from .scheduler import ReconciliationScheduler
from .session import StepResult

logger = logging.getLogger(__name__)


class CheckScheduler(ReconciliationScheduler):
    """Existence + drift check over a batch of trades.

    Parameters
    ----------
    collection_id:
        Trades data source to check against.  ``None`` aborts every run
        with a load error.
    """

    kind = JobKind.CHECK

    def __init__(self, *args, collection_id: str | None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._collection_id = collection_id
        self._index = ExistenceIndex()

    @property
    def index(self) -> ExistenceIndex:
        return self._index

    async def _prepare(self, job: ReconciliationJob) -> None:
        if not self._collection_id:
            raise IndexLoadError("missing trades data source id")
        self._index = await ExistenceIndex.load(self._client, self._collection_id)
        self._session.merge_remote_ids(self._index.as_dict())

    async def _process(
        self, record: TradeRecord, idx: int, job: ReconciliationJob
    ) -> StepResult:
        key = record.title_key
        if key is None:
            # No ticker or datetime: cannot exist remotely
            return StepResult(
                outcome=Outcome.MISSING, status=RowStatus.MISSING, missing_delta=1
            )

        remote_id = self._index.lookup(key)
        if remote_id is None:
            return StepResult(
                outcome=Outcome.MISSING, status=RowStatus.MISSING, missing_delta=1
            )

        result = StepResult(
            outcome=Outcome.EXISTS,
            status=RowStatus.EXISTS,
            exists_delta=1,
            title_key=key,
            remote_id=remote_id,
        )
        try:
            remote = await self._client.retrieve_record(remote_id)
        except RemoteJournalError as exc:
            logger.warning("Could not fetch %s for diff: %s", key, exc)
            return result

        result.set_diff = True
        result.diff = diff_record(record, remote, self._names)
        if result.diff:
            logger.debug("%s drifted: %s", key, sorted(result.diff))
        return result

    def summary(self, job: ReconciliationJob) -> str:
        return (
            f"Checked {job.processed}/{job.total} · Exists: {job.exists_count}"
            f" · Missing: {job.missing_count}"
        )
