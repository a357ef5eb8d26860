"""Insert: create remote pages for trades that are missing.

Per item:

1. Resolve the ticker and day relation pages.  A missing relation is a
   configuration problem: the item fails at once, no retry.
2. Re-check existence by title, since another process or an earlier
   partial run may have created the page meanwhile.
3. Create the page.  Retryable failures are requeued at the back of the
   queue with linear backoff until ``max_retries`` is reached.
"""

from __future__ import annotations

import logging

from journal_sync.core.enums import JobKind, Outcome, RowStatus
from journal_sync.core.errors import (
    IndexLoadError,
    MissingRelationError,
    RemoteJournalError,
)
from journal_sync.notion.properties import title_filter, to_properties
from journal_sync.trades.record import TradeRecord

from .job import ReconciliationJob
from .relations import RelationCache
from .scheduler import ReconciliationScheduler
from .session import StepResult

logger = logging.getLogger(__name__)


class InsertScheduler(ReconciliationScheduler):
    """Create-missing run with relation preconditions and bounded retry.

    Parameters
    ----------
    collection_id:
        Trades data source new pages are created in.
    relations:
        Relation cache, reloaded at the start of every run.
    """

    kind = JobKind.INSERT

    def __init__(
        self,
        *args,
        collection_id: str | None,
        relations: RelationCache,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._collection_id = collection_id
        self._relations = relations

    @property
    def relations(self) -> RelationCache:
        return self._relations

    async def _prepare(self, job: ReconciliationJob) -> None:
        if not self._collection_id:
            raise IndexLoadError("missing trades data source id")
        await self._relations.load()
        job.messages.extend(self._relations.warnings)

    async def _process(
        self, record: TradeRecord, idx: int, job: ReconciliationJob
    ) -> StepResult:
        assert self._collection_id is not None
        key = record.title_key
        if key is None:
            return self._fail(f"row {idx}: trade has no ticker or datetime")

        try:
            relation_ids = self._relations.resolve(record)
        except MissingRelationError as exc:
            logger.warning("Cannot create %s: %s", key, exc)
            return self._fail(f"{key}: {exc}")

        try:
            existing = await self._client.query_by_filter(
                self._collection_id, title_filter(key, self._names)
            )
        except RemoteJournalError as exc:
            return self._fail(f"{key}: existence re-check failed: {exc}")

        if existing:
            logger.info("%s already exists remotely, skipping", key)
            return StepResult(
                outcome=Outcome.SKIPPED_EXISTS,
                status=RowStatus.EXISTS,
                title_key=key,
                remote_id=existing[0].id,
                delay_ms=self._spacing_ms(),
            )

        try:
            created = await self._client.create_record(
                self._collection_id,
                relation_ids,
                to_properties(record, self._names),
            )
        except RemoteJournalError as exc:
            return self._retry_or_fail(job, idx, key, exc)

        logger.info("Created %s as %s", key, created.id)
        return StepResult(
            outcome=Outcome.CREATED,
            status=RowStatus.EXISTS,
            title_key=key,
            remote_id=created.id,
            delay_ms=self._spacing_ms(),
        )

    def _fail(self, message: str) -> StepResult:
        return StepResult(
            outcome=Outcome.ERROR,
            status=RowStatus.ERROR,
            message=message,
            delay_ms=self._spacing_ms(),
        )
