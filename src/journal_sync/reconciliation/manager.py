"""Unified ReconciliationManager facade for the reconciliation layer.

Composes the session state, relation cache and the three schedulers
(Check / Insert / Update) over one loaded list of trades, and keeps the
row selection the user is acting on.

Usage::

    async with NotionClient.from_config(settings.notion) as client:
        mgr = ReconciliationManager(client, trades, settings)
        await mgr.check_connection()
        await mgr.start_check(range(len(trades)))
        await mgr.run(JobKind.CHECK, on_progress=print_progress)
        await mgr.start_insert()
        await mgr.run(JobKind.INSERT)

For hosts with their own event loop, :meth:`spawn` runs a job as a
background task, one item per tick, so the host stays responsive.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Iterable, Sequence

from journal_sync.core.clock import IClock
from journal_sync.core.config import Settings
from journal_sync.core.enums import ConnStatus, JobKind, RowStatus
from journal_sync.core.errors import JobInProgressError, RemoteJournalError
from journal_sync.core.interfaces import IRemoteJournal
from journal_sync.core.models import ConnectionStatus
from journal_sync.notion.data_sources import DataSourceRegistry
from journal_sync.trades.record import TradeRecord

from .check import CheckScheduler
from .insert import InsertScheduler
from .job import QueueItem, ReconciliationJob
from .relations import RelationCache
from .scheduler import ProgressCallback, ReconciliationScheduler
from .session import SessionState
from .update import UpdateScheduler

logger = logging.getLogger(__name__)


class ReconciliationManager:
    """Facade over the Check / Insert / Update jobs for one session.

    Parameters
    ----------
    client:
        Remote journal client.
    trades:
        Local trades; their list positions are the row indices used
        throughout the session.
    settings:
        Application settings (defaults if omitted).
    clock:
        Optional clock shared by all schedulers.
    """

    def __init__(
        self,
        client: IRemoteJournal,
        trades: Sequence[TradeRecord],
        settings: Settings | None = None,
        *,
        clock: IClock | None = None,
    ) -> None:
        self._client = client
        self._trades = list(trades)
        self._settings = settings or Settings()
        notion = self._settings.notion
        recon = self._settings.reconciliation

        self._registry = DataSourceRegistry(notion)
        self._collection_id = self._registry.get_data_source_id(
            recon.default_metadata_version
        ) or None

        self.session = SessionState()
        self.connection = ConnectionStatus()
        self.selected: set[int] = set()

        common = dict(config=recon, clock=clock, names=notion.properties)
        self.relations = RelationCache(
            client,
            tickers_data_source_id=notion.tickers_data_source_id,
            dates_data_source_id=notion.dates_data_source_id,
            names=notion.properties,
        )
        self._schedulers: dict[JobKind, ReconciliationScheduler] = {
            JobKind.CHECK: CheckScheduler(
                client, self.session, collection_id=self._collection_id, **common
            ),
            JobKind.INSERT: InsertScheduler(
                client,
                self.session,
                collection_id=self._collection_id,
                relations=self.relations,
                **common,
            ),
            JobKind.UPDATE: UpdateScheduler(client, self.session, **common),
        }
        self._tasks: dict[JobKind, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def trades(self) -> list[TradeRecord]:
        return self._trades

    @property
    def collection_id(self) -> str | None:
        return self._collection_id

    def scheduler(self, kind: JobKind) -> ReconciliationScheduler:
        return self._schedulers[kind]

    def job(self, kind: JobKind) -> ReconciliationJob:
        return self._schedulers[kind].job

    @property
    def exists_count(self) -> int:
        return self.job(JobKind.CHECK).exists_count

    @property
    def missing_count(self) -> int:
        return self.job(JobKind.CHECK).missing_count

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def all_selected(self) -> bool:
        return bool(self._trades) and len(self.selected) == len(self._trades)

    def select(self, indices: Iterable[int]) -> None:
        self.selected = {i for i in indices if 0 <= i < len(self._trades)}

    def toggle_row(self, idx: int) -> None:
        if idx in self.selected:
            self.selected.discard(idx)
        elif 0 <= idx < len(self._trades):
            self.selected.add(idx)

    def toggle_select_all(self) -> None:
        if self.all_selected:
            self.selected = set()
        else:
            self.selected = set(range(len(self._trades)))

    def _items(self, indices: Iterable[int]) -> list[QueueItem]:
        return [(self._trades[i], i) for i in sorted(set(indices)) if 0 <= i < len(self._trades)]

    def clear_row_statuses(self) -> None:
        self.session.clear_statuses()
        check = self.job(JobKind.CHECK)
        check.exists_count = 0
        check.missing_count = 0

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def check_connection(self) -> ConnectionStatus:
        """Probe the token and the trades data source."""
        errors: list[str] = []
        try:
            await self._client.me()
        except RemoteJournalError as exc:
            errors.append(f"user: {exc}")

        if self._collection_id is None:
            if not errors:
                self.connection = ConnectionStatus(
                    status=ConnStatus.OK,
                    message="No data source configured; token valid",
                )
                return self.connection
        else:
            try:
                await self._client.retrieve_data_source(self._collection_id)
            except RemoteJournalError as exc:
                errors.append(f"db: {exc}")

        if errors:
            self.connection = ConnectionStatus(
                status=ConnStatus.ERROR, message="; ".join(errors)
            )
        else:
            self.connection = ConnectionStatus(status=ConnStatus.OK)
        logger.info("Notion connection: %s", self.connection.status.value)
        return self.connection

    # ------------------------------------------------------------------
    # Starting jobs
    # ------------------------------------------------------------------

    async def start_check(self, indices: Iterable[int] | None = None) -> ReconciliationJob:
        """Begin a Check over *indices* (default: the selection)."""
        chosen = self.selected if indices is None else indices
        scheduler = self._schedulers[JobKind.CHECK]
        job = await scheduler.start(self._items(chosen))
        if scheduler.load_error:
            self.connection = ConnectionStatus(
                status=ConnStatus.ERROR, message=scheduler.load_error
            )
        else:
            self.connection = ConnectionStatus(status=ConnStatus.OK)
        return job

    async def auto_check(self) -> ReconciliationJob:
        """Check every loaded trade (run on load when enabled)."""
        return await self.start_check(range(len(self._trades)))

    def insert_batch(self, indices: Iterable[int] | None = None) -> list[QueueItem]:
        """Explicit *indices*, else the rows the last Check marked missing.

        With no row status known yet the raw selection is used.
        """
        if indices is not None:
            return self._items(indices)
        if self.session.row_statuses:
            return self._items(self.session.indices_with_status(RowStatus.MISSING))
        return self._items(self.selected)

    async def start_insert(self, indices: Iterable[int] | None = None) -> ReconciliationJob:
        return await self._schedulers[JobKind.INSERT].start(self.insert_batch(indices))

    def update_batch(self, indices: Iterable[int] | None = None) -> list[QueueItem]:
        """Rows of the selection that currently have a non-empty diff."""
        chosen = self.selected if indices is None else set(indices)
        return self._items(i for i in chosen if self.session.diff(i))

    async def start_update(self, indices: Iterable[int] | None = None) -> ReconciliationJob:
        return await self._schedulers[JobKind.UPDATE].start(self.update_batch(indices))

    # ------------------------------------------------------------------
    # Driving jobs
    # ------------------------------------------------------------------

    async def step(self, kind: JobKind) -> float | None:
        return await self._schedulers[kind].step()

    async def run(
        self, kind: JobKind, on_progress: ProgressCallback | None = None
    ) -> ReconciliationJob:
        """Drive a started job to completion in the current task."""
        return await self._schedulers[kind].run(on_progress)

    def spawn(
        self, kind: JobKind, on_progress: ProgressCallback | None = None
    ) -> asyncio.Task:
        """Drive a started job in a background task."""
        task = self._tasks.get(kind)
        if task is not None and not task.done():
            raise JobInProgressError(f"{kind.value} job already being driven")
        task = asyncio.create_task(
            self.run(kind, on_progress), name=f"reconcile-{kind.value}"
        )
        self._tasks[kind] = task
        return task

    def cancel(self, kind: JobKind) -> None:
        self._schedulers[kind].cancel()

    async def stop(self) -> None:
        """Cancel every job and wait for background drivers to exit."""
        for kind in self._schedulers:
            self.cancel(kind)
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._tasks.clear()
        for scheduler in self._schedulers.values():
            # Cancelled jobs finish on their next step
            await scheduler.step()
        logger.info("ReconciliationManager stopped")
