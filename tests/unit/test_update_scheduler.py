"""Tests for the Update job: push local values, re-diff, skip unknown pages."""

from __future__ import annotations

import pytest

from conftest import drive, make_trade
from journal_sync.core.config import ReconciliationConfig
from journal_sync.core.enums import Outcome, RowStatus
from journal_sync.core.errors import RemoteHTTPError, TransportError
from journal_sync.reconciliation.diff import FieldMismatch
from journal_sync.reconciliation.session import SessionState, StepResult
from journal_sync.reconciliation.update import UpdateScheduler


def _seed(fake, session, record, idx=0, **overrides):
    """Remote page for *record* with drift, known to the session."""
    page_id = fake.add_trade(record, **overrides)
    session.apply(
        idx,
        StepResult(
            outcome=Outcome.EXISTS,
            status=RowStatus.EXISTS,
            title_key=record.title_key,
            remote_id=page_id,
            set_diff=True,
            diff={"side": FieldMismatch("LONG", "SHORT")},
        ),
    )
    return page_id


def _scheduler(fake, session, clock, config=None):
    return UpdateScheduler(fake, session, config=config or ReconciliationConfig(), clock=clock)


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_converges(self, fake_journal, sim_clock, trade):
        session = SessionState()
        page_id = _seed(fake_journal, session, trade, **{"Side": {"select": {"name": "SHORT"}}})
        sched = _scheduler(fake_journal, session, sim_clock)

        job = await sched.start([(trade, 0)])
        await drive(sched, sim_clock)

        assert job.results == {0: Outcome.UPDATED}
        assert fake_journal.pages[page_id]["properties"]["Side"] == {"select": {"name": "LONG"}}
        assert session.diff(0) == {}
        assert session.status(0) == RowStatus.EXISTS
        assert job.messages[-1].startswith("Processed 1/1 · Updated: 1")

    @pytest.mark.asyncio
    async def test_unknown_remote_id_skipped(self, fake_journal, sim_clock, trade):
        sched = _scheduler(fake_journal, SessionState(), sim_clock)
        job = await sched.start([(trade, 0)])
        await drive(sched)

        assert job.results == {0: Outcome.SKIPPED}
        assert job.processed == 1
        assert fake_journal.calls["update"] == 0

    @pytest.mark.asyncio
    async def test_refetch_failure_uses_update_response(self, fake_journal, sim_clock, trade):
        session = SessionState()
        page_id = _seed(fake_journal, session, trade, **{"Side": {"select": {"name": "SHORT"}}})
        fake_journal.retrieve_failures[page_id] = TransportError("timeout")
        sched = _scheduler(fake_journal, session, sim_clock)

        job = await sched.start([(trade, 0)])
        await drive(sched)

        assert job.results == {0: Outcome.UPDATED}
        assert session.diff(0) == {}

    @pytest.mark.asyncio
    async def test_rate_limited_update_requeued(self, fake_journal, sim_clock, trade):
        session = SessionState()
        _seed(fake_journal, session, trade)
        fake_journal.update_failures = [RemoteHTTPError(429, {"code": "rate_limited"})]
        sched = _scheduler(fake_journal, session, sim_clock, ReconciliationConfig(retry_backoff_ms=200))

        job = await sched.start([(trade, 0)])
        assert await drive(sched, sim_clock) == [0.2]
        assert job.results == {0: Outcome.UPDATED}
        assert job.retry_counts == {0: 1}
        assert fake_journal.calls["update"] == 2

    @pytest.mark.asyncio
    async def test_rejected_update_retried_to_bound(self, fake_journal, sim_clock, trade):
        session = SessionState()
        _seed(fake_journal, session, trade)
        fake_journal.update_failures = [RemoteHTTPError(400, {"code": "validation_error"})] * 10
        sched = _scheduler(fake_journal, session, sim_clock, ReconciliationConfig(retry_backoff_ms=100))

        job = await sched.start([(trade, 0)])
        assert await drive(sched, sim_clock) == [0.1, 0.2, 0.3]
        assert job.retry_counts == {0: 3}
        assert job.results == {0: Outcome.ERROR}
        assert session.status(0) == RowStatus.ERROR
        assert fake_journal.calls["update"] == 4

    @pytest.mark.asyncio
    async def test_deleted_page_is_error(self, fake_journal, sim_clock, trade):
        session = SessionState()
        page_id = _seed(fake_journal, session, trade)
        del fake_journal.pages[page_id]
        sched = _scheduler(fake_journal, session, sim_clock)

        job = await sched.start([(trade, 0)])
        await drive(sched)

        assert job.results == {0: Outcome.ERROR}
        assert session.status(0) == RowStatus.ERROR
        assert fake_journal.calls["update"] == 1

    @pytest.mark.asyncio
    async def test_summary_counts(self, fake_journal, sim_clock, trade):
        session = SessionState()
        _seed(fake_journal, session, trade)
        unknown = make_trade("MSFT", "2024-01-11T15:00:00Z")
        sched = _scheduler(fake_journal, session, sim_clock, ReconciliationConfig(inter_item_delay_ms=0))

        job = await sched.start([(trade, 0), (unknown, 1)])
        await drive(sched)
        assert job.messages[-1] == (
            "Processed 2/2 · Updated: 1 · Skipped: 1 · Errors: 0 · Retrying: 0 · Remaining: 0"
        )
