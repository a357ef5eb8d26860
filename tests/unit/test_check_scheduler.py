"""Tests for the Check job: existence classification, drift and load failures."""

from __future__ import annotations

import pytest

from conftest import TRADES_DS, drive, make_trade, make_trades
from journal_sync.core.enums import JobState, Outcome, RowStatus
from journal_sync.core.errors import JobInProgressError, TransportError
from journal_sync.reconciliation.check import CheckScheduler
from journal_sync.reconciliation.session import SessionState


def _scheduler(fake, clock, config, collection_id=TRADES_DS):
    return CheckScheduler(
        fake, SessionState(), collection_id=collection_id, config=config, clock=clock
    )


def _batch(records):
    return [(r, i) for i, r in enumerate(records)]


class TestClassification:
    @pytest.mark.asyncio
    async def test_fifty_thirty_twenty(self, fake_journal, sim_clock, recon_config):
        trades = make_trades(50)
        for record in trades[:30]:
            fake_journal.add_trade(record)
        sched = _scheduler(fake_journal, sim_clock, recon_config)

        job = await sched.start(_batch(trades))
        await drive(sched, sim_clock)

        assert job.state == JobState.FINISHED
        assert job.processed == 50
        assert job.exists_count == 30
        assert job.missing_count == 20
        assert sched._session.indices_with_status(RowStatus.EXISTS) == list(range(30))
        assert sched._session.indices_with_status(RowStatus.MISSING) == list(range(30, 50))
        # One listing for the whole batch
        assert fake_journal.calls["query"] == 1
        assert job.messages[-1] == "Checked 50/50 · Exists: 30 · Missing: 20"

    @pytest.mark.asyncio
    async def test_check_steps_are_not_spaced(self, fake_journal, sim_clock, recon_config):
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        await sched.start(_batch(make_trades(3)))
        assert await drive(sched) == [0.0, 0.0]

    @pytest.mark.asyncio
    async def test_no_title_key_is_missing(self, fake_journal, sim_clock, recon_config):
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        job = await sched.start([(make_trade(ticker=None), 0), (make_trade(when=None), 1)])
        await drive(sched)

        assert job.results == {0: Outcome.MISSING, 1: Outcome.MISSING}
        assert job.missing_count == 2
        assert fake_journal.calls["retrieve"] == 0

    @pytest.mark.asyncio
    async def test_remote_ids_recorded(self, fake_journal, sim_clock, recon_config, trade):
        page_id = fake_journal.add_trade(trade)
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        await sched.start([(trade, 0)])
        await drive(sched)
        assert sched._session.remote_id(trade.title_key) == page_id

    @pytest.mark.asyncio
    async def test_archived_pages_do_not_count(self, fake_journal, sim_clock, recon_config, trade):
        fake_journal.add_page(TRADES_DS, trade.title_key, archived=True)
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        job = await sched.start([(trade, 0)])
        await drive(sched)
        assert job.results[0] == Outcome.MISSING

    @pytest.mark.asyncio
    async def test_empty_batch_finishes_at_once(self, fake_journal, sim_clock, recon_config):
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        job = await sched.start([])
        assert job.finished
        assert await sched.step() is None


class TestDrift:
    @pytest.mark.asyncio
    async def test_diff_stored_for_drifted_page(self, fake_journal, sim_clock, recon_config, trade):
        fake_journal.add_trade(trade, **{"Side": {"select": {"name": "SHORT"}}})
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        await sched.start([(trade, 0)])
        await drive(sched)

        diff = sched._session.diff(0)
        assert set(diff) == {"side"}
        assert sched._session.indices_with_diff() == [0]

    @pytest.mark.asyncio
    async def test_matching_page_clears_old_diff(self, fake_journal, sim_clock, recon_config, trade):
        page_id = fake_journal.add_trade(trade, **{"Side": {"select": {"name": "SHORT"}}})
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        await sched.start([(trade, 0)])
        await drive(sched)
        assert sched._session.diff(0)

        fake_journal.pages[page_id]["properties"]["Side"] = {"select": {"name": "LONG"}}
        await sched.start([(trade, 0)])
        await drive(sched)
        assert sched._session.diff(0) == {}

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_exists(self, fake_journal, sim_clock, recon_config, trade):
        page_id = fake_journal.add_trade(trade)
        fake_journal.retrieve_failures[page_id] = TransportError("timeout")
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        job = await sched.start([(trade, 0)])
        await drive(sched)

        assert job.results[0] == Outcome.EXISTS
        assert sched._session.status(0) == RowStatus.EXISTS
        assert sched._session.diff(0) == {}


class TestLoadFailure:
    @pytest.mark.asyncio
    async def test_listing_failure_marks_all_error(self, fake_journal, sim_clock, recon_config):
        fake_journal.query_failures[TRADES_DS] = TransportError("connection reset")
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        job = await sched.start(_batch(make_trades(4)))

        assert job.finished
        assert job.processed == 0
        assert set(job.results.values()) == {Outcome.ERROR}
        assert sched._session.indices_with_status(RowStatus.ERROR) == [0, 1, 2, 3]
        assert sched.load_error.startswith("Failed to fetch Notion records")
        assert await sched.step() is None

    @pytest.mark.asyncio
    async def test_no_collection_configured(self, fake_journal, sim_clock, recon_config):
        sched = _scheduler(fake_journal, sim_clock, recon_config, collection_id=None)
        job = await sched.start(_batch(make_trades(2)))
        assert job.finished
        assert sched.load_error is not None
        assert fake_journal.calls["query"] == 0

    @pytest.mark.asyncio
    async def test_next_run_clears_load_error(self, fake_journal, sim_clock, recon_config):
        fake_journal.query_failures[TRADES_DS] = TransportError("down")
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        await sched.start(_batch(make_trades(1)))
        assert sched.load_error

        del fake_journal.query_failures[TRADES_DS]
        await sched.start(_batch(make_trades(1)))
        assert sched.load_error is None


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_second_start_rejected_while_running(self, fake_journal, sim_clock, recon_config):
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        await sched.start(_batch(make_trades(2)))
        with pytest.raises(JobInProgressError):
            await sched.start(_batch(make_trades(2)))

    @pytest.mark.asyncio
    async def test_elapsed_tracks_clock(self, fake_journal, sim_clock, recon_config):
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        job = await sched.start(_batch(make_trades(2)))
        sim_clock.advance_ms(250)
        await sched.step()
        assert job.elapsed_ms == 250
        sim_clock.advance_ms(250)
        await sched.step()
        assert job.finished
        assert job.elapsed_ms == 500
        sim_clock.advance_ms(10_000)
        assert await sched.step() is None
        assert job.elapsed_ms == 500

    @pytest.mark.asyncio
    async def test_run_reports_progress(self, fake_journal, sim_clock, recon_config):
        sched = _scheduler(fake_journal, sim_clock, recon_config)
        await sched.start(_batch(make_trades(3)))
        seen: list[int] = []

        async def no_sleep(_):
            return None

        job = await sched.run(on_progress=lambda j: seen.append(j.processed), sleep=no_sleep)
        assert job.finished
        assert seen == [1, 2, 3]
