"""Shared fixtures for the journal-sync test suite."""

from __future__ import annotations

import itertools
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable

import pytest

from journal_sync.core.clock import SimClock
from journal_sync.core.config import PropertyNames, ReconciliationConfig
from journal_sync.core.enums import AggregatedSide, TradeResult
from journal_sync.core.errors import RecordNotFoundError
from journal_sync.core.models import RemoteRecord
from journal_sync.notion.properties import to_properties
from journal_sync.trades.record import TradeRecord

TRADES_DS = "ds-trades"
TICKERS_DS = "ds-tickers"
DATES_DS = "ds-dates"


# ---------------------------------------------------------------------------
# In-memory remote journal
# ---------------------------------------------------------------------------

class FakeRemoteJournal:
    """In-memory stand-in for the Notion client.

    Pages live in ``collections[collection_id]``.  Failures are injected
    per call kind: ``create_failures`` / ``update_failures`` are consumed
    one per call, ``query_failures[collection_id]`` fails every listing
    of that collection.  ``on_create`` runs inside the create call, before
    it returns.
    """

    def __init__(self, names: PropertyNames | None = None) -> None:
        self.names = names or PropertyNames()
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.pages: dict[str, dict[str, Any]] = {}
        self.calls: Counter[str] = Counter()
        self.query_failures: dict[str, Exception] = {}
        self.create_failures: list[Exception] = []
        self.update_failures: list[Exception] = []
        self.retrieve_failures: dict[str, Exception] = {}
        self.me_error: Exception | None = None
        self.data_source_error: Exception | None = None
        self.on_create: Callable[[], None] | None = None
        self._ids = itertools.count(1)

    # -- Seeding -------------------------------------------------------------

    def add_page(
        self,
        collection_id: str,
        title: str,
        properties: dict[str, Any] | None = None,
        *,
        archived: bool = False,
    ) -> str:
        page_id = f"page-{next(self._ids)}"
        props = dict(properties or {})
        props.setdefault(
            self.names.title, {"type": "title", "title": [{"plain_text": title}]}
        )
        page = {"id": page_id, "properties": props, "archived": archived}
        self.collections.setdefault(collection_id, []).append(page)
        self.pages[page_id] = page
        return page_id

    def add_trade(self, record: TradeRecord, collection_id: str = TRADES_DS, **overrides: Any) -> str:
        """Add a page mirroring *record*, with property overrides applied."""
        props = to_properties(record, self.names)
        props.update(overrides)
        return self.add_page(collection_id, record.title_key or "", props)

    def titles(self, collection_id: str = TRADES_DS) -> list[str]:
        out = []
        for page in self.collections.get(collection_id, []):
            parts = page["properties"][self.names.title]["title"]
            out.append("".join(p.get("plain_text") or p.get("text", {}).get("content", "") for p in parts))
        return out

    # -- IRemoteJournal ------------------------------------------------------

    async def query_by_filter(
        self, collection_id: str, filter: dict[str, Any] | None = None
    ) -> list[RemoteRecord]:
        self.calls["query"] += 1
        if collection_id in self.query_failures:
            raise self.query_failures[collection_id]
        pages = self.collections.get(collection_id, [])
        records = [RemoteRecord.from_page(p) for p in pages]
        if filter and "title" in filter:
            wanted = filter["title"]["equals"]
            titles = self.titles(collection_id)
            records = [r for r, t in zip(records, titles) if t == wanted]
        return records

    async def create_record(
        self,
        collection_id: str,
        relation_ids: dict[str, str],
        properties: dict[str, Any],
    ) -> RemoteRecord:
        self.calls["create"] += 1
        if self.on_create is not None:
            self.on_create()
        if self.create_failures:
            raise self.create_failures.pop(0)
        props = dict(properties)
        for prop, page_id in relation_ids.items():
            props[prop] = {"relation": [{"id": page_id}]}
        page_id = f"page-{next(self._ids)}"
        page = {"id": page_id, "properties": props, "archived": False}
        self.collections.setdefault(collection_id, []).append(page)
        self.pages[page_id] = page
        return RemoteRecord.from_page(page)

    async def retrieve_record(self, record_id: str) -> RemoteRecord:
        self.calls["retrieve"] += 1
        if record_id in self.retrieve_failures:
            raise self.retrieve_failures[record_id]
        if record_id not in self.pages:
            raise RecordNotFoundError(f"GET /pages/{record_id}: not found")
        return RemoteRecord.from_page(self.pages[record_id])

    async def update_record(self, record_id: str, properties: dict[str, Any]) -> RemoteRecord:
        self.calls["update"] += 1
        if self.update_failures:
            raise self.update_failures.pop(0)
        if record_id not in self.pages:
            raise RecordNotFoundError(f"PATCH /pages/{record_id}: not found")
        page = self.pages[record_id]
        page["properties"].update(properties)
        return RemoteRecord.from_page(page)

    async def me(self) -> dict[str, Any]:
        self.calls["me"] += 1
        if self.me_error is not None:
            raise self.me_error
        return {"object": "user", "id": "bot-1", "type": "bot"}

    async def retrieve_data_source(self, data_source_id: str) -> dict[str, Any]:
        self.calls["data_source"] += 1
        if self.data_source_error is not None:
            raise self.data_source_error
        return {"object": "data_source", "id": data_source_id}


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

def make_trade(
    ticker: str | None = "AAPL",
    when: datetime | str | None = "2024-01-10T14:30:00Z",
    *,
    side: AggregatedSide = AggregatedSide.LONG,
    pl: str = "150.50",
    **kwargs: Any,
) -> TradeRecord:
    """Build a closed trade with sensible defaults."""
    realized = Decimal(pl)
    return TradeRecord(
        ticker=ticker,
        datetime=when,
        aggregated_side=side,
        realized_pl=realized,
        result=TradeResult.WIN if realized > 0 else TradeResult.LOSE,
        **kwargs,
    )


def make_trades(n: int, ticker: str = "AAPL") -> list[TradeRecord]:
    """*n* distinct trades, one per hour from 2024-01-10 14:00 UTC."""
    base = datetime(2024, 1, 10, 14, 0, tzinfo=timezone.utc)
    return [
        make_trade(ticker, base + timedelta(hours=i), pl=f"{(i % 7) * 10 - 20}.25")
        for i in range(n)
    ]


@pytest.fixture
def trade() -> TradeRecord:
    """AAPL long, 2024-01-10 14:30 UTC, +150.50."""
    return make_trade()


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    return SimClock(start=datetime(2024, 1, 10, 15, 0, tzinfo=timezone.utc))


@pytest.fixture
def fake_journal() -> FakeRemoteJournal:
    return FakeRemoteJournal()


@pytest.fixture
def recon_config() -> ReconciliationConfig:
    """Default retry policy with the real spacing values."""
    return ReconciliationConfig()


async def drive(scheduler, clock: SimClock | None = None, max_steps: int = 10_000) -> list[float]:
    """Step *scheduler* to completion, advancing *clock* by each delay."""
    delays: list[float] = []
    for _ in range(max_steps):
        delay = await scheduler.step()
        if delay is None:
            return delays
        delays.append(delay)
        if clock is not None:
            clock.advance_ms(int(delay * 1000))
    raise AssertionError("scheduler did not finish")
