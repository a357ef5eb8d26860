"""Relation cache: ids of the ticker and day pages a trade page links to.

A trade page can only be created once both its ticker page and its day
page exist.  Both dimension data sources are listed once per Insert run.
If one listing fails the other is still used; the failure is kept as a
warning and every record that needs the missing dimension fails fast with
:class:`MissingRelationError` instead of being retried.
"""

from __future__ import annotations

import logging

from journal_sync.core.config import PropertyNames
from journal_sync.core.enums import Dimension
from journal_sync.core.errors import IndexLoadError, MissingRelationError
from journal_sync.core.interfaces import IRemoteJournal
from journal_sync.trades.record import TradeRecord

from .index import load_trademarks

logger = logging.getLogger(__name__)


class RelationCache:
    """Per-run cache of ``{dimension_key: remote_id}`` for tickers and days.

    Parameters
    ----------
    client:
        Remote journal client.
    tickers_data_source_id:
        Data source holding one page per ticker (title = symbol).
    dates_data_source_id:
        Data source holding one page per trading day (title = ``YYYY-MM-DD``).
    names:
        Property names, used for the relation property keys on create.
    """

    def __init__(
        self,
        client: IRemoteJournal,
        *,
        tickers_data_source_id: str | None,
        dates_data_source_id: str | None,
        names: PropertyNames | None = None,
    ) -> None:
        self._client = client
        self._tickers_ds = tickers_data_source_id
        self._dates_ds = dates_data_source_id
        self._names = names or PropertyNames()
        self.tickers: dict[str, str] = {}
        self.dates: dict[str, str] = {}
        self.warnings: list[str] = []

    async def _load_dimension(self, dimension: Dimension, data_source_id: str | None) -> dict[str, str]:
        if not data_source_id:
            raise IndexLoadError(f"No {dimension.value} data source configured")
        return await load_trademarks(self._client, data_source_id)

    async def load_ticker_ids(self) -> dict[str, str]:
        self.tickers = await self._load_dimension(Dimension.TICKER, self._tickers_ds)
        return self.tickers

    async def load_date_ids(self) -> dict[str, str]:
        self.dates = await self._load_dimension(Dimension.DATE, self._dates_ds)
        return self.dates

    async def load(self) -> RelationCache:
        """Load both dimensions, tolerating the failure of either."""
        self.tickers = {}
        self.dates = {}
        self.warnings = []
        for dimension, loader in (
            (Dimension.TICKER, self.load_ticker_ids),
            (Dimension.DATE, self.load_date_ids),
        ):
            try:
                ids = await loader()
                logger.info("Loaded %d %s relation pages", len(ids), dimension.value)
            except IndexLoadError as exc:
                msg = f"Could not load {dimension.value} pages: {exc}"
                logger.warning(msg)
                self.warnings.append(msg)
        return self

    def resolve(self, record: TradeRecord) -> dict[str, str]:
        """Relation property ids for *record*.

        Returns ``{relation_property_name: page_id}`` for both dimensions or
        raises :class:`MissingRelationError` naming what is missing.
        """
        missing: dict[str, str] = {}
        ticker_id = self.tickers.get(record.ticker or "")
        date_key = record.date_key or ""
        date_id = self.dates.get(date_key)
        if ticker_id is None:
            missing[Dimension.TICKER.value] = record.ticker or "<none>"
        if date_id is None:
            missing[Dimension.DATE.value] = date_key or "<none>"
        if missing:
            raise MissingRelationError(missing)
        return {
            self._names.ticker_relation: ticker_id,
            self._names.date_relation: date_id,
        }
