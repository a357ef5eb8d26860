"""Aggregated trade records and their versioned annotation metadata."""

from journal_sync.trades.loader import dedupe, load_trades, parse_trades
from journal_sync.trades.metadata import (
    MetadataV1,
    MetadataV2,
    TradeMetadata,
    migrate_v1_to_v2,
    parse_metadata,
    update_metadata,
)
from journal_sync.trades.record import TradeRecord, iso_utc, quantize_pl, title_key

__all__ = [
    "TradeRecord",
    "title_key",
    "iso_utc",
    "quantize_pl",
    "MetadataV1",
    "MetadataV2",
    "TradeMetadata",
    "parse_metadata",
    "migrate_v1_to_v2",
    "update_metadata",
    "load_trades",
    "parse_trades",
    "dedupe",
]
