"""Load aggregated trades from a JSON export.

The relational trade store is owned by the dashboard; the sync tools read
a JSON array of trade rows exported from it.  Rows whose natural key has
already been seen are dropped, keeping the first occurrence.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from pydantic import TypeAdapter, ValidationError

from journal_sync.core.errors import ConfigError

from .record import TradeRecord

logger = logging.getLogger(__name__)

_ROWS = TypeAdapter(list[TradeRecord])


def dedupe(records: Iterable[TradeRecord]) -> list[TradeRecord]:
    """Drop records whose natural key repeats an earlier one."""
    seen: set[tuple] = set()
    unique: list[TradeRecord] = []
    for record in records:
        key = record.natural_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def parse_trades(rows: list[dict[str, Any]]) -> list[TradeRecord]:
    """Validate raw rows, newest first, deduplicated by natural key."""
    records = _ROWS.validate_python(rows)
    records.sort(
        key=lambda r: r.datetime.timestamp() if r.datetime else float("-inf"),
        reverse=True,
    )
    unique = dedupe(records)
    if len(unique) != len(records):
        logger.info("Dropped %d duplicate trade rows", len(records) - len(unique))
    return unique


def load_trades(path: str | Path) -> list[TradeRecord]:
    """Read and validate a JSON trade export."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Trades file not found: {p}")
    with open(p) as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ConfigError(f"Trades file must hold a JSON array: {p}")
    try:
        return parse_trades(rows)
    except ValidationError as exc:
        raise ConfigError(f"Invalid trade rows in {p}: {exc}") from exc
