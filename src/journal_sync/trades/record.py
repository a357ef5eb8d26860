"""Aggregated trade record, the unit the reconciliation engine syncs.

A TradeRecord is one closed position built from broker executions.  Its
identity against the remote journal is the *title key*
``TICKER@ISO-8601-datetime``, not the local row id: two records with the
same ticker and instant are the same logical trade.
"""

from __future__ import annotations

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, field_validator, model_validator

from journal_sync.core.enums import AggregatedSide, TradeResult

from .metadata import TradeMetadata, parse_metadata, update_metadata

_CENT = Decimal("0.01")


def quantize_pl(value: Decimal | float | str | None) -> Decimal | None:
    """Round a P/L value to the 2-decimal scale used for comparison."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def to_utc(value: dt.datetime) -> dt.datetime:
    """Normalise to UTC. Naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def iso_utc(value: dt.datetime) -> str:
    """ISO-8601 in UTC with a ``Z`` suffix (``2024-01-10T14:30:00Z``)."""
    value = to_utc(value)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += f".{value.microsecond:06d}"
    return text + "Z"


class TradeRecord(BaseModel):
    """A locally computed aggregated (closed) trade."""

    id: int | None = None
    datetime: dt.datetime | None = None
    ticker: str | None = None
    aggregated_side: AggregatedSide = AggregatedSide.NONE
    result: TradeResult = TradeResult.LOSE
    realized_pl: Decimal = Decimal("0")
    duration: int | None = None  # Seconds from first open to close
    metadata_version: int | None = None
    metadata: TradeMetadata | None = None

    @model_validator(mode="before")
    @classmethod
    def _dispatch_metadata(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("metadata") is not None:
            data = dict(data)
            data["metadata"] = parse_metadata(
                data.get("metadata_version"), data["metadata"]
            )
        return data

    @field_validator("datetime")
    @classmethod
    def _normalise_datetime(cls, v: dt.datetime | None) -> dt.datetime | None:
        return to_utc(v) if v is not None else None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def title_key(self) -> str | None:
        return title_key(self)

    @property
    def natural_key(self) -> tuple[str | None, dt.datetime | None, str, Decimal | None]:
        """Local dedup key: ticker, instant, side and P/L at 2 dp."""
        return (
            self.ticker,
            self.datetime,
            self.aggregated_side.value,
            quantize_pl(self.realized_pl),
        )

    @property
    def date_key(self) -> str | None:
        """Calendar day (UTC) used to find the day relation page."""
        if self.datetime is None:
            return None
        return self.datetime.date().isoformat()

    # ------------------------------------------------------------------
    # Metadata helpers
    # ------------------------------------------------------------------

    def has_metadata(self) -> bool:
        return self.metadata is not None and bool(
            self.metadata.model_dump(exclude_defaults=True, exclude={"version"})
        )

    def with_metadata(self, **changes: Any) -> TradeRecord:
        """Return a copy with metadata fields merged in."""
        if self.metadata is None:
            version = self.metadata_version or 2
            meta = parse_metadata(version, changes)
        else:
            version = self.metadata_version or self.metadata.version
            meta = update_metadata(self.metadata, changes)
        return self.model_copy(update={"metadata": meta, "metadata_version": version})

    def set_notion_page_id(self, page_id: str) -> TradeRecord:
        return self.with_metadata(notion_page_id=page_id)

    def mark_done(self) -> TradeRecord:
        return self.with_metadata(done=True)

    def mark_not_done(self) -> TradeRecord:
        return self.with_metadata(done=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_close_execution(cls, row: dict[str, Any]) -> TradeRecord:
        """Build a fallback record from a single closing execution row.

        Used when no aggregated trades exist yet.  The closing leg's side is
        the opposite of the position's side, so a ``long`` close leg means
        the position was SHORT.
        """
        realized = quantize_pl(row.get("realized_pl") or 0) or Decimal("0")
        side = row.get("side")
        return cls(
            datetime=row.get("datetime"),
            ticker=row.get("symbol") or row.get("ticker"),
            aggregated_side=(
                AggregatedSide.SHORT if side == "long" else AggregatedSide.LONG
            ),
            result=TradeResult.WIN if realized > 0 else TradeResult.LOSE,
            realized_pl=realized,
        )


def title_key(record: TradeRecord) -> str | None:
    """``TICKER@ISO-datetime`` or ``None`` when either part is missing."""
    if not record.ticker or record.datetime is None:
        return None
    return f"{record.ticker}@{iso_utc(record.datetime)}"
