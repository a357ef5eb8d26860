"""Notion property codec for trade pages.

Two directions:

- :func:`to_properties` renders a :class:`TradeRecord` as the Notion
  ``properties`` payload used for create and update calls.
- :func:`remote_fields` decodes a fetched page into the same canonical
  ``{field: value}`` shape that :func:`local_fields` produces for a local
  record, so the two can be diffed field by field.

A canonical value of ``None`` means "absent on this side".
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from journal_sync.core.config import PropertyNames
from journal_sync.core.models import RemoteRecord
from journal_sync.trades.metadata import MetadataV1, MetadataV2
from journal_sync.trades.record import TradeRecord, iso_utc, quantize_pl

# Metadata fields rendered as select options
SELECT_FIELDS = (
    "rank",
    "setup",
    "close_trigger",
    "sector",
    "cap_size",
    "order_type",
    "entry_timeslot",
    "close_timeslot",
)
NUMBER_FIELDS = ("initial_risk_reward_ratio", "best_risk_reward_ratio", "size")
TEXT_FIELDS = ("close_time_comment",)

_LABEL_OVERRIDES = {
    "fomo": "FOMO",
    "initial_risk_reward_ratio": "Initial R:R",
    "best_risk_reward_ratio": "Best R:R",
    "better_risk_reward_ratio": "Better R:R",
    "adjusted_risk_reward": "Adjusted R:R",
}


def label(field: str) -> str:
    """Notion property name for a metadata field."""
    return _LABEL_OVERRIDES.get(field) or field.replace("_", " ").title()


def flag_fields(version: int | None) -> tuple[str, ...]:
    model = MetadataV1 if version == 1 else MetadataV2
    return model.flag_fields()


# ---------------------------------------------------------------------------
# Primitive encoders / decoders
# ---------------------------------------------------------------------------

def _title(text: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": text}}]}


def _rich_text(text: str) -> dict[str, Any]:
    return {"rich_text": [{"text": {"content": text}}]}


def _select(name: str) -> dict[str, Any]:
    return {"select": {"name": name}}


def _number(value: Decimal | int | float) -> dict[str, Any]:
    return {"number": float(value) if isinstance(value, Decimal) else value}


def _plain_text(parts: Any) -> str | None:
    if not isinstance(parts, list):
        return None
    chunks = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        text = part.get("plain_text")
        if text is None:
            text = (part.get("text") or {}).get("content")
        if text:
            chunks.append(text)
    return "".join(chunks) if chunks else None


def decode_value(prop: Any) -> Any:
    """Decode one Notion property value to a plain Python value."""
    if not isinstance(prop, dict):
        return None
    kind = prop.get("type")
    if kind is None:
        kind = next(
            (k for k in ("title", "rich_text", "select", "number", "checkbox", "date", "relation") if k in prop),
            None,
        )
    if kind in ("title", "rich_text"):
        return _plain_text(prop.get(kind))
    if kind == "select":
        sel = prop.get("select")
        return sel.get("name") if isinstance(sel, dict) else None
    if kind == "number":
        return prop.get("number")
    if kind == "checkbox":
        value = prop.get("checkbox")
        return bool(value) if value is not None else None
    if kind == "date":
        date = prop.get("date")
        return date.get("start") if isinstance(date, dict) else None
    if kind == "relation":
        return [r.get("id") for r in prop.get("relation") or [] if isinstance(r, dict)]
    return None


def page_title(remote: RemoteRecord) -> str | None:
    """Plain text of the page's title property, whatever its name."""
    for prop in remote.properties.values():
        if isinstance(prop, dict) and (prop.get("type") == "title" or "title" in prop):
            return _plain_text(prop.get("title"))
    return None


def title_filter(title: str, names: PropertyNames | None = None) -> dict[str, Any]:
    """Query filter matching one page by exact title."""
    names = names or PropertyNames()
    return {"property": names.title, "title": {"equals": title}}


# ---------------------------------------------------------------------------
# Record → properties
# ---------------------------------------------------------------------------

def to_properties(
    record: TradeRecord, names: PropertyNames | None = None
) -> dict[str, Any]:
    """Full property payload for *record*. Relations are added by the caller."""
    names = names or PropertyNames()
    props: dict[str, Any] = {}

    key = record.title_key
    if key is not None:
        props[names.title] = _title(key)
    if record.datetime is not None:
        props[names.datetime] = {"date": {"start": iso_utc(record.datetime)}}
    if record.ticker:
        props[names.symbol] = _rich_text(record.ticker)
    props[names.side] = _select(record.aggregated_side.value)
    props[names.result] = _select(record.result.value)
    props[names.realized_pl] = _number(quantize_pl(record.realized_pl))
    if record.duration is not None:
        props[names.duration] = _number(record.duration)

    meta = record.metadata
    if meta is None:
        return props

    for field in SELECT_FIELDS:
        value = getattr(meta, field, None)
        if value:
            props[label(field)] = _select(value)
    for field in NUMBER_FIELDS:
        value = getattr(meta, field, None)
        if value is not None:
            props[label(field)] = _number(value)
    for field in TEXT_FIELDS:
        value = getattr(meta, field, None)
        if value is not None:
            props[label(field)] = _rich_text(value)
    for field in type(meta).flag_fields():
        props[label(field)] = {"checkbox": bool(getattr(meta, field))}
    return props


# ---------------------------------------------------------------------------
# Canonical field views (used by the diff engine)
# ---------------------------------------------------------------------------

def local_fields(record: TradeRecord) -> dict[str, Any]:
    """Canonical comparable values of a local record."""
    fields: dict[str, Any] = {
        "ticker": record.ticker,
        "side": record.aggregated_side.value,
        "result": record.result.value,
        "realized_pl": quantize_pl(record.realized_pl),
        "duration": record.duration,
    }
    meta = record.metadata
    if meta is None:
        return fields
    for field in SELECT_FIELDS + NUMBER_FIELDS + TEXT_FIELDS:
        if field in type(meta).model_fields:
            fields[field] = getattr(meta, field)
    for field in type(meta).flag_fields():
        fields[field] = getattr(meta, field)
    return fields


def remote_fields(
    remote: RemoteRecord,
    names: PropertyNames | None = None,
    *,
    version: int | None = None,
) -> dict[str, Any]:
    """Canonical comparable values of a fetched page.

    Properties missing from the page decode to ``None``.
    """
    names = names or PropertyNames()
    props = remote.properties

    def get(prop_name: str) -> Any:
        return decode_value(props.get(prop_name))

    ticker = get(names.symbol)
    if ticker is None:
        title = page_title(remote)
        if title and "@" in title:
            ticker = title.split("@", 1)[0]

    pl = get(names.realized_pl)
    duration = get(names.duration)
    fields: dict[str, Any] = {
        "ticker": ticker,
        "side": get(names.side),
        "result": get(names.result),
        "realized_pl": quantize_pl(pl) if pl is not None else None,
        "duration": int(duration) if duration is not None else None,
    }
    for field in SELECT_FIELDS + TEXT_FIELDS:
        fields[field] = get(label(field))
    for field in NUMBER_FIELDS:
        value = get(label(field))
        fields[field] = Decimal(str(value)) if value is not None else None
    for field in flag_fields(version):
        fields[field] = get(label(field))
    return fields
