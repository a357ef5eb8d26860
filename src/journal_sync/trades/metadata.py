"""Versioned trade annotation metadata.

Each trade carries an optional ``metadata`` block whose schema is selected
by ``metadata_version``:

- **V1**: the first journal layout (classification, a handful of
  behavioural flags, one free-text comment).
- **V2**: adds risk/reward, sizing, order type, close timeslot and a wider
  set of analysis flags.

All fields are optional so partially annotated trades and older rows with
different field sets still validate.  Stored keys may use the legacy
``flag?`` spelling, which is normalised on load.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

RANK_VALUES = ("Not Setup", "C Trade", "B Trade", "A Trade")
CAP_SIZE_VALUES = ("Large", "Mid", "Small")

LATEST_VERSION = 2


class _MetadataBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = 0

    @model_validator(mode="before")
    @classmethod
    def _strip_question_marks(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                (k[:-1] if isinstance(k, str) and k.endswith("?") else k): v
                for k, v in data.items()
            }
        return data

    @field_validator("rank", check_fields=False)
    @classmethod
    def _check_rank(cls, v: str | None) -> str | None:
        if v is not None and v not in RANK_VALUES:
            raise ValueError(f"rank must be one of {RANK_VALUES}, got {v!r}")
        return v

    @classmethod
    def flag_fields(cls) -> tuple[str, ...]:
        """Names of the boolean annotation flags in this version."""
        return tuple(
            name
            for name, info in cls.model_fields.items()
            if info.annotation is bool
        )


class MetadataV1(_MetadataBase):
    """First journal layout."""

    version: int = 1

    notion_page_id: str | None = None

    # Status & control
    done: bool = False
    lost_data: bool = False

    # Classification
    rank: str | None = None
    setup: str | None = None
    close_trigger: str | None = None
    sector: str | None = None
    cap_size: str | None = None

    entry_timeslot: str | None = None

    # Behavioural flags
    operation_mistake: bool = False
    follow_setup: bool = False
    follow_stop_loss_management: bool = False
    revenge_trade: bool = False
    fomo: bool = False
    unnecessary_trade: bool = False

    close_time_comment: str | None = None

    @field_validator("cap_size")
    @classmethod
    def _check_cap_size(cls, v: str | None) -> str | None:
        if v is not None and v not in CAP_SIZE_VALUES:
            raise ValueError(f"cap_size must be one of {CAP_SIZE_VALUES}, got {v!r}")
        return v


class MetadataV2(_MetadataBase):
    """Extended layout with risk/reward, sizing and analysis flags."""

    version: int = 2

    notion_page_id: str | None = None

    # Status & control
    done: bool = False
    lost_data: bool = False
    trademark: str | None = None

    # Classification
    rank: str | None = None
    setup: str | None = None
    close_trigger: str | None = None
    sector: str | None = None
    cap_size: str | None = None

    # Risk / reward and sizing
    initial_risk_reward_ratio: Decimal | None = None
    best_risk_reward_ratio: Decimal | None = None
    size: Decimal | None = None
    order_type: str | None = None

    # Time analysis
    entry_timeslot: str | None = None
    close_timeslot: str | None = None

    # Analysis flags
    revenge_trade: bool = False
    fomo: bool = False
    add_size: bool = False
    adjusted_risk_reward: bool = False
    align_with_trend: bool = False
    better_risk_reward_ratio: bool = False
    big_picture: bool = False
    earning_report: bool = False
    follow_up_trial: bool = False
    good_lesson: bool = False
    hot_sector: bool = False
    momentum: bool = False
    news: bool = False
    normal_emotion: bool = False
    operation_mistake: bool = False
    overnight: bool = False
    overnight_in_purpose: bool = False
    skipped_position: bool = False

    close_time_comment: str | None = None


TradeMetadata = Union[MetadataV1, MetadataV2]

_BY_VERSION: dict[int, type[_MetadataBase]] = {1: MetadataV1, 2: MetadataV2}


def parse_metadata(version: int | None, data: Any) -> TradeMetadata | None:
    """Validate raw metadata against the schema for *version*.

    A missing version means the latest schema.  Returns ``None`` when there
    is no metadata or the version is unknown.  Already-parsed models pass
    through (migrated if the version differs).
    """
    if data is None:
        return None
    if isinstance(data, (MetadataV1, MetadataV2)):
        if version == 2 and isinstance(data, MetadataV1):
            return migrate_v1_to_v2(data)
        return data
    model = _BY_VERSION.get(version or LATEST_VERSION)
    if model is None:
        return None
    payload = dict(data)
    payload.pop("version", None)
    return model.model_validate(payload)  # type: ignore[return-value]


def migrate_v1_to_v2(meta: MetadataV1) -> MetadataV2:
    """Carry a V1 block forward to V2.

    V1-only flags (``follow_setup``, ``follow_stop_loss_management``,
    ``unnecessary_trade``) have no V2 counterpart and are dropped.
    """
    data = meta.model_dump(
        exclude={
            "version",
            "follow_setup",
            "follow_stop_loss_management",
            "unnecessary_trade",
        }
    )
    return MetadataV2.model_validate(data)


def update_metadata(meta: TradeMetadata, changes: dict[str, Any]) -> TradeMetadata:
    """Return a copy of *meta* with *changes* merged in, re-validated."""
    merged = {**meta.model_dump(exclude={"version"}), **changes}
    return type(meta).model_validate(merged)
