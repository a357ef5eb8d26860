"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class PropertyNames(BaseModel):
    """Names of the Notion properties on a trade page."""

    title: str = "Trademark"
    datetime: str = "Datetime"
    symbol: str = "Symbol"
    ticker_relation: str = "Ticker"
    date_relation: str = "Date"
    side: str = "Side"
    result: str = "Result"
    realized_pl: str = "Realized P/L"
    duration: str = "Duration"


class NotionConfig(BaseModel):
    token_env: str = "NOTION_API_TOKEN"  # Name of env var holding the token
    version: str = "2025-09-03"
    base_url: str = "https://api.notion.com/v1"
    timeout_seconds: float = 30.0
    page_size: int = 100  # Notion max per query page

    # Data sources
    trades_data_source_id: str | None = None  # Fallback when no version matches
    trades_data_sources: dict[int, str] = Field(default_factory=dict)
    tickers_data_source_id: str | None = None
    dates_data_source_id: str | None = None

    properties: PropertyNames = Field(default_factory=PropertyNames)

    @property
    def token(self) -> str:
        return os.environ.get(self.token_env, "")


class ReconciliationConfig(BaseModel):
    max_retries: int = 3
    retry_backoff_ms: int = 1000  # Linear: backoff * (retries + 1)
    inter_item_delay_ms: int = 1000  # Rate-limit courtesy between items
    default_metadata_version: int = 2
    auto_check: bool = True


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level application settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    notion: NotionConfig = Field(default_factory=NotionConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    trades_path: str = "data/trades.json"

    model_config = {"env_prefix": "JOURNAL_SYNC_", "env_nested_delimiter": "__"}


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            with open(path, "rb") as f:
                data = tomli.load(f)

    if overrides:
        data.update(overrides)

    return Settings(**data)
