"""Notion remote journal: HTTP client, data source registry, property codec."""

from journal_sync.notion.client import NotionClient
from journal_sync.notion.data_sources import DataSourceRegistry

__all__ = ["NotionClient", "DataSourceRegistry"]
