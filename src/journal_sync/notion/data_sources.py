"""Registry mapping Notion trade data sources to metadata versions.

Each metadata schema version is synced to its own trades data source.
The generic ``trades_data_source_id`` is the fallback for versions with
no dedicated data source.
"""

from __future__ import annotations

from journal_sync.core.config import NotionConfig
from journal_sync.core.errors import MissingDataSourceError


class DataSourceRegistry:
    """Version ↔ data source id lookup built from :class:`NotionConfig`."""

    def __init__(self, config: NotionConfig) -> None:
        self._config = config

    def all_sources(self) -> list[tuple[str, int]]:
        """Configured ``(data_source_id, version)`` pairs, ordered by version."""
        return sorted(
            ((ds_id, version) for version, ds_id in self._config.trades_data_sources.items() if ds_id),
            key=lambda pair: pair[1],
        )

    def get_version(self, data_source_id: str) -> int | None:
        for ds_id, version in self.all_sources():
            if ds_id == data_source_id:
                return version
        return None

    def get_data_source_id(self, version: int | None) -> str | None:
        if version is not None:
            ds_id = self._config.trades_data_sources.get(version)
            if ds_id:
                return ds_id
        return self._config.trades_data_source_id

    def require(self, version: int | None) -> str:
        """Like :meth:`get_data_source_id` but raises when nothing is configured."""
        ds_id = self.get_data_source_id(version)
        if not ds_id:
            raise MissingDataSourceError(
                f"No trades data source configured for metadata version {version}"
            )
        return ds_id

    def configured(self, data_source_id: str) -> bool:
        return self.get_version(data_source_id) is not None

    def available_versions(self) -> list[int]:
        return [version for _, version in self.all_sources()]
