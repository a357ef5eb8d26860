"""Existence index: every remote trade title mapped to its page id.

Built with a single bulk query per run so that checking N local trades
costs one listing instead of N point lookups.  Read-only once loaded.
"""

from __future__ import annotations

import logging
from typing import Iterator

from journal_sync.core.errors import IndexLoadError, RemoteJournalError
from journal_sync.core.interfaces import IRemoteJournal
from journal_sync.notion.properties import page_title

logger = logging.getLogger(__name__)


async def load_trademarks(client: IRemoteJournal, collection_id: str) -> dict[str, str]:
    """List *collection_id* and map each page title to its id.

    Raises :class:`IndexLoadError` if the listing fails.  When two pages
    share a title the first one listed wins.
    """
    try:
        records = await client.query_by_filter(collection_id)
    except RemoteJournalError as exc:
        raise IndexLoadError(f"Failed to list {collection_id}: {exc}") from exc

    index: dict[str, str] = {}
    duplicates = 0
    for record in records:
        if record.archived:
            continue
        title = page_title(record)
        if not title:
            continue
        if title in index:
            duplicates += 1
            continue
        index[title] = record.id

    if duplicates:
        logger.warning(
            "%d duplicate titles in %s, keeping first occurrence",
            duplicates,
            collection_id,
        )
    return index


class ExistenceIndex:
    """Snapshot of ``{title_key: remote_id}`` for one trades data source."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})

    @classmethod
    async def load(cls, client: IRemoteJournal, collection_id: str) -> ExistenceIndex:
        entries = await load_trademarks(client, collection_id)
        logger.info("Existence index loaded: %d records", len(entries))
        return cls(entries)

    def lookup(self, title_key: str) -> str | None:
        return self._entries.get(title_key)

    def __contains__(self, title_key: object) -> bool:
        return title_key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def as_dict(self) -> dict[str, str]:
        """Copy of the underlying mapping."""
        return dict(self._entries)
