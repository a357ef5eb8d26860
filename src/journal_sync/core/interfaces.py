"""Protocol interfaces for the journal sync toolkit.

The reconciliation engine talks to the remote journal only through
:class:`IRemoteJournal`.  The Notion client implements it; tests use an
in-memory fake.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import RemoteRecord


@runtime_checkable
class IRemoteJournal(Protocol):
    """Minimal record API of the remote journal.

    Every method either returns its result or raises a
    :class:`~journal_sync.core.errors.RemoteJournalError`:
    ``RecordNotFoundError`` for a missing record, ``TransportError`` /
    ``RemoteHTTPError`` for failures.  An empty query result is not an
    error.
    """

    async def query_by_filter(
        self,
        collection_id: str,
        filter: dict[str, Any] | None = None,
    ) -> list[RemoteRecord]: ...

    async def create_record(
        self,
        collection_id: str,
        relation_ids: dict[str, str],
        properties: dict[str, Any],
    ) -> RemoteRecord: ...

    async def retrieve_record(self, record_id: str) -> RemoteRecord: ...

    async def update_record(
        self,
        record_id: str,
        properties: dict[str, Any],
    ) -> RemoteRecord: ...

    async def me(self) -> dict[str, Any]: ...

    async def retrieve_data_source(self, data_source_id: str) -> dict[str, Any]: ...
