"""Minimal async Notion API client.

Implements :class:`~journal_sync.core.interfaces.IRemoteJournal` over
``httpx``.  Authentication is a bearer integration token plus the
``Notion-Version`` header.

Error mapping:

- network / timeout failures → :class:`TransportError`
- HTTP 404 → :class:`RecordNotFoundError`
- any other non-2xx → :class:`RemoteHTTPError`

Usage::

    async with NotionClient.from_config(settings.notion) as client:
        pages = await client.query_by_filter(data_source_id)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from journal_sync.core.config import NotionConfig
from journal_sync.core.errors import (
    MissingTokenError,
    RecordNotFoundError,
    RemoteHTTPError,
    TransportError,
    UnexpectedResponseError,
)
from journal_sync.core.models import RemoteRecord

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.notion.com/v1"
DEFAULT_VERSION = "2025-09-03"


class NotionClient:
    """Async client for the Notion pages / data sources API.

    Parameters
    ----------
    token:
        Internal integration token.
    version:
        Value of the ``Notion-Version`` header.
    base_url:
        API root, overridable for tests.
    timeout:
        HTTP request timeout in seconds.
    page_size:
        Page size for data source queries (Notion caps this at 100).
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        token: str,
        *,
        version: str = DEFAULT_VERSION,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        page_size: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise MissingTokenError("Notion API token is not set")
        self._token = token
        self._version = version
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._page_size = page_size
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: NotionConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> NotionClient:
        token = config.token
        if not token:
            raise MissingTokenError(
                f"Notion API token missing: set the {config.token_env} "
                "environment variable"
            )
        return cls(
            token,
            version=config.version,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            page_size=config.page_size,
            transport=transport,
        )

    # -- Lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        """Create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Notion-Version": self._version,
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> NotionClient:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Raw request ---------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform one request and return the decoded JSON body."""
        if self._client is None:
            await self.open()
        assert self._client is not None

        try:
            resp = await self._client.request(method, path, json=body)
        except httpx.TransportError as exc:
            logger.warning("Notion %s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path}: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text}

        if resp.status_code == 404:
            raise RecordNotFoundError(f"{method} {path}: not found")
        if not 200 <= resp.status_code < 300:
            logger.warning(
                "Notion %s %s returned HTTP %d", method, path, resp.status_code
            )
            raise RemoteHTTPError(resp.status_code, data)
        if not isinstance(data, dict):
            raise UnexpectedResponseError(f"{method} {path}: {data!r}")
        return data

    # -- Data sources --------------------------------------------------------

    async def query_database(
        self, data_source_id: str, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Query one page of a data source."""
        return await self.request(
            "POST", f"/data_sources/{data_source_id}/query", body or {}
        )

    async def query_by_filter(
        self,
        collection_id: str,
        filter: dict[str, Any] | None = None,
    ) -> list[RemoteRecord]:
        """Query a data source, following cursors until exhausted."""
        records: list[RemoteRecord] = []
        cursor: str | None = None

        while True:
            body: dict[str, Any] = {"page_size": self._page_size}
            if filter:
                body["filter"] = filter
            if cursor:
                body["start_cursor"] = cursor

            data = await self.query_database(collection_id, body)
            results = data.get("results")
            if not isinstance(results, list):
                raise UnexpectedResponseError(
                    f"query {collection_id}: missing results"
                )
            records.extend(RemoteRecord.from_page(page) for page in results)

            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break

        logger.debug("Queried %s: %d records", collection_id, len(records))
        return records

    async def retrieve_data_source(self, data_source_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/data_sources/{data_source_id}")

    # -- Pages ---------------------------------------------------------------

    async def create_page(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", "/pages", payload)

    async def create_record(
        self,
        collection_id: str,
        relation_ids: dict[str, str],
        properties: dict[str, Any],
    ) -> RemoteRecord:
        """Create a page in *collection_id* linked to the given relation pages.

        ``relation_ids`` maps relation property name to the target page id.
        """
        props = dict(properties)
        for prop, page_id in relation_ids.items():
            props[prop] = {"relation": [{"id": page_id}]}
        payload = {
            "parent": {"type": "data_source_id", "data_source_id": collection_id},
            "properties": props,
        }
        page = await self.create_page(payload)
        return RemoteRecord.from_page(page)

    async def retrieve_record(self, record_id: str) -> RemoteRecord:
        page = await self.request("GET", f"/pages/{record_id}")
        return RemoteRecord.from_page(page)

    async def update_record(
        self, record_id: str, properties: dict[str, Any]
    ) -> RemoteRecord:
        page = await self.request(
            "PATCH", f"/pages/{record_id}", {"properties": properties}
        )
        return RemoteRecord.from_page(page)

    # -- Misc ----------------------------------------------------------------

    async def me(self) -> dict[str, Any]:
        """Fetch the integration user. Handy to validate the token."""
        return await self.request("GET", "/users/me")
