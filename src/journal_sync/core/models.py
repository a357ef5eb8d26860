"""Core domain models shared between the remote client and the engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import ConnStatus


class RemoteRecord(BaseModel):
    """One page in a remote journal data source."""

    id: str
    properties: dict[str, Any] = Field(default_factory=dict)
    created_time: datetime | None = None
    last_edited_time: datetime | None = None
    archived: bool = False
    url: str | None = None

    @classmethod
    def from_page(cls, page: dict[str, Any]) -> RemoteRecord:
        """Build from a raw page object, ignoring unknown keys."""
        return cls(
            id=page["id"],
            properties=page.get("properties") or {},
            created_time=page.get("created_time"),
            last_edited_time=page.get("last_edited_time"),
            archived=bool(page.get("archived") or page.get("in_trash")),
            url=page.get("url"),
        )


class ConnectionStatus(BaseModel):
    """Result of probing the remote journal connection."""

    status: ConnStatus = ConnStatus.UNKNOWN
    message: str | None = None
