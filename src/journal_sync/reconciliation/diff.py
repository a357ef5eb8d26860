"""Field-level drift detection between a local trade and its remote page.

Pure functions, no I/O.  A field is reported only when it is present
(not ``None``) on both sides and the values differ, so partially synced
metadata versions do not produce false positives.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from journal_sync.core.config import PropertyNames
from journal_sync.core.models import RemoteRecord
from journal_sync.notion.properties import local_fields, remote_fields
from journal_sync.trades.record import TradeRecord


@dataclass(frozen=True)
class FieldMismatch:
    expected: Any  # Local value
    actual: Any  # Remote value


FieldDiff = dict[str, FieldMismatch]


def diff_fields(expected: dict[str, Any], actual: dict[str, Any]) -> FieldDiff:
    """Compare two canonical field maps."""
    diff: FieldDiff = {}
    for field, want in expected.items():
        if field not in actual:
            continue
        got = actual[field]
        if want is None or got is None:
            continue
        if want != got:
            diff[field] = FieldMismatch(expected=want, actual=got)
    return diff


def diff_record(
    local: TradeRecord,
    remote: RemoteRecord,
    names: PropertyNames | None = None,
) -> FieldDiff:
    """Mismatched fields of *local* against the fetched *remote* page."""
    version = local.metadata.version if local.metadata is not None else local.metadata_version
    return diff_fields(
        local_fields(local),
        remote_fields(remote, names, version=version),
    )


def format_diff(diff: FieldDiff) -> str:
    """One-line human summary, e.g. ``rank: 'A Trade' → 'B Trade'``."""
    return ", ".join(
        f"{field}: {m.expected!r} → {m.actual!r}" for field, m in sorted(diff.items())
    )
