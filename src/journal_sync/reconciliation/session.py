"""Session-wide reconciliation state shared by the Check, Insert and Update jobs.

Holds the three maps that outlive a single job:

- ``row_statuses``: ``{local index: RowStatus}``
- ``field_diffs``: ``{local index: FieldDiff}`` (non-empty diffs only)
- ``remote_ids``: ``{title key: remote id}``, the RemoteRecordRef

Each processed item produces one :class:`StepResult` which is applied
under a lock in one go, so an observer never sees half of an item's
writes.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable

from journal_sync.core.enums import Outcome, RowStatus

from .diff import FieldDiff


@dataclass
class StepResult:
    """Everything one processed item wants to write.

    ``done`` is False only for a requeued retry, which must not advance
    the job's ``processed`` counter.
    """

    outcome: Outcome
    status: RowStatus | None = None
    done: bool = True
    requeue: bool = False
    delay_ms: int = 0

    # Diff handling: only touched when ``set_diff`` is True; an empty or
    # None diff clears the stored entry.
    set_diff: bool = False
    diff: FieldDiff | None = None

    # RemoteRecordRef addition
    title_key: str | None = None
    remote_id: str | None = None

    retry_count: int | None = None
    exists_delta: int = 0
    missing_delta: int = 0
    message: str | None = None


class SessionState:
    """Row statuses, field diffs and known remote ids for one session."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.row_statuses: dict[int, RowStatus] = {}
        self.field_diffs: dict[int, FieldDiff] = {}
        self.remote_ids: dict[str, str] = {}

    # -- Reads ---------------------------------------------------------------

    def status(self, idx: int) -> RowStatus:
        return self.row_statuses.get(idx, RowStatus.UNKNOWN)

    def diff(self, idx: int) -> FieldDiff:
        return self.field_diffs.get(idx, {})

    def remote_id(self, title_key: str | None) -> str | None:
        if title_key is None:
            return None
        return self.remote_ids.get(title_key)

    def indices_with_status(self, status: RowStatus) -> list[int]:
        return sorted(i for i, s in self.row_statuses.items() if s == status)

    def indices_with_diff(self) -> list[int]:
        return sorted(i for i, d in self.field_diffs.items() if d)

    # -- Writes --------------------------------------------------------------

    def apply(self, idx: int, result: StepResult) -> None:
        """Commit one item's writes atomically."""
        with self._lock:
            if result.status is not None:
                self.row_statuses[idx] = result.status
            if result.set_diff:
                if result.diff:
                    self.field_diffs[idx] = dict(result.diff)
                else:
                    self.field_diffs.pop(idx, None)
            if result.title_key and result.remote_id:
                self.remote_ids[result.title_key] = result.remote_id

    def mark_all(self, indices: Iterable[int], status: RowStatus) -> None:
        with self._lock:
            for idx in indices:
                self.row_statuses[idx] = status

    def merge_remote_ids(self, mapping: dict[str, str]) -> None:
        with self._lock:
            self.remote_ids.update(mapping)

    def clear_statuses(self) -> None:
        """Forget row statuses (the UI's "clear highlights")."""
        with self._lock:
            self.row_statuses.clear()
