"""Per-run job state for one reconciliation operation.

A :class:`ReconciliationJob` is created when a batch starts, mutated one
step at a time by its scheduler and replaced at the start of the next run
of the same kind.  The host (CLI, UI, test) owns it between ticks.
"""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass, field

from journal_sync.core.enums import JobKind, JobState, Outcome
from journal_sync.trades.record import TradeRecord

QueueItem = tuple[TradeRecord, int]  # (record, local index)


@dataclass
class ReconciliationJob:
    """Queue, progress counters and outcomes of one run."""

    kind: JobKind
    state: JobState = JobState.IDLE
    queue: deque[QueueItem] = field(default_factory=deque)
    total: int = 0
    processed: int = 0
    current: QueueItem | None = None

    started_at_ms: int | None = None
    finished_at_ms: int | None = None
    elapsed_ms: int = 0
    cancel_requested: bool = False

    retry_counts: dict[int, int] = field(default_factory=dict)
    results: dict[int, Outcome] = field(default_factory=dict)

    # Check tallies
    exists_count: int = 0
    missing_count: int = 0

    # User-facing notices (relation warnings, load failures, final report)
    messages: list[str] = field(default_factory=list)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @classmethod
    def for_batch(cls, kind: JobKind, batch: list[QueueItem]) -> ReconciliationJob:
        return cls(kind=kind, queue=deque(batch), total=len(batch))

    @property
    def in_progress(self) -> bool:
        return self.state in (JobState.RUNNING, JobState.DRAINING)

    @property
    def finished(self) -> bool:
        return self.state == JobState.FINISHED

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return round(self.processed * 100.0 / self.total, 1)
