"""Reconciliation layer: keeps local trades in sync with the remote journal.

Provides the existence index, relation cache, diff engine, the three
cooperative schedulers (Check / Insert / Update) and the unified
:class:`ReconciliationManager` facade.
"""

from journal_sync.reconciliation.check import CheckScheduler
from journal_sync.reconciliation.diff import (
    FieldDiff,
    FieldMismatch,
    diff_fields,
    diff_record,
    format_diff,
)
from journal_sync.reconciliation.index import ExistenceIndex, load_trademarks
from journal_sync.reconciliation.insert import InsertScheduler
from journal_sync.reconciliation.job import QueueItem, ReconciliationJob
from journal_sync.reconciliation.manager import ReconciliationManager
from journal_sync.reconciliation.relations import RelationCache
from journal_sync.reconciliation.report import build_report, format_duration, progress_line
from journal_sync.reconciliation.scheduler import ReconciliationScheduler
from journal_sync.reconciliation.session import SessionState, StepResult
from journal_sync.reconciliation.update import UpdateScheduler

__all__ = [
    # Bulk lookups
    "ExistenceIndex",
    "load_trademarks",
    "RelationCache",
    # Diff
    "FieldDiff",
    "FieldMismatch",
    "diff_fields",
    "diff_record",
    "format_diff",
    # Jobs
    "QueueItem",
    "ReconciliationJob",
    "SessionState",
    "StepResult",
    "ReconciliationScheduler",
    "CheckScheduler",
    "InsertScheduler",
    "UpdateScheduler",
    # Reporting
    "build_report",
    "format_duration",
    "progress_line",
    # Facade
    "ReconciliationManager",
]
