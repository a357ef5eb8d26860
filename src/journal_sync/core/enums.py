"""Enumerations used across the journal sync toolkit."""

from enum import Enum


class AggregatedSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    NONE = "-"  # Flat / undetermined chain


class TradeResult(str, Enum):
    WIN = "WIN"
    LOSE = "LOSE"


class RowStatus(str, Enum):
    """Per-row reconciliation state, shared across job kinds in a session."""

    UNKNOWN = "unknown"
    EXISTS = "exists"
    MISSING = "missing"
    ERROR = "error"
    RETRYING = "retrying"


class Outcome(str, Enum):
    """What happened to one queued item during a job."""

    EXISTS = "exists"
    MISSING = "missing"
    CREATED = "created"
    SKIPPED_EXISTS = "skipped_exists"
    UPDATED = "updated"
    SKIPPED = "skipped"  # Update with no known remote id
    RETRYING = "retrying"
    ERROR = "error"


class JobKind(str, Enum):
    CHECK = "check"
    INSERT = "insert"
    UPDATE = "update"


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"  # Cancel requested, not yet observed by a step
    FINISHED = "finished"


class ConnStatus(str, Enum):
    UNKNOWN = "unknown"
    OK = "ok"
    ERROR = "error"


class Dimension(str, Enum):
    """Relation dimensions a remote trade page must reference."""

    TICKER = "ticker"
    DATE = "date"
