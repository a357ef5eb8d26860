"""Progress and summary formatting for reconciliation jobs.

Pure reducers: plain data in, strings out.
"""

from __future__ import annotations

from collections import Counter
from typing import Mapping

from journal_sync.core.enums import Outcome

from .job import ReconciliationJob

# Fixed display order of the summary
_REPORT_FIELDS = (
    (Outcome.CREATED, "Created"),
    (Outcome.SKIPPED_EXISTS, "Skipped (exists)"),
    (Outcome.ERROR, "Errors"),
    (Outcome.RETRYING, "Retrying"),
)


def tally(results: Mapping[int, Outcome]) -> Counter[Outcome]:
    return Counter(results.values())


def build_report(
    results: Mapping[int, Outcome],
    total: int,
    processed: int,
    remaining: int,
) -> str:
    """Summary line: created / skipped / errors / retrying / remaining."""
    counts = tally(results)
    parts = [f"{label}: {counts.get(outcome, 0)}" for outcome, label in _REPORT_FIELDS]
    parts.append(f"Remaining: {remaining}")
    return f"Processed {processed}/{total} · " + " · ".join(parts)


def format_duration(ms: int | None) -> str:
    """``M:SS.mmm``, or ``H:MM:SS.mmm`` once past an hour."""
    if not isinstance(ms, int) or ms < 0:
        return "0:00.000"
    hours, rem = divmod(ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    seconds, millis = divmod(rem, 1_000)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}.{millis:03d}"
    return f"{minutes}:{seconds:02d}.{millis:03d}"


def progress_line(job: ReconciliationJob, title: str | None = None) -> str:
    """Live one-liner for a job, e.g. ``Insert: 3/10 (30.0%) - in progress``."""
    name = title or job.kind.value.capitalize()
    state = "in progress" if job.in_progress else "completed"
    line = (
        f"{name}: {job.processed}/{job.total} ({job.percent}%) - {state}"
        f" · Time: {format_duration(job.elapsed_ms)}"
    )
    if job.current is not None and job.in_progress:
        record, _ = job.current
        when = record.datetime.isoformat() if record.datetime else "?"
        line += f" · Currently: {record.ticker or '?'} @ {when}"
    return line
