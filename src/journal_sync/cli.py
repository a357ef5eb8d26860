"""CLI entry point for the journal sync tools."""

from __future__ import annotations

import click

from .core.enums import ConnStatus, JobKind, Outcome
from .reconciliation.job import ReconciliationJob


def parse_selection(text: str | None, count: int) -> list[int]:
    """Parse ``"0,3,5-8"`` into row indices. ``None`` selects every row."""
    if not text:
        return list(range(count))
    indices: set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                lo, hi = (int(x) for x in part.split("-", 1))
                indices.update(range(lo, hi + 1))
            else:
                indices.add(int(part))
        except ValueError:
            raise click.BadParameter(f"invalid row selection: {part!r}", param_hint="--select")
    return sorted(i for i in indices if 0 <= i < count)


def _print_progress(job: ReconciliationJob) -> None:
    from .reconciliation.report import progress_line

    click.echo(progress_line(job))


async def _session(config: str, trades_path: str | None, select: str | None, kinds: list[JobKind]) -> int:
    from .core.config import load_settings
    from .core.errors import JournalSyncError
    from .notion.client import NotionClient
    from .observability.logger import setup_logging
    from .reconciliation.manager import ReconciliationManager
    from .trades.loader import load_trades

    settings = load_settings(config)
    setup_logging(settings.observability.log_level, settings.observability.log_format)

    try:
        trades = load_trades(trades_path or settings.trades_path)
        client = NotionClient.from_config(settings.notion)
    except JournalSyncError as exc:
        click.echo(f"Error: {exc}", err=True)
        return 2

    async with client:
        mgr = ReconciliationManager(client, trades, settings)
        mgr.select(parse_selection(select, len(trades)))
        click.echo(f"Loaded {len(trades)} trades, {len(mgr.selected)} selected")
        if settings.reconciliation.auto_check and JobKind.CHECK not in kinds:
            kinds = [JobKind.CHECK, *kinds]

        exit_code = 0
        for kind in kinds:
            if kind is JobKind.CHECK:
                job = await mgr.start_check()
            elif kind is JobKind.INSERT:
                job = await mgr.start_insert()
            else:
                job = await mgr.start_update()
            await mgr.run(kind, on_progress=_print_progress)
            for message in job.messages:
                click.echo(f"  {message}")
            if kind is JobKind.CHECK and mgr.scheduler(kind).load_error:
                return 1
            if Outcome.ERROR in job.results.values():
                exit_code = 1
        return exit_code


@click.group()
def main() -> None:
    """Journal sync: reconcile local trades with the Notion journal."""


@main.command()
@click.option("--config", default="configs/journal_sync.toml", help="Config file path")
def connection(config: str) -> None:
    """Validate the token and the trades data source."""
    import asyncio

    from .core.config import load_settings
    from .core.errors import JournalSyncError
    from .notion.client import NotionClient
    from .observability.logger import setup_logging
    from .reconciliation.manager import ReconciliationManager

    settings = load_settings(config)
    setup_logging(settings.observability.log_level, settings.observability.log_format)

    async def _probe() -> bool:
        async with NotionClient.from_config(settings.notion) as client:
            mgr = ReconciliationManager(client, [], settings)
            status = await mgr.check_connection()
        click.echo(f"Connection: {status.status.value}")
        if status.message:
            click.echo(f"  {status.message}")
        return status.status is ConnStatus.OK

    try:
        ok = asyncio.run(_probe())
    except JournalSyncError as exc:
        raise click.ClickException(str(exc))
    if not ok:
        raise SystemExit(1)


@main.command()
@click.option("--config", default="configs/journal_sync.toml", help="Config file path")
@click.option("--trades", "trades_path", default=None, help="Trades JSON export")
@click.option("--select", default=None, help="Rows to act on, e.g. 0,3,5-8 (default: all)")
def check(config: str, trades_path: str | None, select: str | None) -> None:
    """Classify trades as existing or missing in Notion."""
    import asyncio

    raise SystemExit(asyncio.run(_session(config, trades_path, select, [JobKind.CHECK])))


@main.command()
@click.option("--config", default="configs/journal_sync.toml", help="Config file path")
@click.option("--trades", "trades_path", default=None, help="Trades JSON export")
@click.option("--select", default=None, help="Rows to act on, e.g. 0,3,5-8 (default: all)")
def insert(config: str, trades_path: str | None, select: str | None) -> None:
    """Create pages for missing trades (after a Check when auto_check is on)."""
    import asyncio

    raise SystemExit(
        asyncio.run(_session(config, trades_path, select, [JobKind.INSERT]))
    )


@main.command()
@click.option("--config", default="configs/journal_sync.toml", help="Config file path")
@click.option("--trades", "trades_path", default=None, help="Trades JSON export")
@click.option("--select", default=None, help="Rows to act on, e.g. 0,3,5-8 (default: all)")
def update(config: str, trades_path: str | None, select: str | None) -> None:
    """Push local values to pages that drifted (after a Check when auto_check is on)."""
    import asyncio

    raise SystemExit(
        asyncio.run(_session(config, trades_path, select, [JobKind.UPDATE]))
    )


if __name__ == "__main__":
    main()
