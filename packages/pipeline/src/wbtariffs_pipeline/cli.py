"""
cli.py — Click CLI entrypoint for the WB tariffs sync job.

Usage:
    wb-tariffs serve
    wb-tariffs sync --date 2025-02-25
    wb-tariffs sync --no-publish
    wb-tariffs cleanup --days 90
    wb-tariffs migrate latest|rollback|list
    wb-tariffs status --days 7
"""

from __future__ import annotations

import asyncio
import os
import signal
from datetime import datetime

import click
import structlog

from wbtariffs_shared.config import Settings, settings
from wbtariffs_shared.time_utils import retention_cutoff, to_tariff_date, today_in
from wbtariffs_pipeline.utils.logging import configure_logging

log = structlog.get_logger(__name__)

_DATE = click.DateTime(formats=["%Y-%m-%d"])
_SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
)


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """Wildberries box tariffs → Supabase → Google Sheets."""
    configure_logging(log_level=log_level, log_format=log_format)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def _log_configuration(config: Settings) -> None:
    log.info(
        "configuration",
        app_env=config.app_env,
        supabase_url=config.supabase_url,
        wb_token_configured=bool(config.wb_api_token),
        spreadsheets=len(config.google_sheets_ids_list),
        sync_cron=config.sync_cron_schedule,
        cleanup_cron=config.cleanup_cron_schedule,
        timezone=config.scheduler_timezone,
        retention_days=config.retention_days,
    )
    if not config.wb_api_token:
        log.warning("wb_token_missing", hint="set WB_API_TOKEN; requests will be unauthorized")
    if not config.google_sheets_ids_list:
        log.warning("google_sheets_ids_missing", hint="set GOOGLE_SHEETS_IDS; publishing is skipped")


async def _serve(config: Settings) -> int:
    from wbtariffs_shared.db import reset_supabase_client
    from wbtariffs_pipeline.migrations import MigrationRunner
    from wbtariffs_pipeline.pipelines.tariff_sync import build_pipeline
    from wbtariffs_pipeline.scheduler import TariffScheduler

    _log_configuration(config)

    try:
        batch, applied = await asyncio.to_thread(MigrationRunner(config.database_url).latest)
        log.info("migrations_complete", batch=batch, applied=len(applied))
    except Exception as exc:
        log.error("startup_failed", stage="migrations", error=str(exc), exc_info=True)
        return 1

    pipeline = build_pipeline(config)

    try:
        await pipeline.full_sync(today_in(config.scheduler_timezone))
    except Exception as exc:
        log.error("initial_sync_failed", error=str(exc), exc_info=True)

    scheduler = TariffScheduler(
        pipeline,
        config.sync_cron_schedule,
        config.cleanup_cron_schedule,
        timezone=config.scheduler_timezone,
        retention_days=config.retention_days,
    )
    try:
        scheduler.start()
    except ValueError as exc:
        log.error("startup_failed", stage="scheduler", error=str(exc))
        return 1

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def _on_signal(sig: signal.Signals) -> None:
        if stop.is_set():
            log.error("forced_shutdown", signal=sig.name)
            os._exit(1)
        log.info("shutdown_requested", signal=sig.name)
        stop.set()

    for sig in _SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, _on_signal, sig)

    log.info("service_started")
    await stop.wait()

    scheduler.stop()
    reset_supabase_client()
    log.info("shutdown_complete")
    return 0


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run migrations, an initial sync, then the cron scheduler until signalled."""
    ctx.exit(asyncio.run(_serve(settings)))


# ---------------------------------------------------------------------------
# One-off commands
# ---------------------------------------------------------------------------


@main.command()
@click.option("--date", "tariff_date", type=_DATE, default=None, help="Tariff date (YYYY-MM-DD, default today)")
@click.option("--no-publish", is_flag=True, help="Store only; skip Google Sheets")
@click.pass_context
def sync(ctx: click.Context, tariff_date: datetime | None, no_publish: bool) -> None:
    """Run one fetch → store → publish cycle."""
    from wbtariffs_pipeline.pipelines.tariff_sync import build_pipeline

    pipeline = build_pipeline(settings)
    result = asyncio.run(
        pipeline.full_sync(tariff_date.date() if tariff_date else None, publish=not no_publish)
    )

    wb, sheets = result.wb_sync, result.sheets_sync
    click.echo(f"Tariff date: {result.tariff_date}")
    if wb.success:
        click.echo(f"  ✓ WB sync         {wb.tariffs_count} tariffs")
    else:
        click.echo(f"  ✗ WB sync         {wb.error}")
    mark = "✓" if sheets.success else "✗"
    click.echo(f"  {mark} Sheets sync     {sheets.spreadsheets_updated} spreadsheets updated")
    for error in sheets.errors:
        target = error.get("spreadsheet_id", "-")
        click.echo(f"      {target}: {error.get('error')}", err=True)
    click.echo(f"  Duration: {result.duration_ms} ms")

    if not wb.success:
        ctx.exit(1)


@main.command()
@click.option("--days", type=click.IntRange(min=0), default=settings.retention_days, show_default=True)
@click.pass_context
def cleanup(ctx: click.Context, days: int) -> None:
    """Delete tariffs older than the retention window."""
    from wbtariffs_pipeline.pipelines.tariff_sync import build_pipeline

    result = asyncio.run(build_pipeline(settings).cleanup(days))
    if not result.success:
        click.echo(f"Cleanup failed: {result.error}", err=True)
        ctx.exit(1)
    click.echo(f"Deleted {result.deleted_count} tariffs older than {days} days.")


@main.command()
@click.argument("action", type=click.Choice(["latest", "rollback", "list"]))
@click.pass_context
def migrate(ctx: click.Context, action: str) -> None:
    """Apply, revert or list schema migrations."""
    from wbtariffs_pipeline.migrations import MigrationRunner

    runner = MigrationRunner(settings.database_url)
    try:
        if action == "latest":
            batch, names = runner.latest()
            if not names:
                click.echo("Already up to date")
            else:
                click.echo(f"Batch {batch} run: {len(names)} migrations")
                for name in names:
                    click.echo(f"  {name}")
        elif action == "rollback":
            batch, names = runner.rollback()
            if not names:
                click.echo("Already at the base migration")
            else:
                click.echo(f"Batch {batch} rolled back: {len(names)} migrations")
                for name in names:
                    click.echo(f"  {name}")
        else:
            completed, pending = runner.list_migrations()
            click.echo(f"Found {len(completed)} Completed Migration file/files.")
            for name in completed:
                click.echo(f"  {name}")
            click.echo(f"Found {len(pending)} Pending Migration file/files.")
            for name in pending:
                click.echo(f"  {name}")
    except Exception as exc:
        click.echo(f"Migration {action} failed: {exc}", err=True)
        ctx.exit(1)


@main.command()
@click.option("--days", type=click.IntRange(min=0), default=7, show_default=True)
@click.pass_context
def status(ctx: click.Context, days: int) -> None:
    """Show stored tariff counts per day for the recent window."""
    from wbtariffs_pipeline.loaders.tariff_store import TariffStore

    start, end = retention_cutoff(days), to_tariff_date()
    click.echo(f"Stored tariffs {start} .. {end}:")
    try:
        counts = asyncio.run(TariffStore().count_by_date(start, end))
    except Exception as exc:
        click.echo(f"  Error fetching status: {exc}", err=True)
        ctx.exit(1)
    if not counts:
        click.echo("  No tariffs stored.")
        return
    for day in sorted(counts, reverse=True):
        click.echo(f"  {day}  {counts[day]:5d} warehouses")


if __name__ == "__main__":
    main()
