"""
pipelines/tariff_sync.py — WB API → Supabase → Google Sheets orchestration.

Orchestrates, strictly in sequence and without retries:
  1. Fetch    — WildberriesSource.fetch_tariffs(date)
  2. Store    — TariffStore.upsert(df, date)
  3. Publish  — only when 1+2 succeeded with at least one tariff:
                TariffStore.query_by_date(date) (the durable set, not the raw
                fetch) → GoogleSheetsPublisher.publish_all(spreadsheet_ids)
  4. Report   — FullSyncResult(wb_sync, sheets_sync)

Every stage failure is caught and reported in the result objects; the
pipeline never raises. Retention cleanup is a separate entry point.

Usage:
    from wbtariffs_pipeline.pipelines.tariff_sync import build_pipeline

    pipeline = build_pipeline()
    result = await pipeline.full_sync(date(2025, 2, 25))
    print(result.wb_sync.success, result.sheets_sync.spreadsheets_updated)

    cleanup = await pipeline.cleanup(retention_days=90)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from wbtariffs_shared.config import Settings, settings as default_settings
from wbtariffs_shared.constants import DEFAULT_RETENTION_DAYS
from wbtariffs_shared.time_utils import DateLike, to_tariff_date
from wbtariffs_pipeline.loaders.tariff_store import TariffStore
from wbtariffs_pipeline.publishers.google_sheets import GoogleSheetsPublisher
from wbtariffs_pipeline.sources.wildberries import WildberriesSource
from wbtariffs_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="tariff_sync")


@dataclass
class SourceSyncResult:
    """WB API → database stage."""

    success: bool
    tariffs_count: int = 0
    error: str | None = None


@dataclass
class SheetsSyncResult:
    """Database → Google Sheets stage."""

    success: bool = True
    spreadsheets_updated: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass
class FullSyncResult:
    tariff_date: str
    wb_sync: SourceSyncResult
    sheets_sync: SheetsSyncResult
    duration_ms: int = 0


@dataclass
class CleanupResult:
    success: bool
    deleted_count: int = 0
    error: str | None = None


class TariffSyncPipeline:
    """Coordinates source, store and publisher for one tariff day at a time."""

    def __init__(
        self,
        source: WildberriesSource,
        store: TariffStore,
        publisher: GoogleSheetsPublisher,
        spreadsheet_ids: list[str] | None = None,
    ) -> None:
        self.source = source
        self.store = store
        self.publisher = publisher
        self.spreadsheet_ids = list(spreadsheet_ids or [])

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def sync_from_source(self, tariff_date: DateLike | None = None) -> SourceSyncResult:
        """Fetch one day from WB and upsert it. An empty fetch is a success."""
        date_str = to_tariff_date(tariff_date)
        stage_log = log.bind(stage="wb_sync", tariff_date=date_str)
        stage_log.info("wb_sync_start")

        try:
            df = await self.source.fetch_tariffs(date_str)
        except Exception as exc:
            stage_log.error("wb_fetch_failed", error=str(exc))
            return SourceSyncResult(success=False, error=str(exc))

        if df.is_empty():
            stage_log.warning("wb_no_tariffs")
            return SourceSyncResult(success=True, tariffs_count=0)

        try:
            load = await self.store.upsert(df, date_str)
        except Exception as exc:
            stage_log.error("wb_store_failed", error=str(exc))
            return SourceSyncResult(success=False, error=str(exc))

        stage_log.info("wb_sync_complete", tariffs=load.records_loaded)
        return SourceSyncResult(success=True, tariffs_count=load.records_loaded)

    async def sync_to_sheets(self, tariff_date: DateLike | None = None) -> SheetsSyncResult:
        """Publish the stored snapshot for one day to every configured spreadsheet."""
        date_str = to_tariff_date(tariff_date)
        stage_log = log.bind(stage="sheets_sync", tariff_date=date_str)
        stage_log.info("sheets_sync_start", targets=len(self.spreadsheet_ids))

        try:
            records = await self.store.query_by_date(date_str)
            if not records:
                stage_log.warning("sheets_no_tariffs_in_store")
                return SheetsSyncResult()

            if not self.spreadsheet_ids:
                stage_log.warning("sheets_no_targets_configured")
                return SheetsSyncResult()

            published = await self.publisher.publish_all(self.spreadsheet_ids, records)
        except Exception as exc:
            stage_log.error("sheets_sync_failed", error=str(exc))
            return SheetsSyncResult(success=False, errors=[{"error": str(exc)}])

        stage_log.info(
            "sheets_sync_complete",
            succeeded=published.success,
            failed=published.failed,
        )
        return SheetsSyncResult(
            success=published.failed == 0,
            spreadsheets_updated=published.success,
            errors=published.errors,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def full_sync(
        self,
        tariff_date: DateLike | None = None,
        *,
        publish: bool = True,
    ) -> FullSyncResult:
        """
        Run fetch → store → publish for one day.

        Publishing is skipped (and reported as a success with zero updates)
        when the source stage failed or stored nothing, or when
        publish=False.
        """
        date_str = to_tariff_date(tariff_date)
        t0 = time.monotonic()
        log.info("full_sync_start", tariff_date=date_str)

        wb_sync = await self.sync_from_source(date_str)

        sheets_sync = SheetsSyncResult()
        if publish and wb_sync.success and wb_sync.tariffs_count > 0:
            sheets_sync = await self.sync_to_sheets(date_str)

        result = FullSyncResult(
            tariff_date=date_str,
            wb_sync=wb_sync,
            sheets_sync=sheets_sync,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        log.info(
            "full_sync_complete",
            tariff_date=date_str,
            wb_status="SUCCESS" if wb_sync.success else "FAILED",
            tariffs=wb_sync.tariffs_count,
            sheets_status="SUCCESS" if sheets_sync.success else "FAILED",
            spreadsheets_updated=sheets_sync.spreadsheets_updated,
            duration_ms=result.duration_ms,
        )
        return result

    async def cleanup(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> CleanupResult:
        """Delete tariffs older than retention_days. Never raises."""
        log.info("cleanup_start", retention_days=retention_days)
        try:
            deleted = await self.store.delete_older_than(retention_days)
        except Exception as exc:
            log.error("cleanup_failed", error=str(exc))
            return CleanupResult(success=False, error=str(exc))

        log.info("cleanup_complete", deleted=deleted)
        return CleanupResult(success=True, deleted_count=deleted)


def build_pipeline(config: Settings | None = None) -> TariffSyncPipeline:
    """Wire the production source, store and publisher from settings."""
    config = config or default_settings
    return TariffSyncPipeline(
        source=WildberriesSource(
            config.wb_api_token,
            base_url=config.wb_api_base_url,
            timeout=config.wb_request_timeout,
        ),
        store=TariffStore(),
        publisher=GoogleSheetsPublisher(
            config.google_service_account_email,
            config.google_private_key,
        ),
        spreadsheet_ids=config.google_sheets_ids_list,
    )
