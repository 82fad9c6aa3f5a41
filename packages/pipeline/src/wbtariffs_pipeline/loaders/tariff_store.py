"""
loaders/tariff_store.py — Idempotent Supabase persistence for WB tariffs.

The store owns the wb_tariffs table keyed by (tariff_date, warehouse_name):
  - upsert()            INSERT … ON CONFLICT (tariff_date, warehouse_name)
                        DO UPDATE, monetary values normalized comma → dot,
                        updated_at refreshed on every write (created_at is
                        left to the column default so it is set only once)
  - query_by_date()     one day's rows ordered by (formula, warehouse)
  - query_range()       inclusive date range ordered by (date, formula,
                        warehouse)
  - delete_older_than() retention pruning, returns rows removed

Failures raise StoreFailure; callers decide how to report them.

Usage:
    from wbtariffs_pipeline.loaders.tariff_store import TariffStore

    store = TariffStore()
    result = await store.upsert(df, date(2025, 2, 25))
    rows = await store.query_by_date(date(2025, 2, 25))
    removed = await store.delete_older_than(90)
"""

from __future__ import annotations

import math
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import polars as pl
import structlog
from supabase import Client

from wbtariffs_shared.constants import (
    DEFAULT_RETENTION_DAYS,
    EXPRESSION_COLUMN,
    MONETARY_COLUMNS,
    TARIFF_CONFLICT_COLUMNS,
    TARIFFS_TABLE,
)
from wbtariffs_shared.db import get_supabase_client
from wbtariffs_shared.exceptions import StoreFailure
from wbtariffs_shared.models.tariff import TariffRecord
from wbtariffs_shared.time_utils import DateLike, retention_cutoff, to_tariff_date
from wbtariffs_pipeline.transforms.normalize import (
    deduplicate_tariffs,
    normalize_monetary_columns,
)

log = structlog.get_logger(__name__)

BATCH_SIZE = 500   # rows per upsert request
PAGE_SIZE = 1000   # PostgREST default max-rows

STORE_COLUMNS: list[str] = [
    "tariff_date",
    "warehouse_name",
    EXPRESSION_COLUMN,
    *MONETARY_COLUMNS,
]


@dataclass
class LoadResult:
    """Summary of a store upsert."""

    table: str
    tariff_date: str | None = None
    records_loaded: int = 0
    batches_total: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return not self.errors


class TariffStore:
    """
    Reads and writes the wb_tariffs table through the Supabase client.

    The client is resolved lazily so the store can be constructed before
    credentials are validated; a missing key surfaces as StoreFailure.
    """

    def __init__(
        self,
        client: Client | None = None,
        *,
        table: str = TARIFFS_TABLE,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self._client = client
        self._table = table
        self._batch_size = batch_size

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def prepare_rows(
        self,
        df: pl.DataFrame,
        tariff_date: DateLike | None = None,
        *,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """
        Turn a source frame into JSON-ready upsert payload rows.

        - tariff_date set to the canonical day string
        - monetary columns normalized (comma → dot, junk → 0), 2 decimals
        - missing formula → ""
        - duplicate warehouses collapsed, last one wins
        - updated_at set to `now` (UTC)
        """
        date_str = to_tariff_date(tariff_date)
        updated_at = (now or datetime.now(timezone.utc)).isoformat()

        missing = [c for c in MONETARY_COLUMNS if c not in df.columns]
        if missing:
            df = df.with_columns([pl.lit(None, dtype=pl.String).alias(c) for c in missing])
        if EXPRESSION_COLUMN not in df.columns:
            df = df.with_columns(pl.lit("").alias(EXPRESSION_COLUMN))

        df = normalize_monetary_columns(df)
        df = df.with_columns(
            pl.lit(date_str).alias("tariff_date"),
            pl.col(EXPRESSION_COLUMN).cast(pl.String).fill_null(""),
            *[pl.col(c).round(2) for c in MONETARY_COLUMNS],
        )
        df = deduplicate_tariffs(df.select(STORE_COLUMNS))

        return [{**row, "updated_at": updated_at} for row in df.to_dicts()]

    async def upsert(
        self,
        df: pl.DataFrame,
        tariff_date: DateLike | None = None,
        *,
        now: datetime | None = None,
    ) -> LoadResult:
        """
        Insert or merge one day's tariffs by (tariff_date, warehouse_name).

        Args:
            df:          Frame from WildberriesSource.fetch_tariffs().
            tariff_date: Day the tariffs belong to (default: today).
            now:         Timestamp written to updated_at (default: now, UTC).

        Returns:
            LoadResult with records_loaded.

        Raises:
            StoreFailure: any batch failed; remaining batches are not sent.
        """
        date_str = to_tariff_date(tariff_date)
        result = LoadResult(table=self._table, tariff_date=date_str)
        t0 = time.monotonic()

        if df.is_empty():
            log.warning("upsert_empty_dataframe", table=self._table, tariff_date=date_str)
            return result

        rows = self.prepare_rows(df, date_str, now=now)
        n_batches = math.ceil(len(rows) / self._batch_size)
        result.batches_total = n_batches

        upsert_log = log.bind(table=self._table, tariff_date=date_str, total_rows=len(rows))
        upsert_log.info("upsert_start", batches=n_batches)

        for batch_idx in range(n_batches):
            start = batch_idx * self._batch_size
            batch = rows[start : start + self._batch_size]
            try:
                self.client.table(self._table).upsert(
                    batch,
                    on_conflict=",".join(TARIFF_CONFLICT_COLUMNS),
                ).execute()
            except Exception as exc:
                upsert_log.error("batch_failed", batch=batch_idx + 1, error=str(exc))
                raise StoreFailure(
                    f"Upsert into {self._table} failed at batch "
                    f"{batch_idx + 1}/{n_batches}: {exc}"
                ) from exc
            result.records_loaded += len(batch)
            upsert_log.debug("batch_loaded", batch=batch_idx + 1, batch_size=len(batch))

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        upsert_log.info(
            "upsert_complete",
            records_loaded=result.records_loaded,
            duration_ms=result.duration_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _select_all(self, build_query: Any) -> list[dict[str, Any]]:
        """Page through a select query built by `build_query(select)`."""
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            query = build_query(self.client.table(self._table).select("*"))
            page = query.range(offset, offset + PAGE_SIZE - 1).execute().data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    async def query_by_date(self, tariff_date: DateLike | None = None) -> list[TariffRecord]:
        """All tariffs for one day, ordered by formula then warehouse name."""
        date_str = to_tariff_date(tariff_date)
        try:
            rows = self._select_all(
                lambda q: q.eq("tariff_date", date_str)
                .order(EXPRESSION_COLUMN)
                .order("warehouse_name")
            )
        except Exception as exc:
            log.error("query_failed", table=self._table, tariff_date=date_str, error=str(exc))
            raise StoreFailure(f"Query for {date_str} failed: {exc}") from exc

        log.debug("query_by_date", tariff_date=date_str, rows=len(rows))
        return [TariffRecord.from_db_row(row) for row in rows]

    async def query_latest(self) -> list[TariffRecord]:
        """Today's tariffs."""
        return await self.query_by_date(None)

    async def query_range(self, start: DateLike, end: DateLike) -> list[TariffRecord]:
        """Tariffs with tariff_date in [start, end], ordered by (date, formula, warehouse)."""
        start_str, end_str = to_tariff_date(start), to_tariff_date(end)
        try:
            rows = self._select_all(
                lambda q: q.gte("tariff_date", start_str)
                .lte("tariff_date", end_str)
                .order("tariff_date")
                .order(EXPRESSION_COLUMN)
                .order("warehouse_name")
            )
        except Exception as exc:
            log.error("query_failed", table=self._table, start=start_str, end=end_str, error=str(exc))
            raise StoreFailure(f"Query for {start_str}..{end_str} failed: {exc}") from exc

        return [TariffRecord.from_db_row(row) for row in rows]

    async def count_by_date(self, start: DateLike, end: DateLike) -> dict[str, int]:
        """Number of stored warehouses per day in [start, end]."""
        records = await self.query_range(start, end)
        counts = Counter(r.tariff_date.isoformat() for r in records)
        return dict(sorted(counts.items()))

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def delete_older_than(
        self,
        cutoff_days: int = DEFAULT_RETENTION_DAYS,
        *,
        today: DateLike | None = None,
    ) -> int:
        """
        Delete every row with tariff_date < today - cutoff_days.

        Returns:
            Number of rows removed.
        """
        cutoff = retention_cutoff(cutoff_days, today)
        try:
            result = (
                self.client.table(self._table)
                .delete(count="exact")
                .lt("tariff_date", cutoff)
                .execute()
            )
        except Exception as exc:
            log.error("delete_failed", table=self._table, cutoff=cutoff, error=str(exc))
            raise StoreFailure(f"Delete before {cutoff} failed: {exc}") from exc

        deleted = result.count if result.count is not None else len(result.data or [])
        log.info("tariffs_deleted", table=self._table, cutoff=cutoff, deleted=deleted)
        return deleted
