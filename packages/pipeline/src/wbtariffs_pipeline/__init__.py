"""
wbtariffs_pipeline — Wildberries box tariffs sync job.

Architecture:
  sources/     — WB common API adapter (fetch + typed DataFrame)
  transforms/  — numeric normalization, string cleanup, natural-key dedupe
  loaders/     — idempotent Supabase upserts, date queries, retention delete
  publishers/  — Google Sheets snapshot writer (one sheet per spreadsheet)
  pipelines/   — orchestrator that wires source -> store -> publisher
  migrations/  — SQL schema migrations over psycopg2
  scheduler.py — APScheduler cron jobs (hourly sync, daily cleanup)
  utils/       — structlog configuration, tenacity retry decorators

Quick start:
    import asyncio
    from wbtariffs_pipeline.pipelines.tariff_sync import build_pipeline

    result = asyncio.run(build_pipeline().full_sync())

CLI:
    wb-tariffs serve
    wb-tariffs sync --date 2025-02-25
    wb-tariffs migrate latest

Shared code from wbtariffs_shared:
    from wbtariffs_shared.config import settings
    from wbtariffs_shared.db import get_supabase_client, get_pg_connection
    from wbtariffs_shared.models.tariff import TariffRecord, WarehouseTariff
    from wbtariffs_shared.constants import SHEET_HEADERS, TARIFFS_TABLE
"""

__version__ = "0.1.0"
