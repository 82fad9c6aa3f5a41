"""
db.py — Supabase client singleton and PostgreSQL connections.

Usage:
    from wbtariffs_shared.db import get_supabase_client, get_pg_connection

    supabase = get_supabase_client()        # service key (pipeline reads/writes)
    with get_pg_connection() as conn:        # raw psycopg2 (schema migrations)
        ...
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

import psycopg2
import structlog
from supabase import Client, create_client

from wbtariffs_shared.config import settings

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Supabase — one client per process (thread-safe via lock)
# ---------------------------------------------------------------------------
_supabase_lock = threading.Lock()
_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Return a singleton Supabase client authenticated with the service key.

    Returns:
        supabase.Client instance.

    Raises:
        RuntimeError: SUPABASE_SERVICE_KEY is not configured.
    """
    global _supabase_client

    with _supabase_lock:
        if _supabase_client is None:
            if not settings.supabase_service_key:
                raise RuntimeError(
                    "SUPABASE_SERVICE_KEY is not set. Set it in .env."
                )
            _supabase_client = create_client(
                settings.supabase_url,
                settings.supabase_service_key,
            )
            logger.info("supabase_client_created", url=settings.supabase_url)
        return _supabase_client


def reset_supabase_client() -> None:
    """Drop the singleton client (shutdown and tests)."""
    global _supabase_client
    with _supabase_lock:
        if _supabase_client is not None:
            logger.info("supabase_client_released")
        _supabase_client = None


# ---------------------------------------------------------------------------
# PostgreSQL — short-lived psycopg2 connections for DDL
# ---------------------------------------------------------------------------


@contextmanager
def get_pg_connection(dsn: str | None = None) -> Iterator[psycopg2.extensions.connection]:
    """
    Open a psycopg2 connection, commit on success, roll back on error.

    Args:
        dsn: Connection string. Defaults to settings.database_url.

    Yields:
        psycopg2 connection with autocommit disabled.
    """
    conn = psycopg2.connect(dsn or settings.database_url)
    conn.autocommit = False
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
