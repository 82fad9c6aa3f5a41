"""
wbtariffs_pipeline.migrations — Ordered SQL schema migrations and their runner.

Each migration module defines VERSION, NAME, UP and DOWN (plain SQL). The
runner records applied migrations in a `migrations` bookkeeping table with
a batch number, so `rollback()` reverts exactly what the last `latest()`
applied. All work happens over psycopg2 on settings.database_url because
the Supabase REST client cannot run DDL.

Usage:
    from wbtariffs_pipeline.migrations import MigrationRunner

    runner = MigrationRunner()
    batch, applied = runner.latest()
    completed, pending = runner.list_migrations()
    batch, reverted = runner.rollback()
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from types import ModuleType
from typing import Any

import structlog

from wbtariffs_shared.db import get_pg_connection
from wbtariffs_pipeline.migrations import v20250225000000_create_wb_tariffs

log = structlog.get_logger(__name__)

MIGRATIONS_TABLE = "migrations"

# Serializes concurrent runners against the same database
ADVISORY_LOCK_KEY = 724_311_025

CREATE_MIGRATIONS_TABLE = f"""
CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
    id             SERIAL PRIMARY KEY,
    name           VARCHAR(255) NOT NULL UNIQUE,
    batch          INTEGER NOT NULL,
    migration_time TIMESTAMPTZ DEFAULT now()
)
"""


class MigrationError(Exception):
    """The database and the migration modules disagree."""


@dataclass(frozen=True)
class Migration:
    name: str
    up: str
    down: str

    @classmethod
    def from_module(cls, module: ModuleType) -> "Migration":
        return cls(name=module.NAME, up=module.UP, down=module.DOWN)


MIGRATIONS: list[Migration] = [
    Migration.from_module(v20250225000000_create_wb_tariffs),
]


class MigrationRunner:
    """Applies and reverts MIGRATIONS in batches."""

    def __init__(
        self,
        dsn: str | None = None,
        *,
        migrations: list[Migration] | None = None,
        connect: Callable[[str | None], AbstractContextManager[Any]] = get_pg_connection,
    ) -> None:
        self._dsn = dsn
        self._migrations = migrations if migrations is not None else MIGRATIONS
        self._connect = connect

    def _prepare(self, cur: Any) -> None:
        cur.execute(CREATE_MIGRATIONS_TABLE)
        cur.execute("SELECT pg_advisory_xact_lock(%s)", (ADVISORY_LOCK_KEY,))

    @staticmethod
    def _completed(cur: Any) -> list[str]:
        cur.execute(f"SELECT name FROM {MIGRATIONS_TABLE} ORDER BY id")
        return [row[0] for row in cur.fetchall()]

    def latest(self) -> tuple[int, list[str]]:
        """
        Apply every pending migration in one transaction.

        Returns:
            (batch number, names applied). The batch is 0 when nothing ran.
        """
        with self._connect(self._dsn) as conn, conn.cursor() as cur:
            self._prepare(cur)
            completed = set(self._completed(cur))
            pending = [m for m in self._migrations if m.name not in completed]
            if not pending:
                log.info("migrations_up_to_date")
                return 0, []

            cur.execute(f"SELECT COALESCE(MAX(batch), 0) FROM {MIGRATIONS_TABLE}")
            batch = int(cur.fetchone()[0]) + 1

            for migration in pending:
                log.info("migration_apply", name=migration.name, batch=batch)
                cur.execute(migration.up)
                cur.execute(
                    f"INSERT INTO {MIGRATIONS_TABLE} (name, batch) VALUES (%s, %s)",
                    (migration.name, batch),
                )

        applied = [m.name for m in pending]
        log.info("migrations_applied", batch=batch, migrations=applied)
        return batch, applied

    def rollback(self) -> tuple[int, list[str]]:
        """
        Revert the most recent batch, newest migration first.

        Raises:
            MigrationError: the batch references a migration that no longer
                exists in code.
        """
        by_name = {m.name: m for m in self._migrations}
        with self._connect(self._dsn) as conn, conn.cursor() as cur:
            self._prepare(cur)
            cur.execute(f"SELECT COALESCE(MAX(batch), 0) FROM {MIGRATIONS_TABLE}")
            batch = int(cur.fetchone()[0])
            if batch == 0:
                log.info("migrations_nothing_to_rollback")
                return 0, []

            cur.execute(
                f"SELECT name FROM {MIGRATIONS_TABLE} WHERE batch = %s ORDER BY id DESC",
                (batch,),
            )
            names = [row[0] for row in cur.fetchall()]
            for name in names:
                migration = by_name.get(name)
                if migration is None:
                    raise MigrationError(f"Migration {name!r} is recorded but missing in code")
                log.info("migration_revert", name=name, batch=batch)
                cur.execute(migration.down)
                cur.execute(f"DELETE FROM {MIGRATIONS_TABLE} WHERE name = %s", (name,))

        log.info("migrations_rolled_back", batch=batch, migrations=names)
        return batch, names

    def list_migrations(self) -> tuple[list[str], list[str]]:
        """Return (completed, pending) migration names."""
        with self._connect(self._dsn) as conn, conn.cursor() as cur:
            cur.execute(CREATE_MIGRATIONS_TABLE)
            completed = self._completed(cur)
        done = set(completed)
        pending = [m.name for m in self._migrations if m.name not in done]
        return completed, pending
