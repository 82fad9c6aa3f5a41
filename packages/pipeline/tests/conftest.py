"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()       — resolves paths to tests/fixtures/
  wb_payload()         — parsed WB /tariffs/box response envelope
  fake_supabase()      — in-memory stand-in for the Supabase query builder
  mock_supabase()      — patches get_supabase_client() to return the fake
  mock_http            — configured respx router for faking HTTP responses
"""

from __future__ import annotations

import copy
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import respx

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def wb_payload() -> dict:
    """Parsed WB box tariffs envelope with three warehouses."""
    return json.loads((FIXTURES_DIR / "wb_tariffs_box_sample.json").read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# In-memory Supabase
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, data: list[dict[str, Any]], count: int | None = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    """
    Mimics the postgrest builder chain used by TariffStore:
    table().upsert(on_conflict=).execute(), table().select().eq/gte/lte
    .order().range().execute(), table().delete(count=).lt().execute().
    """

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._payload: list[dict[str, Any]] = []
        self._on_conflict: list[str] = []
        self._filters: list[tuple[str, str, Any]] = []
        self._orders: list[tuple[str, bool]] = []
        self._range: tuple[int, int] | None = None
        self._count: str | None = None

    # --- operations -----------------------------------------------------
    def select(self, columns: str = "*") -> "FakeQuery":
        self._op = "select"
        return self

    def upsert(self, rows: list[dict[str, Any]], on_conflict: str = "") -> "FakeQuery":
        self._op = "upsert"
        self._payload = copy.deepcopy(rows)
        self._on_conflict = [c for c in on_conflict.split(",") if c]
        return self

    def delete(self, count: str | None = None) -> "FakeQuery":
        self._op = "delete"
        self._count = count
        return self

    # --- modifiers ------------------------------------------------------
    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(("eq", column, value))
        return self

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(("gte", column, value))
        return self

    def lte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(("lte", column, value))
        return self

    def lt(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(("lt", column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._orders.append((column, desc))
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self

    # --- execution ------------------------------------------------------
    def _matches(self, row: dict[str, Any]) -> bool:
        for op, column, value in self._filters:
            cell = row.get(column)
            if op == "eq" and not cell == value:
                return False
            if op == "gte" and not cell >= value:
                return False
            if op == "lte" and not cell <= value:
                return False
            if op == "lt" and not cell < value:
                return False
        return True

    def execute(self) -> FakeResponse:
        failure = self._db.failures.get(self._op)
        if failure is not None:
            raise failure
        self._db.calls.append((self._op, self._table))
        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "upsert":
            return FakeResponse(self._db.apply_upsert(self._table, self._payload, self._on_conflict))

        if self._op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self._db.tables[self._table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed, len(removed) if self._count else None)

        selected = [copy.deepcopy(r) for r in rows if self._matches(r)]
        for column, desc in reversed(self._orders):
            selected.sort(key=lambda r: r.get(column), reverse=desc)
        if self._range is not None:
            start, end = self._range
            selected = selected[start : end + 1]
        return FakeResponse(selected)


class FakeSupabase:
    """
    Minimal in-memory Supabase client keyed by table name.

    Upserts behave like PostgreSQL INSERT … ON CONFLICT DO UPDATE: matching
    rows keep id and created_at, and a payload that hits the same key twice
    is rejected.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self._next_id = 1

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def apply_upsert(
        self,
        table: str,
        payload: list[dict[str, Any]],
        conflict_columns: list[str],
    ) -> list[dict[str, Any]]:
        rows = self.tables.setdefault(table, [])
        keys = [tuple(r.get(c) for c in conflict_columns) for r in payload]
        if len(set(keys)) != len(keys):
            raise RuntimeError(
                "ON CONFLICT DO UPDATE command cannot affect row a second time"
            )

        written = []
        for key, new in zip(keys, payload):
            existing = next(
                (r for r in rows if tuple(r.get(c) for c in conflict_columns) == key),
                None,
            )
            if existing is None:
                row = {
                    "id": self._next_id,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                    **new,
                }
                self._next_id += 1
                rows.append(row)
            else:
                existing.update(new)
                row = existing
            written.append(copy.deepcopy(row))
        return written


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def mock_supabase(fake_supabase: FakeSupabase):
    """
    Patch get_supabase_client() where the store resolves it.
    Yields the fake so tests can inspect stored rows.
    """
    with patch(
        "wbtariffs_pipeline.loaders.tariff_store.get_supabase_client",
        return_value=fake_supabase,
    ):
        yield fake_supabase


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
