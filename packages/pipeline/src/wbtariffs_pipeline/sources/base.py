"""
sources/base.py — Abstract base class for upstream data source adapters.

Each concrete source must implement:
  extract()      — fetch raw data, return polars DataFrame
  transform()    — clean/normalize raw DataFrame into the store schema
  get_metadata() — return dict with source info for logging

The run() method orchestrates extract → transform → return and handles
timing/logging automatically. The sync pipeline calls run() (or a thin
wrapper around it) rather than the individual methods.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from typing import Any

import polars as pl
import structlog

log = structlog.get_logger(__name__)


class BaseSource(ABC):
    """Abstract base for tariff source adapters."""

    # Override in subclass — used as the source_name log field
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface — subclasses must implement all three
    # ------------------------------------------------------------------

    @abstractmethod
    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """
        Fetch raw data from the external source.

        Implementations should make HTTP calls via httpx (transport errors
        retried with @with_retry) and return a raw DataFrame with the
        upstream columns preserved.
        """
        ...

    @abstractmethod
    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Rename and clean a raw DataFrame into the store schema.

        Args:
            raw: DataFrame returned by extract().

        Returns:
            DataFrame ready for the loader.
        """
        ...

    @abstractmethod
    async def get_metadata(self) -> dict[str, Any]:
        """Return source-level metadata (source_name, base_url, description)."""
        ...

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def run(self, **kwargs: Any) -> pl.DataFrame:
        """
        Extract + transform in sequence with timing and structured logging.

        Args:
            **kwargs: Forwarded to extract().

        Returns:
            Transformed polars DataFrame.

        Raises:
            Any exception from extract() or transform() after logging it.
        """
        run_log = self._log.bind(**{k: str(v) for k, v in kwargs.items()})
        run_log.info("source_run_start")

        t0 = time.monotonic()
        try:
            raw = await self.extract(**kwargs)
            run_log.info(
                "extract_complete",
                raw_rows=len(raw),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

            result = self.transform(raw)
            run_log.info(
                "source_run_complete",
                output_rows=len(result),
                total_duration_ms=int((time.monotonic() - t0) * 1000),
            )
            return result

        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise

    # ------------------------------------------------------------------
    # Shared helpers available to all subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _to_snake_case(name: str) -> str:
        """Convert 'boxDeliveryBase' or 'Box Delivery' to 'box_delivery_base'."""
        s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
        s = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s)
        return s.lower().strip().replace(" ", "_").replace("-", "_")

    @classmethod
    def _normalize_columns(cls, df: pl.DataFrame) -> pl.DataFrame:
        """Rename all columns to snake_case."""
        return df.rename({col: cls._to_snake_case(col) for col in df.columns})
