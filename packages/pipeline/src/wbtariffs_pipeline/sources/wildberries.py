"""
sources/wildberries.py — Wildberries common API box-tariff source adapter.

Endpoint:
  GET /tariffs/box?date=YYYY-MM-DD
  Authorization: <WB API token>

Response shape:
  {
    "response": {
      "data": {
        "dtNextBox": "2025-02-26",
        "dtTillMax": "2025-03-31",
        "warehouseList": [
          {
            "warehouseName": "Коледино",
            "boxDeliveryAndStorageExpr": "160",
            "boxDeliveryBase": "48",
            "boxDeliveryLiter": "11,2",
            "boxStorageBase": "0,1",
            "boxStorageLiter": "0,1"
          },
          ...
        ]
      }
    }
  }

Monetary values arrive as numbers or comma-decimal strings; the source keeps
them as text and the store normalizes them on write.

Usage:
    source = WildberriesSource()
    df = await source.fetch_tariffs(date(2025, 2, 25))
    # columns: warehouse_name, box_delivery_and_storage_expr,
    #          box_delivery_base, box_delivery_liter,
    #          box_storage_base, box_storage_liter
"""

from __future__ import annotations

from typing import Any

import httpx
import polars as pl
from pydantic import ValidationError

from wbtariffs_shared.config import settings
from wbtariffs_shared.constants import EXPRESSION_COLUMN, MONETARY_FIELDS
from wbtariffs_shared.exceptions import SourceUnavailable
from wbtariffs_shared.models.tariff import WarehouseTariff
from wbtariffs_shared.time_utils import DateLike, to_tariff_date
from wbtariffs_pipeline.sources.base import BaseSource
from wbtariffs_pipeline.transforms.normalize import clean_string_columns
from wbtariffs_pipeline.utils.retry import with_retry

TARIFFS_BOX_ENDPOINT = "/tariffs/box"

# Upstream keys, in output order
RAW_COLUMNS: list[str] = [
    "warehouseName",
    "boxDeliveryAndStorageExpr",
    *MONETARY_FIELDS.keys(),
]

OUTPUT_COLUMNS: list[str] = [
    "warehouse_name",
    EXPRESSION_COLUMN,
    *MONETARY_FIELDS.values(),
]


def _empty_output() -> pl.DataFrame:
    return pl.DataFrame(schema={c: pl.String for c in OUTPUT_COLUMNS})


class WildberriesSource(BaseSource):
    """Pulls the daily box tariffs per warehouse from the WB common API."""

    name = "WB"

    def __init__(
        self,
        api_token: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__()
        self._api_token = settings.wb_api_token if api_token is None else api_token
        self._base_url = (base_url or settings.wb_api_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.wb_request_timeout

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _fetch_box_tariffs(self, tariff_date: str) -> Any:
        """GET the raw tariff envelope for one day. Transport errors are retried."""
        headers = {"Authorization": self._api_token} if self._api_token else {}
        url = f"{self._base_url}{TARIFFS_BOX_ENDPOINT}"

        self._log.info("wb_fetch", url=url, tariff_date=tariff_date)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(url, params={"date": tariff_date}, headers=headers)
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Best-effort extraction of WB's error message from a failed response."""
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            for key in ("message", "detail", "title", "errorText"):
                if body.get(key):
                    return str(body[key])
        return response.reason_phrase or f"HTTP {response.status_code}"

    # ------------------------------------------------------------------
    # BaseSource interface
    # ------------------------------------------------------------------

    async def extract(self, *, tariff_date: DateLike | None = None, **kwargs: Any) -> pl.DataFrame:
        """
        Download the warehouse tariff list for one day.

        Args:
            tariff_date: Day to fetch (default: today).

        Returns:
            Raw DataFrame with the upstream camelCase columns as String.

        Raises:
            SourceUnavailable: transport failure, HTTP error status, or an
                envelope without response.data.
        """
        date_str = to_tariff_date(tariff_date)

        try:
            payload = await self._fetch_box_tariffs(date_str)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = self._error_message(exc.response)
            self._log.error("wb_request_failed", status=status, error=message)
            raise SourceUnavailable(f"WB API request failed: {message}", status=status) from exc
        except httpx.HTTPError as exc:
            self._log.error("wb_request_failed", status=None, error=str(exc))
            raise SourceUnavailable(f"WB API request failed: {exc}") from exc
        except ValueError as exc:
            raise SourceUnavailable(f"WB API returned invalid JSON: {exc}") from exc

        response = payload.get("response") if isinstance(payload, dict) else None
        data = response.get("data") if isinstance(response, dict) else None
        if not isinstance(data, dict):
            raise SourceUnavailable("Invalid response structure from WB API")

        warehouses = data.get("warehouseList") or []
        rows: list[dict[str, str | None]] = []
        for entry in warehouses:
            try:
                tariff = WarehouseTariff.model_validate(entry)
            except ValidationError as exc:
                self._log.warning("wb_entry_skipped", entry=str(entry)[:200], error=str(exc))
                continue
            dumped = tariff.model_dump(by_alias=True)
            rows.append(
                {k: None if dumped.get(k) is None else str(dumped[k]) for k in RAW_COLUMNS}
            )

        self._log.info("wb_fetch_complete", tariff_date=date_str, tariffs=len(rows))
        return pl.DataFrame(rows, schema={c: pl.String for c in RAW_COLUMNS})

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Rename WB columns to the wb_tariffs schema.

        Output columns (all String):
            warehouse_name, box_delivery_and_storage_expr ("" when absent),
            box_delivery_base, box_delivery_liter,
            box_storage_base, box_storage_liter (raw, normalized by the store)
        """
        if raw.is_empty():
            return _empty_output()

        df = clean_string_columns(self._normalize_columns(raw))
        df = df.with_columns(pl.col(EXPRESSION_COLUMN).fill_null(""))
        df = df.filter(
            pl.col("warehouse_name").is_not_null() & (pl.col("warehouse_name") != "")
        )
        return df.select(OUTPUT_COLUMNS)

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "Wildberries common API — box delivery and storage tariffs",
            "token_configured": bool(self._api_token),
        }

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    async def fetch_tariffs(self, tariff_date: DateLike | None = None) -> pl.DataFrame:
        """
        Fetch and clean the tariffs for one day.

        An empty frame means WB has no tariffs for that day, which is not an
        error; failures raise SourceUnavailable.
        """
        return await self.run(tariff_date=to_tariff_date(tariff_date))

    async def validate_token(self) -> bool:
        """Return True when a fetch for today succeeds with the configured token."""
        try:
            await self.fetch_tariffs()
        except SourceUnavailable as exc:
            self._log.error("wb_token_validation_failed", error=str(exc), status=exc.status)
            return False
        return True
