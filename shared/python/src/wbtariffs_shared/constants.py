"""
constants.py — shared constants for the tariff sync job.

Table, sheet and column names live here so the store, the publisher and the
migrations agree on them.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
TARIFFS_TABLE: Final[str] = "wb_tariffs"

# Natural key of a tariff row
TARIFF_CONFLICT_COLUMNS: Final[list[str]] = ["tariff_date", "warehouse_name"]

# Monetary columns: upstream camelCase key -> table column
MONETARY_FIELDS: Final[dict[str, str]] = {
    "boxDeliveryBase": "box_delivery_base",
    "boxDeliveryLiter": "box_delivery_liter",
    "boxStorageBase": "box_storage_base",
    "boxStorageLiter": "box_storage_liter",
}

MONETARY_COLUMNS: Final[list[str]] = list(MONETARY_FIELDS.values())

EXPRESSION_COLUMN: Final[str] = "box_delivery_and_storage_expr"

DEFAULT_RETENTION_DAYS: Final[int] = 90

# ---------------------------------------------------------------------------
# Google Sheets
# ---------------------------------------------------------------------------
SHEET_NAME: Final[str] = "stocks_coefs"

SHEET_HEADERS: Final[list[str]] = [
    "Склад",
    "Коэффициент",
    "Формула",
    "Доставка база",
    "Доставка за литр",
    "Хранение база",
    "Хранение за литр",
]

SHEETS_SCOPES: Final[list[str]] = ["https://www.googleapis.com/auth/spreadsheets"]
