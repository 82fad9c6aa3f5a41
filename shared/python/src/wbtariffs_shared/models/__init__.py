"""
wbtariffs_shared.models — Pydantic models for the WB payload and database rows.

All table models provide:
  .from_db_row(row: dict) -> Model
  .to_insert_dict() -> dict
"""

from wbtariffs_shared.models.tariff import TariffRecord, WarehouseTariff

__all__ = [
    "TariffRecord",
    "WarehouseTariff",
]
