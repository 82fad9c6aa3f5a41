"""
models/tariff.py — Pydantic models for WB box tariffs and the wb_tariffs table.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WarehouseTariff(BaseModel):
    """
    One entry of the WB `warehouseList` payload.

    Monetary values are kept exactly as received (numbers, comma-decimal
    strings or anything else); the store normalizes them on write and turns
    non-numeric input into 0. Only the warehouse name is required.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    warehouse_name: str = Field(alias="warehouseName")
    box_delivery_and_storage_expr: str | None = Field(
        default=None, alias="boxDeliveryAndStorageExpr"
    )
    box_delivery_base: Any = Field(default=None, alias="boxDeliveryBase")
    box_delivery_liter: Any = Field(default=None, alias="boxDeliveryLiter")
    box_storage_base: Any = Field(default=None, alias="boxStorageBase")
    box_storage_liter: Any = Field(default=None, alias="boxStorageLiter")

    @field_validator("warehouse_name", mode="before")
    @classmethod
    def name_from_number(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("box_delivery_and_storage_expr", mode="before")
    @classmethod
    def expression_as_text(cls, v: Any) -> str | None:
        # WB sends the formula as "160" or 160
        if v is None or isinstance(v, str):
            return v
        return str(v)


class TariffRecord(BaseModel):
    """
    Matches the wb_tariffs table row.

    Natural key is (tariff_date, warehouse_name).
    """

    id: int | None = None
    tariff_date: date
    warehouse_name: str
    box_delivery_and_storage_expr: str = ""
    box_delivery_base: Decimal = Decimal("0")
    box_delivery_liter: Decimal = Decimal("0")
    box_storage_base: Decimal = Decimal("0")
    box_storage_liter: Decimal = Decimal("0")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def coefficient(self) -> Decimal:
        """Sum of the four cost components; used only for sheet ordering."""
        return (
            self.box_delivery_base
            + self.box_delivery_liter
            + self.box_storage_base
            + self.box_storage_liter
        )

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "TariffRecord":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "tariff_date": self.tariff_date.isoformat(),
            "warehouse_name": self.warehouse_name,
            "box_delivery_and_storage_expr": self.box_delivery_and_storage_expr,
            "box_delivery_base": float(self.box_delivery_base),
            "box_delivery_liter": float(self.box_delivery_liter),
            "box_storage_base": float(self.box_storage_base),
            "box_storage_liter": float(self.box_storage_liter),
        }
