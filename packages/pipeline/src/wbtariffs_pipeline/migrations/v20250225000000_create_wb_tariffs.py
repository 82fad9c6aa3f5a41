"""Create the wb_tariffs table keyed by (tariff_date, warehouse_name)."""

VERSION = "20250225000000"
NAME = "20250225000000_create_wb_tariffs"

UP = """
CREATE TABLE IF NOT EXISTS wb_tariffs (
    id                            SERIAL PRIMARY KEY,
    tariff_date                   DATE NOT NULL,
    warehouse_name                VARCHAR(255) NOT NULL,
    box_delivery_and_storage_expr VARCHAR(255) NOT NULL DEFAULT '',
    box_delivery_base             NUMERIC(10, 2) NOT NULL,
    box_delivery_liter            NUMERIC(10, 2) NOT NULL,
    box_storage_base              NUMERIC(10, 2) NOT NULL,
    box_storage_liter             NUMERIC(10, 2) NOT NULL,
    created_at                    TIMESTAMPTZ DEFAULT now(),
    updated_at                    TIMESTAMPTZ DEFAULT now(),
    CONSTRAINT wb_tariffs_tariff_date_warehouse_name_unique
        UNIQUE (tariff_date, warehouse_name)
);

CREATE INDEX IF NOT EXISTS wb_tariffs_tariff_date_index ON wb_tariffs (tariff_date);
"""

DOWN = """
DROP TABLE IF EXISTS wb_tariffs;
"""
