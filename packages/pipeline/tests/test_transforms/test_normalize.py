"""
tests/test_transforms/test_normalize.py — Tests for number and frame normalization.
"""

from __future__ import annotations

import polars as pl
import pytest

from wbtariffs_pipeline.transforms.normalize import (
    clean_string_columns,
    deduplicate_tariffs,
    normalize_monetary_columns,
    normalize_number,
)


class TestNormalizeNumber:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("12,50", 12.5),
            (12.5, 12.5),
            ("12.5", 12.5),
            (48, 48.0),
            ("  0,1 ", 0.1),
            ("1 234,5", 1234.5),
            ("1\u00a0234,5", 1234.5),
            ("-3,25", -3.25),
        ],
    )
    def test_numeric_inputs(self, value, expected):
        assert normalize_number(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["-", "", "abc", None, "1,2,3", [1], {"v": 1}])
    def test_non_numeric_coerces_to_zero(self, value):
        assert normalize_number(value) == 0.0

    def test_nan_and_inf_coerce_to_zero(self):
        assert normalize_number(float("nan")) == 0.0
        assert normalize_number("inf") == 0.0

    def test_bool_is_not_a_number(self):
        assert normalize_number(True) == 0.0


class TestNormalizeMonetaryColumns:
    def test_converts_strings_to_float64(self):
        df = pl.DataFrame(
            {
                "warehouse_name": ["A", "B"],
                "box_delivery_base": ["48", "36,5"],
                "box_delivery_liter": ["11,2", None],
                "box_storage_base": ["-", "0,08"],
                "box_storage_liter": ["0,1", "0.08"],
            }
        )
        result = normalize_monetary_columns(df)

        assert result["box_delivery_base"].dtype == pl.Float64
        assert result["box_delivery_base"].to_list() == [48.0, 36.5]
        assert result["box_delivery_liter"].to_list() == [11.2, 0.0]
        assert result["box_storage_base"].to_list() == [0.0, 0.08]
        assert result["warehouse_name"].to_list() == ["A", "B"]

    def test_ignores_absent_columns(self):
        df = pl.DataFrame({"box_delivery_base": ["1,5"]})
        result = normalize_monetary_columns(df)
        assert result.columns == ["box_delivery_base"]
        assert result["box_delivery_base"][0] == 1.5


class TestCleanStringColumns:
    def test_strips_whitespace(self):
        df = pl.DataFrame({"warehouse_name": ["  Коледино "], "n": [1]})
        result = clean_string_columns(df)
        assert result["warehouse_name"][0] == "Коледино"
        assert result["n"][0] == 1


class TestDeduplicateTariffs:
    def test_last_occurrence_wins(self):
        df = pl.DataFrame(
            {
                "tariff_date": ["2025-02-25", "2025-02-25", "2025-02-25"],
                "warehouse_name": ["A", "B", "A"],
                "box_delivery_and_storage_expr": ["100", "110", "150"],
            }
        )
        result = deduplicate_tariffs(df)

        assert len(result) == 2
        row_a = result.filter(pl.col("warehouse_name") == "A")
        assert row_a["box_delivery_and_storage_expr"][0] == "150"

    def test_no_key_columns_returns_input(self):
        df = pl.DataFrame({"x": [1, 1]})
        assert deduplicate_tariffs(df).equals(df)
