"""
transforms/normalize.py — Number and frame normalization for tariff data.

WB serves cost components either as JSON numbers or as Russian-locale
strings ("12,50", "1 234,5"). Everything written to the store goes through
normalize_number() so the comma/dot rule lives in exactly one place.

Usage:
    from wbtariffs_pipeline.transforms.normalize import (
        normalize_number,
        normalize_monetary_columns,
        deduplicate_tariffs,
    )

    normalize_number("12,50")   # 12.5
    normalize_number(12.5)      # 12.5
    normalize_number("-")       # 0.0

    df = normalize_monetary_columns(df)      # String -> Float64, bad -> 0.0
    df = deduplicate_tariffs(df)             # last row per warehouse wins
"""

from __future__ import annotations

import math
from typing import Any, Literal

import polars as pl
import structlog

from wbtariffs_shared.constants import MONETARY_COLUMNS, TARIFF_CONFLICT_COLUMNS

log = structlog.get_logger(__name__)

# Thousands separators seen in WB payloads (plain and non-breaking spaces)
_SPACES = (" ", "\u00a0", "\u202f")


def normalize_number(value: Any) -> float:
    """
    Convert a WB number (float, int or comma-decimal string) to a float.

    Non-numeric input (None, empty or unparseable strings, NaN/inf, other
    types) coerces to 0.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip()
        for space in _SPACES:
            text = text.replace(space, "")
        try:
            result = float(text.replace(",", ".", 1))
        except ValueError:
            return 0.0
    else:
        return 0.0

    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def normalize_monetary_columns(
    df: pl.DataFrame,
    columns: list[str] | None = None,
) -> pl.DataFrame:
    """Apply normalize_number() to each monetary column, yielding Float64."""
    columns = columns if columns is not None else MONETARY_COLUMNS
    return df.with_columns(
        [
            pl.col(c)
            .map_elements(normalize_number, return_dtype=pl.Float64, skip_nulls=False)
            .alias(c)
            for c in columns
            if c in df.columns
        ]
    )


def clean_string_columns(df: pl.DataFrame) -> pl.DataFrame:
    """Strip whitespace from all String columns."""
    return df.with_columns(
        [
            pl.col(c).str.strip_chars()
            for c in df.columns
            if df[c].dtype == pl.String
        ]
    )


def deduplicate_tariffs(
    df: pl.DataFrame,
    key_cols: list[str] | None = None,
    *,
    keep: Literal["first", "last"] = "last",
) -> pl.DataFrame:
    """
    Remove duplicate rows by natural key, keeping the last occurrence.

    A single upsert statement cannot touch the same key twice, so duplicates
    within one batch are collapsed here (last write wins).
    """
    key_cols = key_cols or TARIFF_CONFLICT_COLUMNS
    present = [c for c in key_cols if c in df.columns]
    if not present:
        return df

    n_before = len(df)
    df = df.unique(subset=present, keep=keep, maintain_order=True)

    dropped = n_before - len(df)
    if dropped:
        log.debug("deduplicated", dropped=dropped, key_cols=present)

    return df
