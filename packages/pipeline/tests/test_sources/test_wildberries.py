"""
tests/test_sources/test_wildberries.py — Unit tests for WildberriesSource.

HTTP is mocked with respx; the fixture JSON mirrors the WB /tariffs/box envelope.
"""

from __future__ import annotations

from datetime import date

import httpx
import polars as pl
import pytest
import respx

from wbtariffs_shared.exceptions import SourceUnavailable
from wbtariffs_pipeline.loaders.tariff_store import TariffStore
from wbtariffs_pipeline.sources.wildberries import OUTPUT_COLUMNS, RAW_COLUMNS, WildberriesSource

BASE_URL = "https://wb.test/api/v1"
TARIFFS_URL = f"{BASE_URL}/tariffs/box"


@pytest.fixture
def source() -> WildberriesSource:
    return WildberriesSource("test-token", base_url=BASE_URL, timeout=5.0)


# ---------------------------------------------------------------------------
# extract() tests
# ---------------------------------------------------------------------------

class TestWildberriesExtract:
    @pytest.mark.asyncio
    async def test_extract_unwraps_envelope(self, source: WildberriesSource, wb_payload: dict):
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, json=wb_payload))
            df = await source.extract(tariff_date=date(2025, 2, 25))

        assert isinstance(df, pl.DataFrame)
        assert df.columns == RAW_COLUMNS
        assert len(df) == 3
        assert df["warehouseName"][0] == "Коледино"
        assert df["boxDeliveryLiter"][0] == "11,2"

    @pytest.mark.asyncio
    async def test_extract_sends_date_and_token(self, source: WildberriesSource, wb_payload: dict):
        with respx.mock() as router:
            route = router.get(url__startswith=TARIFFS_URL).mock(
                return_value=httpx.Response(200, json=wb_payload)
            )
            await source.extract(tariff_date="2025-02-25")

            assert route.called
            request = route.calls[0].request
            assert request.url.params["date"] == "2025-02-25"
            assert request.headers["Authorization"] == "test-token"

    @pytest.mark.asyncio
    async def test_extract_omits_header_without_token(self, wb_payload: dict):
        source = WildberriesSource("", base_url=BASE_URL)
        with respx.mock() as router:
            route = router.get(url__startswith=TARIFFS_URL).mock(
                return_value=httpx.Response(200, json=wb_payload)
            )
            await source.extract(tariff_date="2025-02-25")
            assert "Authorization" not in route.calls[0].request.headers

    @pytest.mark.asyncio
    async def test_extract_missing_warehouse_list_is_empty(self, source: WildberriesSource):
        payload = {"response": {"data": {"dtNextBox": "2025-02-26"}}}
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, json=payload))
            df = await source.extract(tariff_date="2025-02-25")

        assert df.is_empty()
        assert df.columns == RAW_COLUMNS

    @pytest.mark.asyncio
    async def test_extract_skips_entries_without_name(self, source: WildberriesSource):
        payload = {
            "response": {
                "data": {
                    "warehouseList": [
                        {"boxDeliveryBase": "1"},
                        {"warehouseName": "Тула", "boxDeliveryBase": "2,5"},
                    ]
                }
            }
        }
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, json=payload))
            df = await source.extract(tariff_date="2025-02-25")

        assert df["warehouseName"].to_list() == ["Тула"]

    @pytest.mark.asyncio
    async def test_extract_raises_on_http_error_with_status(self, source: WildberriesSource):
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(
                return_value=httpx.Response(500, json={"message": "internal error"})
            )
            with pytest.raises(SourceUnavailable) as excinfo:
                await source.extract(tariff_date="2025-02-25")

        assert excinfo.value.status == 500
        assert "internal error" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_extract_raises_on_unauthorized(self, source: WildberriesSource):
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(401, text="unauthorized"))
            with pytest.raises(SourceUnavailable) as excinfo:
                await source.extract(tariff_date="2025-02-25")

        assert excinfo.value.status == 401

    @pytest.mark.asyncio
    async def test_extract_raises_on_missing_data(self, source: WildberriesSource):
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, json={"response": {}}))
            with pytest.raises(SourceUnavailable, match="Invalid response structure"):
                await source.extract(tariff_date="2025-02-25")

    @pytest.mark.asyncio
    async def test_extract_raises_on_invalid_json(self, source: WildberriesSource):
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, text="<html>"))
            with pytest.raises(SourceUnavailable, match="invalid JSON"):
                await source.extract(tariff_date="2025-02-25")

    @pytest.mark.asyncio
    async def test_extract_keeps_entries_with_odd_field_types(self, source: WildberriesSource, fake_supabase):
        payload = {
            "response": {
                "data": {
                    "warehouseList": [
                        {
                            "warehouseName": "Коледино",
                            "boxDeliveryAndStorageExpr": 160,
                            "boxDeliveryBase": 48,
                            "boxDeliveryLiter": "11,2",
                        },
                        {
                            "warehouseName": "Тула",
                            "boxDeliveryAndStorageExpr": "110",
                            "boxDeliveryBase": {"x": 1},
                            "boxStorageBase": [1, 2],
                            "boxStorageLiter": True,
                        },
                    ]
                }
            }
        }
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, json=payload))
            df = await source.extract(tariff_date="2025-02-25")

        assert df.height == 2
        assert df["warehouseName"].to_list() == ["Коледино", "Тула"]
        assert df["boxDeliveryAndStorageExpr"].to_list() == ["160", "110"]
        assert df["boxDeliveryBase"][0] == "48"

        rows = TariffStore(fake_supabase).prepare_rows(source.transform(df), "2025-02-25")
        tula = next(r for r in rows if r["warehouse_name"] == "Тула")
        assert tula["box_delivery_base"] == 0
        assert tula["box_storage_base"] == 0
        assert tula["box_storage_liter"] == 0


# ---------------------------------------------------------------------------
# transform() tests
# ---------------------------------------------------------------------------

class TestWildberriesTransform:
    def test_transform_renames_to_store_columns(self, source: WildberriesSource):
        raw = pl.DataFrame(
            [
                {
                    "warehouseName": " Коледино ",
                    "boxDeliveryAndStorageExpr": None,
                    "boxDeliveryBase": "48",
                    "boxDeliveryLiter": "11,2",
                    "boxStorageBase": "0,1",
                    "boxStorageLiter": "0,1",
                }
            ],
            schema={c: pl.String for c in RAW_COLUMNS},
        )
        df = source.transform(raw)

        assert df.columns == OUTPUT_COLUMNS
        assert df["warehouse_name"][0] == "Коледино"
        assert df["box_delivery_and_storage_expr"][0] == ""
        assert df["box_delivery_liter"][0] == "11,2"

    def test_transform_empty(self, source: WildberriesSource):
        df = source.transform(pl.DataFrame())
        assert df.is_empty()
        assert df.columns == OUTPUT_COLUMNS


# ---------------------------------------------------------------------------
# fetch_tariffs() / validate_token()
# ---------------------------------------------------------------------------

class TestWildberriesFetch:
    @pytest.mark.asyncio
    async def test_fetch_tariffs_end_to_end(self, source: WildberriesSource, wb_payload: dict):
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, json=wb_payload))
            df = await source.fetch_tariffs(date(2025, 2, 25))

        assert df.columns == OUTPUT_COLUMNS
        assert set(df["warehouse_name"].to_list()) == {
            "Коледино",
            "Электросталь",
            "Маркетплейс: Центральный федеральный округ",
        }

    @pytest.mark.asyncio
    async def test_validate_token(self, source: WildberriesSource, wb_payload: dict):
        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(200, json=wb_payload))
            assert await source.validate_token() is True

        with respx.mock() as router:
            router.get(url__startswith=TARIFFS_URL).mock(return_value=httpx.Response(401))
            assert await source.validate_token() is False

    @pytest.mark.asyncio
    async def test_get_metadata(self, source: WildberriesSource):
        meta = await source.get_metadata()
        assert meta["source_name"] == "WB"
        assert meta["token_configured"] is True
