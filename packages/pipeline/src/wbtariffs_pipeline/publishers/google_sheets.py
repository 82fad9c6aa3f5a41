"""
publishers/google_sheets.py — Publishes the daily tariff snapshot to Google Sheets.

For every configured spreadsheet the publisher:
  1. ensures the `stocks_coefs` sheet exists (addSheet when missing)
  2. clears `stocks_coefs!A:Z`
  3. writes the header + rows at A1 (valueInputOption=RAW)
  4. bolds/greys the header row and auto-resizes the seven columns

Rows are sorted by coefficient = sum of the four cost components, ascending.
Clear-then-write is not atomic: a crash between the two calls leaves the
sheet empty until the next successful sync.

Usage:
    publisher = GoogleSheetsPublisher()
    result = await publisher.publish_all(["1AbC...", "1XyZ..."], records)
    print(result.success, result.failed, result.errors)
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from wbtariffs_shared.config import settings
from wbtariffs_shared.constants import SHEET_HEADERS, SHEET_NAME, SHEETS_SCOPES
from wbtariffs_shared.exceptions import PublishTargetFailure, PublishUnavailable
from wbtariffs_shared.models.tariff import TariffRecord
from wbtariffs_pipeline.utils.retry import with_retry_sync

log = structlog.get_logger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}

# Light grey header background
HEADER_BACKGROUND = {"red": 0.9, "green": 0.9, "blue": 0.9}


class TransientSheetsError(Exception):
    """Google API answered with a retryable status."""


@dataclass
class PublishResult:
    """Outcome of publishing one snapshot to several spreadsheets."""

    success: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


@with_retry_sync(max_attempts=3, base_delay=1.0, retry_on=TransientSheetsError)
def _execute(request: Any) -> Any:
    try:
        return request.execute()
    except HttpError as exc:
        if exc.resp is not None and int(exc.resp.status) in RETRYABLE_STATUS:
            raise TransientSheetsError(str(exc)) from exc
        raise


def _fmt(value: Decimal) -> str:
    return f"{value:.2f}"


def prepare_sheet_values(records: list[TariffRecord]) -> list[list[str]]:
    """
    Build the 2D value grid: header row + one row per tariff.

    Rows are ordered by ascending coefficient; ties keep the input order.
    """
    ordered = sorted(records, key=lambda r: r.coefficient)
    rows = [
        [
            r.warehouse_name,
            _fmt(r.coefficient),
            r.box_delivery_and_storage_expr,
            _fmt(r.box_delivery_base),
            _fmt(r.box_delivery_liter),
            _fmt(r.box_storage_base),
            _fmt(r.box_storage_liter),
        ]
        for r in ordered
    ]
    return [list(SHEET_HEADERS), *rows]


class GoogleSheetsPublisher:
    """
    Writes tariff snapshots into Google Sheets with a service account.

    The Sheets service is built on first use and cached for the process;
    a failed initialization is retried on the next publish_all() call.
    """

    def __init__(
        self,
        service_account_email: str | None = None,
        private_key: str | None = None,
        *,
        sheet_name: str = SHEET_NAME,
        service: Any | None = None,
    ) -> None:
        self._email = (
            settings.google_service_account_email
            if service_account_email is None
            else service_account_email
        )
        self._private_key = (
            settings.google_private_key_pem
            if private_key is None
            else private_key.replace("\\n", "\n")
        )
        self._sheet_name = sheet_name
        self._service = service
        self._init_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Build and authorize the Sheets v4 service.

        Raises:
            PublishUnavailable: credentials missing or rejected.
        """
        with self._init_lock:
            if self._service is not None:
                return
            if not self._email or not self._private_key:
                log.error("sheets_init_failed", error="credentials not configured")
                raise PublishUnavailable("Google credentials not configured")
            try:
                credentials = service_account.Credentials.from_service_account_info(
                    {
                        "client_email": self._email,
                        "private_key": self._private_key,
                        "token_uri": TOKEN_URI,
                    },
                    scopes=SHEETS_SCOPES,
                )
                credentials.refresh(Request())
                self._service = build(
                    "sheets", "v4", credentials=credentials, cache_discovery=False
                )
            except Exception as exc:
                log.error("sheets_init_failed", error=str(exc))
                raise PublishUnavailable(
                    f"Failed to initialize Google Sheets service: {exc}"
                ) from exc
            log.info("sheets_service_initialized", service_account=self._email)

    # ------------------------------------------------------------------
    # Single spreadsheet
    # ------------------------------------------------------------------

    def _ensure_sheet(self, spreadsheet_id: str) -> int:
        """Return the sheetId of the tariff sheet, creating the sheet if absent."""
        spreadsheets = self._service.spreadsheets()
        metadata = _execute(
            spreadsheets.get(spreadsheetId=spreadsheet_id, fields="sheets.properties")
        )
        for sheet in metadata.get("sheets", []):
            properties = sheet.get("properties", {})
            if properties.get("title") == self._sheet_name:
                return int(properties.get("sheetId", 0))

        reply = _execute(
            spreadsheets.batchUpdate(
                spreadsheetId=spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": self._sheet_name}}}]},
            )
        )
        sheet_id = int(reply["replies"][0]["addSheet"]["properties"]["sheetId"])
        log.info("sheet_created", spreadsheet_id=spreadsheet_id, sheet=self._sheet_name)
        return sheet_id

    def _format_requests(self, sheet_id: int) -> list[dict[str, Any]]:
        return [
            {
                "repeatCell": {
                    "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                    "cell": {
                        "userEnteredFormat": {
                            "textFormat": {"bold": True},
                            "backgroundColor": HEADER_BACKGROUND,
                        }
                    },
                    "fields": "userEnteredFormat(textFormat,backgroundColor)",
                }
            },
            {
                "autoResizeDimensions": {
                    "dimensions": {
                        "sheetId": sheet_id,
                        "dimension": "COLUMNS",
                        "startIndex": 0,
                        "endIndex": len(SHEET_HEADERS),
                    }
                }
            },
        ]

    def publish(self, spreadsheet_id: str, records: list[TariffRecord]) -> int:
        """
        Replace the tariff sheet of one spreadsheet with the snapshot.

        Blocking; publish_all() runs it in a worker thread.

        Returns:
            Number of data rows written (header excluded).

        Raises:
            PublishUnavailable:   service not initialized / credentials bad.
            PublishTargetFailure: any Sheets API call failed.
        """
        self.initialize()
        target_log = log.bind(spreadsheet_id=spreadsheet_id, sheet=self._sheet_name)
        values = prepare_sheet_values(records)

        try:
            sheet_id = self._ensure_sheet(spreadsheet_id)
            spreadsheets = self._service.spreadsheets()
            _execute(
                spreadsheets.values().clear(
                    spreadsheetId=spreadsheet_id,
                    range=f"{self._sheet_name}!A:Z",
                    body={},
                )
            )
            _execute(
                spreadsheets.values().update(
                    spreadsheetId=spreadsheet_id,
                    range=f"{self._sheet_name}!A1",
                    valueInputOption="RAW",
                    body={"values": values},
                )
            )
            _execute(
                spreadsheets.batchUpdate(
                    spreadsheetId=spreadsheet_id,
                    body={"requests": self._format_requests(sheet_id)},
                )
            )
        except Exception as exc:
            target_log.error("sheet_update_failed", error=str(exc))
            raise PublishTargetFailure(spreadsheet_id, str(exc)) from exc

        target_log.info("sheet_updated", rows=len(values) - 1)
        return len(values) - 1

    # ------------------------------------------------------------------
    # Many spreadsheets
    # ------------------------------------------------------------------

    async def publish_all(
        self,
        spreadsheet_ids: list[str],
        records: list[TariffRecord],
    ) -> PublishResult:
        """
        Publish the snapshot to every spreadsheet, isolating failures.

        Raises:
            PublishUnavailable: credentials missing or rejected; no
                spreadsheet is attempted.
        """
        await asyncio.to_thread(self.initialize)

        result = PublishResult()
        for spreadsheet_id in spreadsheet_ids:
            try:
                await asyncio.to_thread(self.publish, spreadsheet_id, records)
                result.success += 1
            except PublishTargetFailure as exc:
                result.failed += 1
                result.errors.append({"spreadsheet_id": spreadsheet_id, "error": exc.message})
            except Exception as exc:
                result.failed += 1
                result.errors.append({"spreadsheet_id": spreadsheet_id, "error": str(exc)})

        log.info(
            "publish_all_complete",
            targets=len(spreadsheet_ids),
            success=result.success,
            failed=result.failed,
        )
        return result
