"""
exceptions.py — Error kinds raised by the sync collaborators.

The orchestrator catches every one of these and turns it into an outcome
object; only the process bootstrap lets errors escape.
"""

from __future__ import annotations


class TariffSyncError(Exception):
    """Base class for all tariff sync errors."""


class SourceUnavailable(TariffSyncError):
    """The WB API call failed or returned an unexpected envelope."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.message = message
        self.status = status
        super().__init__(message if status is None else f"{message} (status {status})")


class StoreFailure(TariffSyncError):
    """A write or query against the tariff table failed."""


class PublishUnavailable(TariffSyncError):
    """Google Sheets credentials are missing or were rejected."""


class PublishTargetFailure(TariffSyncError):
    """Writing the snapshot to one spreadsheet failed."""

    def __init__(self, spreadsheet_id: str, message: str) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.message = message
        super().__init__(f"{spreadsheet_id}: {message}")
