"""
time_utils.py — Tariff date normalization.

Every date parameter that reaches the store or the WB API goes through
to_tariff_date(), which truncates to the calendar day in the local zone and
renders the canonical "YYYY-MM-DD" key component.

Usage:
    from wbtariffs_shared.time_utils import to_tariff_date, retention_cutoff

    to_tariff_date(date(2025, 2, 25))                  # "2025-02-25"
    to_tariff_date(datetime(2025, 2, 25, 23, 59))      # "2025-02-25"
    to_tariff_date("2025-02-25T10:00:00")              # "2025-02-25"
    to_tariff_date()                                   # today
    today_in("Europe/Moscow")                          # today in Moscow
    retention_cutoff(90, today=date(2025, 6, 1))       # "2025-03-03"
"""

from __future__ import annotations

from datetime import date, datetime

from dateutil import parser as date_parser
from dateutil import tz
from dateutil.relativedelta import relativedelta

DateLike = date | datetime | str


def as_local_date(value: DateLike | None = None) -> date:
    """
    Resolve a date-like value to a calendar date in the local zone.

    Naive datetimes are taken as already local; aware datetimes are converted
    to the local zone before truncation. Strings are parsed as ISO 8601.

    Raises:
        ValueError: unparseable string.
        TypeError:  unsupported type.
    """
    if value is None:
        return date.today()
    if isinstance(value, str):
        value = date_parser.isoparse(value.strip())
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Unsupported date value: {value!r}")


def today_in(zone: str | None = None) -> date:
    """
    Today's calendar date in the named IANA zone (default: local zone).

    Raises:
        ValueError: unknown zone name.
    """
    if zone is None:
        return date.today()
    tzinfo = tz.gettz(zone)
    if tzinfo is None:
        raise ValueError(f"Unknown time zone: {zone!r}")
    return datetime.now(tzinfo).date()


def to_tariff_date(value: DateLike | None = None) -> str:
    """Canonical "YYYY-MM-DD" day string for a tariff date (default: today)."""
    return as_local_date(value).isoformat()


def retention_cutoff(days_to_keep: int, today: DateLike | None = None) -> str:
    """
    Day string before which tariff rows are considered expired.

    Rows with tariff_date strictly less than the returned value are removed
    by the retention cleanup.
    """
    if days_to_keep < 0:
        raise ValueError("days_to_keep must be >= 0")
    return (as_local_date(today) - relativedelta(days=days_to_keep)).isoformat()
