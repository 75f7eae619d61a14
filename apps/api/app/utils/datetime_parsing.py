"""Datetime parsing helpers for filter evaluation."""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, tzinfo

DATETIME_FORMATS: list[str] = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m",
    "%Y %m",
]

# Column display formats that only carry year and month
MONTH_ONLY_FORMATS = frozenset({"YYYY-MM", "YYYY MM"})

MYSQL_NOW_FORMAT = "%Y-%m-%d %H:%M:%S"


def is_date_month_format(date_format: str | None) -> bool:
    return bool(date_format) and date_format in MONTH_ONLY_FORMATS


def parse_date_value(value, tz: tzinfo | None = None) -> datetime | None:
    """
    Parse a record or filter value into a datetime.

    Accepts datetime/date objects, ISO 8601 strings (with or without offset),
    the formats in DATETIME_FORMATS and epoch milliseconds. Aware values are
    converted to `tz` and returned naive so that calendar-day comparisons
    happen in one timezone. Returns None when the value cannot be parsed.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        elif isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000, tz=tz)
        elif isinstance(value, str):
            parsed = _parse_string(value.strip())
            if parsed is None:
                return None
        else:
            return None

        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(tz).replace(tzinfo=None)
    except (OverflowError, ValueError, OSError):
        # Outside the representable datetime range
        return None
    return parsed


def _parse_string(value: str) -> datetime | None:
    if not value:
        return None
    # Epoch milliseconds
    if re.fullmatch(r"-?\d{10,13}", value):
        ts = int(value)
        return datetime.fromtimestamp(ts / 1000 if len(value.lstrip("-")) == 13 else ts)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def shift(
    value: datetime,
    *,
    days: float = 0,
    weeks: int = 0,
    months: int = 0,
    years: int = 0,
) -> datetime:
    shifted = add_months(value, months + years * 12) if (months or years) else value
    return shifted + timedelta(days=days, weeks=weeks)


def first_of_month(value: datetime) -> datetime:
    return value.replace(day=1)


def format_now(now: datetime, client: str | None, *, date_only: bool = False) -> str:
    """
    Render "now" the way it is stored for a client.

    mysql2 stores wall-clock time without an offset; other clients keep the
    offset. Date columns only keep the date part.
    """
    if client == "mysql2":
        text = now.strftime(MYSQL_NOW_FORMAT)
    else:
        text = now.replace(microsecond=0).isoformat(sep=" ")
    return text[:10] if date_only else text
