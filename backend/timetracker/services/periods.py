"""Calendar helpers for bucketing UTC instants into a user's local days, weeks, months and years."""
from calendar import monthrange
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import List, Optional, Tuple

from ..database.models import Weekday


def ensure_utc(instant: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if instant is None:
        return None
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def local_date(instant: datetime, tz: tzinfo) -> date:
    """Calendar date of an instant as seen in ``tz``."""
    return ensure_utc(instant).astimezone(tz).date()


def start_of_week(day: date, week_start: Weekday) -> date:
    """First day of the week containing ``day``."""
    offset = (day.weekday() - week_start.iso_index) % 7
    return day - timedelta(days=offset)


def day_keys(first: date, last: date) -> List[str]:
    keys = []
    current = first
    while current <= last:
        keys.append(current.isoformat())
        current += timedelta(days=1)
    return keys


def week_keys(first: date, last: date, week_start: Weekday) -> List[str]:
    keys = []
    current = start_of_week(first, week_start)
    while current <= last:
        keys.append(current.isoformat())
        current += timedelta(days=7)
    return keys


def month_keys(first: date, last: date) -> List[str]:
    keys = []
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        keys.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


def year_keys(first: date, last: date) -> List[str]:
    return [f"{year:04d}" for year in range(first.year, last.year + 1)]


def week_period(key: str) -> Tuple[date, date]:
    first = date.fromisoformat(key)
    return first, first + timedelta(days=6)


def month_period(key: str) -> Tuple[date, date]:
    year, month = (int(part) for part in key.split("-"))
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def year_period(key: str) -> Tuple[date, date]:
    year = int(key)
    return date(year, 1, 1), date(year, 12, 31)
