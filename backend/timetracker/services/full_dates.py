"""
Whole-day windowing for time entry listings.

A listing limited to N entries would normally cut the oldest day in half.
With ``only_full_dates`` whole calendar days (in the user's timezone) are
returned instead, most recent first, as long as they fit the limit.
"""
import logging
from datetime import tzinfo
from itertools import groupby
from typing import Iterable, List

from ..database.models import TimeEntry
from .periods import local_date

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def select_full_days(entries: Iterable[TimeEntry], limit: int, tz: tzinfo) -> List[TimeEntry]:
    """
    Select whole days of entries without exceeding ``limit``.

    The most recent day is always returned in full, even when it alone holds
    more than ``limit`` entries.

    Args:
        entries: Entries sorted by start descending
        limit: Maximum number of entries to return
        tz: Timezone that defines the day boundaries

    Returns:
        List[TimeEntry]: Entries of the selected days, in input order
    """
    selected: List[TimeEntry] = []
    for day, day_entries in groupby(entries, key=lambda entry: local_date(entry.start, tz)):
        day_entries = list(day_entries)
        if selected and len(selected) + len(day_entries) > limit:
            break
        if not selected and len(day_entries) > limit:
            logger.warning(f"User has has more than {limit} time entries on one date")
        selected.extend(day_entries)
        if len(selected) >= limit:
            break
    return selected
