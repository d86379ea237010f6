"""
Whole-day windowing tests.
"""
import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from timetracker.database.models import TimeEntry
from timetracker.services.full_dates import select_full_days

UTC = ZoneInfo("UTC")


def entries_on(day: datetime, count: int):
    """``count`` entries on ``day``, latest first."""
    return [TimeEntry(start=day + timedelta(hours=count - i)) for i in range(count)]


class TestSelectFullDays:
    """Test cases for selecting whole days under a limit."""

    def test_everything_is_returned_when_it_fits(self):
        entries = entries_on(datetime(2024, 1, 2, tzinfo=timezone.utc), 3)
        assert select_full_days(entries, 5, UTC) == entries

    def test_day_that_would_exceed_the_limit_is_dropped(self):
        newer = entries_on(datetime(2024, 1, 2, tzinfo=timezone.utc), 3)
        older = entries_on(datetime(2024, 1, 1, tzinfo=timezone.utc), 3)

        assert select_full_days(newer + older, 5, UTC) == newer

    def test_latest_day_is_kept_whole_even_above_limit(self, caplog):
        newer = entries_on(datetime(2024, 1, 2, tzinfo=timezone.utc), 7)
        older = entries_on(datetime(2024, 1, 1, tzinfo=timezone.utc), 3)

        with caplog.at_level(logging.WARNING):
            selected = select_full_days(newer + older, 5, UTC)

        assert selected == newer
        assert "User has has more than 5 time entries on one date" in caplog.messages

    def test_no_warning_when_days_fit(self, caplog):
        entries = entries_on(datetime(2024, 1, 2, tzinfo=timezone.utc), 2)
        with caplog.at_level(logging.WARNING):
            select_full_days(entries, 5, UTC)
        assert caplog.messages == []

    def test_days_follow_the_user_timezone(self):
        """04:00 UTC on Jan 1 is still Dec 31 in New York."""
        tz = ZoneInfo("America/New_York")
        jan_1_late = TimeEntry(start=datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc))
        jan_1_early = TimeEntry(start=datetime(2024, 1, 1, 15, 0, tzinfo=timezone.utc))
        dec_31 = TimeEntry(start=datetime(2024, 1, 1, 4, 0, tzinfo=timezone.utc))
        dec_30 = TimeEntry(start=datetime(2023, 12, 30, 18, 0, tzinfo=timezone.utc))

        selected = select_full_days([jan_1_late, jan_1_early, dec_31, dec_30], 3, tz)

        assert selected == [jan_1_late, jan_1_early, dec_31]
        assert select_full_days([jan_1_late, jan_1_early, dec_31, dec_30], 2, tz) == [jan_1_late, jan_1_early]
        # In UTC all three fall on Jan 1, so the first day exceeds the limit and is kept whole
        assert select_full_days([jan_1_late, jan_1_early, dec_31, dec_30], 2, UTC) == [
            jan_1_late, jan_1_early, dec_31
        ]

    def test_limit_of_one(self):
        entries = entries_on(datetime(2024, 1, 2, tzinfo=timezone.utc), 1)
        assert select_full_days(entries, 1, UTC) == entries

    def test_empty_input(self):
        assert select_full_days([], 5, UTC) == []
