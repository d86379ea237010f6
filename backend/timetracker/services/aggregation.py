"""
Time entry aggregation.

Computes total duration and cost over a set of time entries and breaks the
totals down by up to two grouping dimensions. Time dimensions can be
gap-filled so every calendar unit between two bounds gets a bucket.
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..database.models import TimeEntry, Weekday, utc_now
from ..exceptions import ValidationFailedError
from . import periods


class GroupKind(str, enum.Enum):
    """Dimension time entries can be grouped by."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    USER = "user"
    MEMBER = "member"
    PROJECT = "project"
    TASK = "task"
    CLIENT = "client"
    BILLABLE = "billable"
    DESCRIPTION = "description"

    @property
    def is_time_based(self) -> bool:
        return self in TIME_GROUPS


TIME_GROUPS = frozenset({GroupKind.DAY, GroupKind.WEEK, GroupKind.MONTH, GroupKind.YEAR})


def _id_or_none(value) -> Optional[str]:
    return str(value) if value is not None else None


# PUBLIC_INTERFACE
def bucket_key_for(entry: TimeEntry, kind: GroupKind, tz: tzinfo, week_start: Weekday) -> Optional[str]:
    """Map an entry to its bucket key for ``kind``.

    Time keys are derived from the entry start in ``tz``; a week is keyed by
    the date of its first day. ``None`` marks entries the dimension does not
    apply to.
    """
    if kind.is_time_based:
        day = periods.local_date(entry.start, tz)
        if kind == GroupKind.DAY:
            return day.isoformat()
        if kind == GroupKind.WEEK:
            return periods.start_of_week(day, week_start).isoformat()
        if kind == GroupKind.MONTH:
            return f"{day.year:04d}-{day.month:02d}"
        return f"{day.year:04d}"
    if kind == GroupKind.USER:
        return _id_or_none(entry.user_id)
    if kind == GroupKind.MEMBER:
        return _id_or_none(entry.member_id)
    if kind == GroupKind.PROJECT:
        return _id_or_none(entry.project_id)
    if kind == GroupKind.TASK:
        return _id_or_none(entry.task_id)
    if kind == GroupKind.CLIENT:
        return _id_or_none(entry.client_id)
    if kind == GroupKind.BILLABLE:
        return "true" if entry.billable else "false"
    if kind == GroupKind.DESCRIPTION:
        return entry.description or None
    raise ValueError(f"Unsupported group: {kind}")


def entry_seconds(entry: TimeEntry, now: datetime) -> int:
    """Whole seconds an entry has run; running entries count up to ``now``."""
    end = entry.end if entry.end is not None else now
    seconds = int((periods.ensure_utc(end) - periods.ensure_utc(entry.start)).total_seconds())
    return max(seconds, 0)


def entry_cost(entry: TimeEntry, seconds: int) -> int:
    """Cost in currency minor units, rounded half up per entry."""
    if not entry.billable or entry.billable_rate is None:
        return 0
    cost = Decimal(entry.billable_rate) * Decimal(seconds) / Decimal(3600)
    return int(cost.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass
class AggregationNode:
    key: Optional[str]
    seconds: int
    cost: int
    grouped_type: Optional[str] = None
    grouped_data: Optional[List["AggregationNode"]] = None

    def to_dict(self, include_key: bool = True) -> dict:
        data = {
            "seconds": self.seconds,
            "cost": self.cost,
            "grouped_type": self.grouped_type,
            "grouped_data": None if self.grouped_data is None else [
                child.to_dict() for child in self.grouped_data
            ],
        }
        if include_key:
            data = {"key": self.key, **data}
        return data


@dataclass
class _Measured:
    entry: TimeEntry
    seconds: int
    cost: int


@dataclass
class _Window:
    first: date
    last: date

    def narrow(self, first: date, last: date) -> "_Window":
        return _Window(max(self.first, first), min(self.last, last))


class TimeEntryAggregator:
    """Builds the aggregation tree for one requesting user.

    Args:
        tz: Requesting user's timezone used for calendar buckets
        week_start: Requesting user's first day of the week
        clock: Returns the current instant, used for running entries
    """

    def __init__(self, tz: tzinfo, week_start: Weekday, clock: Callable[[], datetime] = utc_now):
        self.tz = tz
        self.week_start = week_start
        self.clock = clock

    def aggregate(
        self,
        entries: Iterable[TimeEntry],
        group: Optional[GroupKind] = None,
        sub_group: Optional[GroupKind] = None,
        fill_gaps: bool = False,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AggregationNode:
        """
        Aggregate entries into a root node.

        Entries are expected in start-descending order; entity buckets keep
        their order of first appearance in that sequence.

        Raises:
            ValidationFailedError: If a sub group is given without a group
        """
        if sub_group is not None and group is None:
            raise ValidationFailedError.for_field(
                "sub_group", "The sub group requires a group.", source="query"
            )

        now = self.clock()
        measured = []
        for entry in entries:
            seconds = entry_seconds(entry, now)
            measured.append(_Measured(entry, seconds, entry_cost(entry, seconds)))

        kinds = [kind for kind in (group, sub_group) if kind is not None]
        window = None
        if fill_gaps and start is not None and end is not None:
            window = _Window(periods.local_date(start, self.tz), periods.local_date(end, self.tz))

        return self._build(None, measured, kinds, window)

    def _build(
        self,
        key: Optional[str],
        items: Sequence[_Measured],
        kinds: List[GroupKind],
        window: Optional[_Window],
    ) -> AggregationNode:
        node = AggregationNode(
            key=key,
            seconds=sum(item.seconds for item in items),
            cost=sum(item.cost for item in items),
        )
        if not kinds:
            return node

        kind, rest = kinds[0], kinds[1:]
        buckets: Dict[Optional[str], List[_Measured]] = {}
        for item in items:
            buckets.setdefault(bucket_key_for(item.entry, kind, self.tz, self.week_start), []).append(item)

        if kind.is_time_based:
            keys = set(buckets)
            if window is not None:
                keys.update(self._calendar_keys(kind, window))
            ordered = sorted(keys)
        else:
            ordered = [bucket for bucket in buckets if bucket is not None]
            if None in buckets:
                ordered.append(None)

        children = []
        for bucket in ordered:
            child_window = window
            if window is not None and kind.is_time_based:
                child_window = window.narrow(*self._period(kind, bucket))
            children.append(self._build(bucket, buckets.get(bucket, []), rest, child_window))

        node.grouped_type = kind.value
        node.grouped_data = children
        return node

    def _calendar_keys(self, kind: GroupKind, window: _Window) -> List[str]:
        if window.first > window.last:
            return []
        if kind == GroupKind.DAY:
            return periods.day_keys(window.first, window.last)
        if kind == GroupKind.WEEK:
            return periods.week_keys(window.first, window.last, self.week_start)
        if kind == GroupKind.MONTH:
            return periods.month_keys(window.first, window.last)
        return periods.year_keys(window.first, window.last)

    def _period(self, kind: GroupKind, key: str) -> Tuple[date, date]:
        if kind == GroupKind.DAY:
            day = date.fromisoformat(key)
            return day, day
        if kind == GroupKind.WEEK:
            return periods.week_period(key)
        if kind == GroupKind.MONTH:
            return periods.month_period(key)
        return periods.year_period(key)
