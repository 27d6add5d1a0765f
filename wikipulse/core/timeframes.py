# ==============================================================================
# Timeframes and Aggregation Periods
# ==============================================================================
"""
Calendar helpers shared by the aggregation pipeline.

Provides:
- Resolution of named timeframes to explicit [start, end] pairs
- Period flooring, stepping, keys and labels for time series buckets

All calendar arithmetic happens in the configured timezone. Weeks start on
Sunday; this is a fixed convention, not a locale setting.
"""

from datetime import datetime, timedelta, tzinfo
from typing import Iterator
from zoneinfo import ZoneInfo

from wikipulse.core.models import AggregationPeriod, Timeframe

# Earliest instant considered by the all_time timeframe
ALL_TIME_START = (2020, 1, 1)

_TIMEFRAME_DAYS = {
    Timeframe.LAST_7_DAYS: 7,
    Timeframe.LAST_30_DAYS: 30,
    Timeframe.LAST_90_DAYS: 90,
}


def get_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name."""
    return ZoneInfo(name)


def start_of_day(moment: datetime, tz: tzinfo) -> datetime:
    local = moment.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def get_date_range(
    timeframe: Timeframe, now: datetime, tz: tzinfo
) -> tuple[datetime, datetime]:
    """
    Resolve a timeframe to an inclusive [start, end] pair.

    Every range ends at the last microsecond of today, except `yesterday`
    which covers exactly the previous calendar day.
    """
    today = start_of_day(now, tz)
    end_of_today = today + timedelta(days=1) - timedelta(microseconds=1)

    if timeframe == Timeframe.TODAY:
        return today, end_of_today
    if timeframe == Timeframe.YESTERDAY:
        return today - timedelta(days=1), today - timedelta(microseconds=1)
    if timeframe in _TIMEFRAME_DAYS:
        return today - timedelta(days=_TIMEFRAME_DAYS[timeframe]), end_of_today

    year, month, day = ALL_TIME_START
    return datetime(year, month, day, tzinfo=tz), end_of_today


def in_range(moment: datetime, start: datetime, end: datetime) -> bool:
    return start <= moment <= end


# ==============================================================================
# Aggregation Periods
# ==============================================================================


def floor_to_period(moment: datetime, period: AggregationPeriod, tz: tzinfo) -> datetime:
    """Return the start of the period containing `moment`, in `tz`."""
    local = moment.astimezone(tz)
    if period == AggregationPeriod.HOUR:
        return local.replace(minute=0, second=0, microsecond=0)

    day = local.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == AggregationPeriod.DAY:
        return day
    if period == AggregationPeriod.WEEK:
        # weekday(): Monday=0 ... Sunday=6
        return day - timedelta(days=(day.weekday() + 1) % 7)
    if period == AggregationPeriod.MONTH:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def next_period(moment: datetime, period: AggregationPeriod) -> datetime:
    """Advance a period start to the next period start."""
    if period == AggregationPeriod.HOUR:
        return moment + timedelta(hours=1)
    if period == AggregationPeriod.DAY:
        return moment + timedelta(days=1)
    if period == AggregationPeriod.WEEK:
        return moment + timedelta(days=7)
    if period == AggregationPeriod.MONTH:
        if moment.month == 12:
            return moment.replace(year=moment.year + 1, month=1)
        return moment.replace(month=moment.month + 1)
    return moment.replace(year=moment.year + 1)


def period_key(moment: datetime, period: AggregationPeriod, tz: tzinfo) -> datetime:
    """Hashable bucket key: the naive local start of the containing period."""
    return floor_to_period(moment, period, tz).replace(tzinfo=None)


def iter_periods(
    start: datetime, end: datetime, period: AggregationPeriod, tz: tzinfo
) -> Iterator[datetime]:
    """Yield every period start from the one containing `start` through `end`."""
    current = floor_to_period(start, period, tz)
    while current <= end:
        yield current
        current = next_period(current, period)


def format_period_label(moment: datetime, period: AggregationPeriod) -> str:
    if period == AggregationPeriod.HOUR:
        return f"{moment.hour}:00"
    if period == AggregationPeriod.DAY:
        return f"{moment:%b} {moment.day}"
    if period == AggregationPeriod.WEEK:
        return f"Week of {moment:%b} {moment.day}"
    if period == AggregationPeriod.MONTH:
        return f"{moment:%B %Y}"
    return str(moment.year)
