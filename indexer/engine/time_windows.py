"""
Time window arithmetic for leaderboard periods.

Every aggregation window is addressed by the Unix timestamp of its start,
used as an opaque period key:

    - day: 00:00:00 UTC of the calendar day
    - week: the most recent Friday 13:13:00 UTC at or before the timestamp
      (a fixed contract-side anchor, not an ISO week)
    - month: 00:00:00 UTC on the first day of the calendar month

Day *numbers* (timestamp // 86400) are a separate, smaller unit used for
streaks and for matching reward claims to votes.

All functions are pure and depend only on their input, so replays compute
identical keys.
"""

from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from indexer.models.enums import Timeframe

SECONDS_PER_DAY = 86_400

# Friday in datetime.weekday() numbering
WEEK_ANCHOR_WEEKDAY = 4
WEEK_ANCHOR_HOUR = 13
WEEK_ANCHOR_MINUTE = 13


class TimePeriods(NamedTuple):
    """Window start timestamps for one event."""

    day: int
    week: int
    month: int

    def for_timeframe(self, timeframe: Timeframe) -> Optional[int]:
        """Period key of one leaderboard window; None for all-time."""
        if timeframe == Timeframe.DAILY:
            return self.day
        if timeframe == Timeframe.WEEKLY:
            return self.week
        if timeframe == Timeframe.MONTHLY:
            return self.month
        return None


def calculate_day_number(timestamp: int) -> int:
    """Days since the Unix epoch (UTC)."""
    return timestamp // SECONDS_PER_DAY


def day_start(timestamp: int) -> int:
    return calculate_day_number(timestamp) * SECONDS_PER_DAY


def week_start(timestamp: int) -> int:
    """
    Start of the voting week containing ``timestamp``.

    Weeks roll over on Friday at 13:13:00 UTC. A Friday timestamp before the
    rollover still belongs to the week that started the previous Friday.

    >>> week_start(1704464580)  # Fri 2024-01-05 14:23:00 UTC
    1704460380
    """
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    anchor = moment.replace(
        hour=WEEK_ANCHOR_HOUR, minute=WEEK_ANCHOR_MINUTE, second=0, microsecond=0
    )

    days_back = (moment.weekday() - WEEK_ANCHOR_WEEKDAY) % 7
    if days_back == 0 and moment < anchor:
        days_back = 7

    return int((anchor - timedelta(days=days_back)).timestamp())


def month_start(timestamp: int) -> int:
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    first = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return int(first.timestamp())


def get_time_periods(timestamp: int) -> TimePeriods:
    """
    Map a block timestamp to its day, week and month period keys.

    Args:
        timestamp: Unix timestamp in seconds

    Returns:
        TimePeriods(day, week, month), each a window start timestamp
    """
    return TimePeriods(
        day=day_start(timestamp),
        week=week_start(timestamp),
        month=month_start(timestamp),
    )
