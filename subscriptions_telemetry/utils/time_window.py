"""
Month-boundary normalization for reporting windows.

Monthly reports must never include a partial month: a window running from
the 17th of one month to the 3rd of another would under-report both edge
months. Every query window is therefore widened to whole calendar months in
UTC before it reaches storage.
"""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

Timestamp = Union[int, float, datetime]

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class TimeWindow(BaseModel):
    """
    A reporting window aligned to whole UTC months.

    Attributes:
        start: First instant of the first month ('YYYY-MM-DD 00:00:00')
        end: Last second of the last month ('YYYY-MM-DD 23:59:59')
    """

    model_config = ConfigDict(frozen=True)

    start: str = Field(description="First instant of the window, UTC")
    end: str = Field(description="Last second of the window, UTC")

    @property
    def end_exclusive(self) -> str:
        """First instant after the window, used as an exclusive upper bound."""
        end = datetime.strptime(self.end, DATETIME_FORMAT) + timedelta(seconds=1)
        return end.strftime(DATETIME_FORMAT)


def to_utc(value: Timestamp) -> datetime:
    """Convert an epoch timestamp or datetime to an aware UTC datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.fromtimestamp(value, tz=timezone.utc)


def normalize_to_month_boundaries(start: Timestamp, end: Timestamp) -> TimeWindow:
    """
    Widen a timestamp range to full month boundaries in UTC.

    Args:
        start: Start of the range (epoch seconds or datetime)
        end: End of the range (epoch seconds or datetime)

    Returns:
        TimeWindow from 00:00:00 on the first day of start's month to
        23:59:59 on the last day of end's month
    """
    start_utc = to_utc(start)
    end_utc = to_utc(end)

    month_start = start_utc.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    last_day = calendar.monthrange(end_utc.year, end_utc.month)[1]
    month_end = end_utc.replace(day=last_day, hour=23, minute=59, second=59, microsecond=0)

    return TimeWindow(
        start=month_start.strftime(DATETIME_FORMAT),
        end=month_end.strftime(DATETIME_FORMAT),
    )
