"""
Working Calendar
================

The business week, daily working window and holiday set that every SLA
computation is measured against.

A calendar is immutable and shared read-only by all evaluations. Changing
it means redeploying with a new configuration file.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import FrozenSet, Tuple
from zoneinfo import ZoneInfo

from grievance_sla.core import InvalidCalendarConfigException


WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class WorkingCalendar:
    """
    Immutable value object describing when work happens.

    Attributes:
        day_start_hour: Local hour the working window opens (inclusive)
        day_end_hour: Local hour the working window closes (exclusive)
        working_weekdays: ``date.weekday()`` numbers, 0 = Monday
        holidays: Calendar dates that are never working days
        timezone: Single deployment-wide timezone
    """

    day_start_hour: int = 9
    day_end_hour: int = 17
    working_weekdays: FrozenSet[int] = frozenset({0, 1, 2, 3, 4, 5})
    holidays: FrozenSet[date] = frozenset()
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("Asia/Kolkata"))

    def __post_init__(self):
        """Reject calendars that would silently produce wrong SLA numbers."""
        if not (0 <= self.day_start_hour <= 24 and 0 <= self.day_end_hour <= 24):
            raise InvalidCalendarConfigException(
                "Working hours must lie within 0..24",
                {"day_start_hour": self.day_start_hour, "day_end_hour": self.day_end_hour}
            )
        if self.day_start_hour >= self.day_end_hour:
            raise InvalidCalendarConfigException(
                "day_start_hour must be before day_end_hour",
                {"day_start_hour": self.day_start_hour, "day_end_hour": self.day_end_hour}
            )
        if not self.working_weekdays:
            raise InvalidCalendarConfigException("working_weekdays cannot be empty")
        invalid = [d for d in self.working_weekdays if d not in range(7)]
        if invalid:
            raise InvalidCalendarConfigException(
                "working_weekdays must be numbers 0 (Monday) .. 6 (Sunday)",
                {"invalid": sorted(invalid)}
            )

        # Accept plain sets/lists from callers but keep the value hashable
        object.__setattr__(self, "working_weekdays", frozenset(self.working_weekdays))
        object.__setattr__(self, "holidays", frozenset(self.holidays))

    @property
    def window_hours(self) -> float:
        """Length of one full working day in hours."""
        return float(self.day_end_hour - self.day_start_hour)

    def localize(self, instant: datetime) -> datetime:
        """
        Express an instant in the calendar timezone.

        Naive datetimes are taken as calendar-local wall time.
        """
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self.timezone)
        return instant.astimezone(self.timezone)

    def is_working_day(self, day: date) -> bool:
        """Working weekday and not a holiday."""
        return day.weekday() in self.working_weekdays and day not in self.holidays

    def window_for(self, day: date) -> Tuple[datetime, datetime]:
        """Return the ``[start, end)`` working window of ``day``."""
        midnight = datetime.combine(day, time.min, tzinfo=self.timezone)
        return (
            midnight + timedelta(hours=self.day_start_hour),
            midnight + timedelta(hours=self.day_end_hour),
        )

    def is_working_time(self, instant: datetime) -> bool:
        """Check if an instant falls inside a working window."""
        local = self.localize(instant)
        if not self.is_working_day(local.date()):
            return False
        start, end = self.window_for(local.date())
        return start <= local < end

    def next_working_time(self, instant: datetime) -> datetime:
        """
        Return ``instant`` if it is working time, otherwise the start of the
        next working window.
        """
        local = self.localize(instant)
        day = local.date()
        if self.is_working_day(day):
            start, end = self.window_for(day)
            if local < start:
                return start
            if local < end:
                return local
        day += timedelta(days=1)
        while not self.is_working_day(day):
            day += timedelta(days=1)
        return self.window_for(day)[0]

    def working_days_between(self, start: date, end: date) -> int:
        """Count working days in the inclusive date range."""
        count = 0
        day = start
        while day <= end:
            if self.is_working_day(day):
                count += 1
            day += timedelta(days=1)
        return count
