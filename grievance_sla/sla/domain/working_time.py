"""
Working-Time Calculator
========================

Pure functions measuring time in business hours.

Both operations walk the calendar one day at a time and only count the
part of each working window that overlaps the requested interval. Every
instant is first expressed in the calendar timezone, so windows are
compared as local wall time.
"""

from datetime import datetime, timedelta

from grievance_sla.sla.domain.calendar import WorkingCalendar
from grievance_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SECONDS_PER_HOUR = 3600.0


class WorkingTimeCalculator:
    """
    Stateless working-time arithmetic.

    Safe to call concurrently; the only input state is the immutable
    calendar.
    """

    @staticmethod
    def elapsed_working_hours(
        calendar: WorkingCalendar,
        start: datetime,
        end: datetime
    ) -> float:
        """
        Working hours between two instants.

        Args:
            calendar: Working calendar to measure against
            start: Interval start
            end: Interval end

        Returns:
            Hours rounded to 2 decimals; 0.0 when ``end`` is not after ``start``
        """
        start = calendar.localize(start)
        end = calendar.localize(end)

        if end <= start:
            if end < start:
                logger.debug(
                    "End before start, treating elapsed working time as zero",
                    extra={"start": start.isoformat(), "end": end.isoformat()}
                )
            return 0.0

        total_seconds = 0.0
        day = start.date()
        last_day = end.date()

        while day <= last_day:
            if calendar.is_working_day(day):
                window_start, window_end = calendar.window_for(day)
                if day == start.date():
                    window_start = max(window_start, start)
                if day == last_day:
                    window_end = min(window_end, end)
                if window_start < window_end:
                    total_seconds += (window_end - window_start).total_seconds()
            day += timedelta(days=1)

        return round(total_seconds / SECONDS_PER_HOUR, 2)

    @staticmethod
    def add_working_hours(
        calendar: WorkingCalendar,
        start: datetime,
        hours: float
    ) -> datetime:
        """
        Instant at which ``hours`` of working time after ``start`` are used up.

        A start before the day's window is moved to the window start; a start
        after the window consumes nothing that day.

        Args:
            calendar: Working calendar to measure against
            start: Instant to count from
            hours: Non-negative working-hour budget

        Returns:
            Aware datetime in the calendar timezone
        """
        current = calendar.localize(start)
        remaining = max(0.0, float(hours)) * SECONDS_PER_HOUR

        if remaining == 0:
            return current

        while True:
            day = current.date()
            if calendar.is_working_day(day):
                window_start, window_end = calendar.window_for(day)
                begin = max(window_start, current)
                if begin < window_end:
                    available = (window_end - begin).total_seconds()
                    if remaining <= available:
                        return begin + timedelta(seconds=remaining)
                    remaining -= available
            current = calendar.window_for(day + timedelta(days=1))[0]
