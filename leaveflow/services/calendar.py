# ruff: noqa: TC003
from __future__ import annotations

from datetime import date, timedelta
from typing import Protocol, runtime_checkable

from leaveflow.services.employee import EmployeeInfo

_DEFAULT_WEEKEND = (5, 6)


@runtime_checkable
class WorkingDayCalendar(Protocol):
    """Interface for the holiday-aware calendar."""

    async def working_days(self, start: date, end: date, employee: EmployeeInfo | None) -> int:
        """Count working days in the inclusive range ``[start, end]``."""
        ...


class WeekdayCalendar:
    """Counts days outside the employee's weekend, minus seeded holidays."""

    def __init__(self, holidays: set[date] | None = None) -> None:
        self._holidays: set[date] = set(holidays or ())

    def add_holiday(self, day: date) -> None:
        self._holidays.add(day)

    async def working_days(self, start: date, end: date, employee: EmployeeInfo | None) -> int:
        weekend = employee.weekend_days if employee is not None else _DEFAULT_WEEKEND
        count = 0
        current = start
        while current <= end:
            if current.weekday() not in weekend and current not in self._holidays:
                count += 1
            current += timedelta(days=1)
        return count


_calendar: WorkingDayCalendar = WeekdayCalendar()


def get_calendar() -> WorkingDayCalendar:
    """Return the active working-day calendar."""
    return _calendar


def set_calendar(calendar: WorkingDayCalendar) -> None:
    """Override the calendar (for testing or production wiring)."""
    global _calendar
    _calendar = calendar
