"""
Recurrence calculator

Pure computation of the next occurrence of a recurring task schedule.
Given a pattern (cadence, interval, time of day, timezone) and a reference
instant, ``compute_next_run`` returns the next UTC instant strictly after
the reference at which the schedule should fire. It never reads the clock,
so repeated calls with the same inputs return the same result.

Weekday indices count from Sunday: 0 = Sunday, 1 = Monday ... 6 = Saturday.
"""

from __future__ import annotations

import calendar
import zoneinfo
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Any, Dict, List, Optional, Tuple

from core.exceptions import InvalidRecurrencePattern
from core.timezone_utils import ensure_aware

DAILY = 'daily'
WEEKLY = 'weekly'
MONTHLY = 'monthly'
YEARLY = 'yearly'
CUSTOM = 'custom'

RECURRENCE_TYPES = (DAILY, WEEKLY, MONTHLY, YEARLY, CUSTOM)


def _as_int(data: Dict[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRecurrencePattern(f"'{key}' must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRecurrencePattern(f"'{key}' must be an integer.")


@dataclass(frozen=True)
class RecurrencePattern:
    type: str
    interval: int = 1
    hour: int = 0
    minute: int = 0
    timezone: str = 'Asia/Bangkok'
    days_of_week: Tuple[int, ...] = ()
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None

    def __post_init__(self):
        if self.type not in RECURRENCE_TYPES:
            raise InvalidRecurrencePattern(
                f"Unknown recurrence type '{self.type}'. Expected one of: {', '.join(RECURRENCE_TYPES)}."
            )
        if self.type == CUSTOM:
            raise InvalidRecurrencePattern(
                "Custom recurrence patterns are not supported; use daily, weekly, monthly or yearly."
            )
        if self.interval < 1:
            raise InvalidRecurrencePattern("'interval' must be a positive integer.")
        if not 0 <= self.hour <= 23:
            raise InvalidRecurrencePattern("'hour' must be between 0 and 23.")
        if not 0 <= self.minute <= 59:
            raise InvalidRecurrencePattern("'minute' must be between 0 and 59.")
        if any(not 0 <= d <= 6 for d in self.days_of_week):
            raise InvalidRecurrencePattern("'days_of_week' entries must be between 0 (Sunday) and 6 (Saturday).")
        if self.type == WEEKLY and not self.days_of_week:
            raise InvalidRecurrencePattern("Weekly patterns need at least one entry in 'days_of_week'.")
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise InvalidRecurrencePattern("'day_of_month' must be between 1 and 31.")
        if self.month_of_year is not None and not 1 <= self.month_of_year <= 12:
            raise InvalidRecurrencePattern("'month_of_year' must be between 1 and 12.")
        try:
            zoneinfo.ZoneInfo(self.timezone)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            raise InvalidRecurrencePattern(f"Unknown timezone '{self.timezone}'.")

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_timezone: Optional[str] = None) -> 'RecurrencePattern':
        """Build a validated pattern from its stored/JSON form."""
        if not isinstance(data, dict):
            raise InvalidRecurrencePattern("Recurrence pattern must be an object.")

        pattern_type = str(data.get('type') or '').strip().lower()
        days = data.get('days_of_week') or []
        if not isinstance(days, (list, tuple)):
            raise InvalidRecurrencePattern("'days_of_week' must be a list of integers.")
        try:
            days_of_week = tuple(sorted({int(d) for d in days}))
        except (TypeError, ValueError):
            raise InvalidRecurrencePattern("'days_of_week' must be a list of integers.")

        return cls(
            type=pattern_type,
            interval=_as_int(data, 'interval', 1),
            hour=_as_int(data, 'hour', 0),
            minute=_as_int(data, 'minute', 0),
            timezone=str(data.get('timezone') or default_timezone or 'Asia/Bangkok'),
            days_of_week=days_of_week,
            day_of_month=_as_int(data, 'day_of_month'),
            month_of_year=_as_int(data, 'month_of_year'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'type': self.type,
            'interval': self.interval,
            'hour': self.hour,
            'minute': self.minute,
            'timezone': self.timezone,
        }
        if self.days_of_week:
            data['days_of_week'] = list(self.days_of_week)
        if self.day_of_month is not None:
            data['day_of_month'] = self.day_of_month
        if self.month_of_year is not None:
            data['month_of_year'] = self.month_of_year
        return data


def _clamped_date(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def _add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    index = (year * 12 + (month - 1)) + months
    return index // 12, index % 12 + 1


def _weekday_index(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def _matches_date(pattern: RecurrencePattern, day: date) -> bool:
    """Whether the pattern has an occurrence on this local calendar date."""
    if pattern.type == DAILY:
        return True
    if pattern.type == WEEKLY:
        return _weekday_index(day) in pattern.days_of_week
    if pattern.type == MONTHLY:
        return day == _clamped_date(day.year, day.month, pattern.day_of_month or 1)
    if pattern.type == YEARLY:
        month = pattern.month_of_year or day.month
        return day == _clamped_date(day.year, month, pattern.day_of_month or day.day)
    return False


def _advance(pattern: RecurrencePattern, today: date) -> date:
    """Next occurrence date strictly after ``today``."""
    if pattern.type == DAILY:
        return today + timedelta(days=pattern.interval)

    if pattern.type == WEEKLY:
        for gap in range(1, 7):
            if (_weekday_index(today) + gap) % 7 in pattern.days_of_week:
                return today + timedelta(days=gap)
        # Only today's weekday is in the set: jump whole weeks
        return today + timedelta(weeks=pattern.interval)

    if pattern.type == MONTHLY:
        target_day = pattern.day_of_month or 1
        this_month = _clamped_date(today.year, today.month, target_day)
        if this_month > today:
            return this_month
        year, month = _add_months(today.year, today.month, pattern.interval)
        return _clamped_date(year, month, target_day)

    # YEARLY
    month = pattern.month_of_year or today.month
    day = pattern.day_of_month or today.day
    this_year = _clamped_date(today.year, month, day)
    if this_year > today:
        return this_year
    return _clamped_date(today.year + pattern.interval, month, day)


def _occurrence(pattern: RecurrencePattern, day: date, tz: zoneinfo.ZoneInfo) -> datetime:
    local = datetime.combine(day, time(pattern.hour, pattern.minute), tzinfo=tz)
    return local.astimezone(dt_timezone.utc)


def compute_next_run(pattern, reference: datetime) -> datetime:
    """
    Next run instant (UTC) for ``pattern`` strictly after ``reference``.

    Today's occurrence (in the pattern's timezone) is used when today is a
    matching date and its time has not yet passed; otherwise the date is
    advanced according to the pattern type. Naive references are treated as UTC.
    """
    if not isinstance(pattern, RecurrencePattern):
        pattern = RecurrencePattern.from_dict(pattern)

    tz = zoneinfo.ZoneInfo(pattern.timezone)
    reference_utc = ensure_aware(reference).astimezone(dt_timezone.utc)
    today = reference_utc.astimezone(tz).date()

    if _matches_date(pattern, today):
        candidate = _occurrence(pattern, today, tz)
        if candidate > reference_utc:
            return candidate

    return _occurrence(pattern, _advance(pattern, today), tz)


def upcoming_runs(pattern, reference: datetime, count: int = 5) -> List[datetime]:
    """The next ``count`` run instants, each computed from the previous one."""
    if not isinstance(pattern, RecurrencePattern):
        pattern = RecurrencePattern.from_dict(pattern)
    runs = []
    current = reference
    for _ in range(count):
        current = compute_next_run(pattern, current)
        runs.append(current)
    return runs
