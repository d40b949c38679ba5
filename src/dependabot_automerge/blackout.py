"""
Blackout period evaluation for Dependabot Automerge.

A blackout configuration is a comma-separated list of period expressions.
When the current local time falls inside any of them the run is skipped.
Supported expressions, tried in this order for every token:

- ``Mon 9:00-10:00``            time range on one weekday
- ``2025-12-24/2026-01-05``     inclusive ISO 8601 date range
- ``Dec 24-Jan 5``              month-name date range, may cross a year
- ``T09:00:00/T17:00:00``       ISO 8601 time-of-day range
- ``9:00-17:00``                time-of-day range
- ``Sat``                       whole weekday
- ``May 1``                     single calendar date

Unrecognized expressions are logged and never block a run.
"""

import calendar
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time

import structlog

logger = structlog.get_logger(__name__)

DAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
MONTH_NAMES = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)

_DAY = r"(sun|mon|tue|wed|thu|fri|sat)[a-z]*"
_MONTH = r"([a-z]{3})[a-z]*"
_CLOCK = r"(\d{1,2}):(\d{2})(?::(\d{2}))?"

_DAY_TIME_RANGE = re.compile(rf"^{_DAY}\s+{_CLOCK}\s*-\s*{_CLOCK}$", re.IGNORECASE)
_ISO_DATE_RANGE = re.compile(r"^([^Tt/][^/]*)/([^/]+)$")
_MONTH_DAY_RANGE = re.compile(
    rf"^{_MONTH}\s+(\d{{1,2}})\s*-\s*{_MONTH}\s+(\d{{1,2}})$", re.IGNORECASE
)
_ISO_TIME_RANGE = re.compile(
    r"^T(\d{2}):(\d{2}):(\d{2})/T(\d{2}):(\d{2}):(\d{2})$", re.IGNORECASE
)
_TIME_RANGE = re.compile(rf"^{_CLOCK}\s*-\s*{_CLOCK}$")
_DAY_OF_WEEK = re.compile(rf"^{_DAY}$", re.IGNORECASE)
_SINGLE_DATE = re.compile(rf"^{_MONTH}\s+(\d{{1,2}})$", re.IGNORECASE)


class BlackoutPeriod(ABC):
    """A parsed blackout expression."""

    def __init__(self, expression: str):
        self.expression = expression

    @abstractmethod
    def matches(self, now: datetime) -> bool:
        """Check whether ``now`` falls inside this period."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.expression!r})"


class TimeRangePeriod(BlackoutPeriod):
    """Time-of-day range on the current calendar date."""

    def __init__(self, expression: str, start: time, end: time):
        super().__init__(expression)
        self.start = start
        self.end = end

    def matches(self, now: datetime) -> bool:
        current = now.time().replace(microsecond=0, tzinfo=None)
        if self.start <= self.end:
            return self.start <= current <= self.end
        # Range wraps past midnight, e.g. 22:00-06:00
        return current >= self.start or current <= self.end


class DayTimeRangePeriod(TimeRangePeriod):
    """Time-of-day range restricted to one weekday."""

    def __init__(self, expression: str, weekday: int, start: time, end: time):
        super().__init__(expression, start, end)
        self.weekday = weekday

    def matches(self, now: datetime) -> bool:
        return now.weekday() == self.weekday and super().matches(now)


class DayOfWeekPeriod(BlackoutPeriod):
    """A whole weekday."""

    def __init__(self, expression: str, weekday: int):
        super().__init__(expression)
        self.weekday = weekday

    def matches(self, now: datetime) -> bool:
        return now.weekday() == self.weekday


class DateRangePeriod(BlackoutPeriod):
    """Inclusive ISO 8601 date range compared at day granularity."""

    def __init__(self, expression: str, start: date, end: date):
        super().__init__(expression)
        self.start = start
        self.end = end

    def matches(self, now: datetime) -> bool:
        return self.start <= now.date() <= self.end


class MonthDayRangePeriod(BlackoutPeriod):
    """Calendar range such as ``Dec 24-Jan 5``, re-anchored on every year."""

    def __init__(
        self,
        expression: str,
        start_month: int,
        start_day: int,
        end_month: int,
        end_day: int,
    ):
        super().__init__(expression)
        self.start_month = start_month
        self.start_day = start_day
        self.end_month = end_month
        self.end_day = end_day

    @property
    def crosses_year(self) -> bool:
        return (self.end_month, self.end_day) < (self.start_month, self.start_day)

    def matches(self, now: datetime) -> bool:
        today = now.date()
        year = today.year
        if not self.crosses_year:
            start_year, end_year = year, year
        elif (today.month, today.day) >= (self.start_month, self.start_day):
            start_year, end_year = year, year + 1
        else:
            start_year, end_year = year - 1, year
        start = _anchor(start_year, self.start_month, self.start_day)
        end = _anchor(end_year, self.end_month, self.end_day)
        return start <= today <= end


class SingleDatePeriod(BlackoutPeriod):
    """One calendar date every year, e.g. ``May 1``."""

    def __init__(self, expression: str, month: int, day: int):
        super().__init__(expression)
        self.month = month
        self.day = day

    def matches(self, now: datetime) -> bool:
        return now.month == self.month and now.day == self.day


def _weekday(name: str) -> int:
    return DAY_NAMES.index(name[:3].lower())


def _month(name: str) -> int:
    """Month number for a month name; raises ValueError for unknown names."""
    return MONTH_NAMES.index(name[:3].lower()) + 1


def _clock(hours: str, minutes: str, seconds: str | None) -> time:
    return time(int(hours), int(minutes), int(seconds or 0))


def _anchor(year: int, month: int, day: int) -> date:
    # Feb 29 falls back to Feb 28 outside leap years
    if (month, day) == (2, 29) and not calendar.isleap(year):
        day = 28
    return date(year, month, day)


def _check_calendar_day(month: int, day: int) -> None:
    # Leap year so Feb 29 is accepted
    date(2024, month, day)


def _day_time_range(period: str, match: re.Match) -> BlackoutPeriod:
    day, *clocks = match.groups()
    return DayTimeRangePeriod(
        period, _weekday(day), _clock(*clocks[:3]), _clock(*clocks[3:])
    )


def _iso_date_range(period: str, match: re.Match) -> BlackoutPeriod:
    start, end = (
        datetime.fromisoformat(part.strip()).date() for part in match.groups()
    )
    return DateRangePeriod(period, start, end)


def _month_day_range(period: str, match: re.Match) -> BlackoutPeriod:
    start_month, start_day = _month(match.group(1)), int(match.group(2))
    end_month, end_day = _month(match.group(3)), int(match.group(4))
    _check_calendar_day(start_month, start_day)
    _check_calendar_day(end_month, end_day)
    return MonthDayRangePeriod(period, start_month, start_day, end_month, end_day)


def _iso_time_range(period: str, match: re.Match) -> BlackoutPeriod:
    values = [int(group) for group in match.groups()]
    return TimeRangePeriod(period, time(*values[:3]), time(*values[3:]))


def _time_range(period: str, match: re.Match) -> BlackoutPeriod:
    clocks = match.groups()
    return TimeRangePeriod(period, _clock(*clocks[:3]), _clock(*clocks[3:]))


def _day_of_week(period: str, match: re.Match) -> BlackoutPeriod:
    return DayOfWeekPeriod(period, _weekday(match.group(1)))


def _single_date(period: str, match: re.Match) -> BlackoutPeriod:
    month, day = _month(match.group(1)), int(match.group(2))
    _check_calendar_day(month, day)
    return SingleDatePeriod(period, month, day)


# Grammars in priority order; the first pattern that matches wins.
_GRAMMARS = (
    (_DAY_TIME_RANGE, _day_time_range),
    (_ISO_DATE_RANGE, _iso_date_range),
    (_MONTH_DAY_RANGE, _month_day_range),
    (_ISO_TIME_RANGE, _iso_time_range),
    (_TIME_RANGE, _time_range),
    (_DAY_OF_WEEK, _day_of_week),
    (_SINGLE_DATE, _single_date),
)


def parse_blackout_period(expression: str) -> BlackoutPeriod | None:
    """
    Parse a single blackout expression.

    Args:
        expression: One comma-separated token of the blackout configuration

    Returns:
        The parsed period, or None when the expression is not recognized
        or names an impossible date or time
    """
    period = expression.strip()
    for pattern, build in _GRAMMARS:
        match = pattern.match(period)
        if not match:
            continue
        try:
            return build(period, match)
        except ValueError as e:
            logger.debug("Invalid blackout period", period=period, error=str(e))
            return None
    return None


def is_in_blackout_period(now: datetime, expression: str) -> bool:
    """Check a single blackout expression against ``now``."""
    period = parse_blackout_period(expression)
    if period is None:
        logger.warning(
            "Unrecognized blackout period format. Please use ISO 8601 format.",
            period=expression,
        )
        return False
    return period.matches(now)


def should_run_at_current_time(
    blackout_periods: str | None, now: datetime | None = None
) -> bool:
    """
    Check whether a run may proceed given the configured blackout periods.

    Args:
        blackout_periods: Comma-separated blackout expressions
        now: Instant to evaluate, defaults to the local wall clock

    Returns:
        False if ``now`` falls inside any blackout period, True otherwise
    """
    if not blackout_periods or not blackout_periods.strip():
        return True

    current = now or datetime.now()
    for period in (p.strip() for p in blackout_periods.split(",")):
        if not period:
            continue
        if is_in_blackout_period(current, period):
            logger.info(
                "Current time is within blackout period",
                now=current.isoformat(),
                period=period,
            )
            return False

    return True
