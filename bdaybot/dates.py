"""
Date and timezone helpers for the configured timezone
"""

import calendar
from datetime import MAXYEAR, MINYEAR, date, datetime, timedelta
from typing import Iterator, Optional, Tuple

import pytz

MONTH_NAMES = [
    'january', 'february', 'march', 'april', 'may', 'june',
    'july', 'august', 'september', 'october', 'november', 'december',
]

# Leap year used to validate month/day pairs that carry no year
_ANY_LEAP_YEAR = 2000

YEARLY_RULE = 'FREQ=YEARLY'
# Last day of February: Feb 29 in leap years, Feb 28 otherwise
LEAP_DAY_RULE = 'FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=-1'


def get_timezone(name: Optional[str] = None):
    """Resolve a timezone name, falling back to UTC"""
    if not name:
        return pytz.UTC
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def now_in(tz) -> datetime:
    return datetime.now(tz)


def today_in(tz) -> date:
    """Current calendar day in the given timezone"""
    return now_in(tz).date()


def is_valid_month_day(month: int, day: int, year: Optional[int] = None) -> bool:
    if not 1 <= month <= 12 or day < 1:
        return False
    if year is not None and not MINYEAR <= year <= MAXYEAR:
        return False
    check_year = year if year is not None else _ANY_LEAP_YEAR
    return day <= calendar.monthrange(check_year, month)[1]


def concrete_date(month: int, day: int, year: int) -> date:
    """Build a date, moving Feb 29 to Feb 28 in non-leap years"""
    if month == 2 and day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return date(year, month, day)


def month_from_name(name: str) -> Optional[int]:
    """Match a month name (3+ letters) by prefix, first match in calendar order wins"""
    lowered = name.strip().lower()
    if len(lowered) < 3 or not lowered.isalpha():
        return None
    for index, month_name in enumerate(MONTH_NAMES):
        if month_name.startswith(lowered):
            return index + 1
    return None


def month_bounds(day: date) -> Tuple[date, date]:
    """First and last day of the month containing the given day"""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def is_first_day_of_month(day: date) -> bool:
    return day.day == 1


def days_between(start: date, end: date) -> Iterator[date]:
    """Every day strictly after start and strictly before end"""
    current = start + timedelta(days=1)
    while current < end:
        yield current
        current += timedelta(days=1)


def format_short(day: date) -> str:
    """e.g. 'May 15'"""
    return f"{calendar.month_abbr[day.month]} {day.day}"


def format_month_year(day: date) -> str:
    return f"{calendar.month_name[day.month]} {day.year}"


def is_leap_day(month: int, day: int) -> bool:
    return (month, day) == (2, 29)


def latest_leap_year(year: int) -> int:
    """The given year or the closest leap year before it"""
    while not calendar.isleap(year):
        year -= 1
    return year


def yearly_rule(start: date) -> str:
    """RRULE for a yearly entry; a Feb 29 start also recurs on Feb 28 of common years"""
    if is_leap_day(start.month, start.day):
        return LEAP_DAY_RULE
    return YEARLY_RULE
