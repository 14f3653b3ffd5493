"""
Message formatting for birthday greetings and the monthly digest
"""

from collections import OrderedDict
from datetime import date
from typing import List

from bdaybot.dates import format_month_year, format_short
from bdaybot.models import BirthdayRecord


def join_names(names: List[str]) -> str:
    """'A', 'A and B', 'A, B, and C'"""
    if len(names) <= 1:
        return ''.join(names)
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return f"{', '.join(names[:-1])}, and {names[-1]}"


def format_birthday_message(records: List[BirthdayRecord]) -> str:
    """Single greeting combining everyone whose birthday is today"""
    if not records:
        return ''
    names = join_names([record.first_name for record in records])
    return f"Happy birthday {names}! 🎂"


def format_belated_message(records: List[BirthdayRecord], on_date: date) -> str:
    """Greeting for a day the daily run missed"""
    if not records:
        return ''
    names = join_names([record.first_name for record in records])
    return f"Happy belated birthday {names}! 🎂 ({format_short(on_date)})"


def format_monthly_digest(records: List[BirthdayRecord], month_day: date) -> str:
    """All birthdays of a month grouped by date, with aligned date prefixes"""
    if not records:
        return f"📅 No birthdays scheduled for {format_month_year(month_day)}."

    by_date = OrderedDict()
    for record in sorted(records, key=lambda r: (r.month, r.day, r.full_name)):
        key = format_short(record.date_in(month_day.year))
        by_date.setdefault(key, []).append(record.full_name)

    width = max(len(f"{key}: ") for key in by_date)
    lines = [f"{key}: ".ljust(width) + ', '.join(names) for key, names in by_date.items()]
    return "Upcoming birthdays 🎂\n\n" + '\n'.join(lines)
