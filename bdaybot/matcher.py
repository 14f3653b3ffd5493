"""
Birthday detection and record matching for calendar entries
"""

import re
from typing import Optional

from bdaybot.models import BirthdayRecord, ExternalEvent
from bdaybot.parser import sanitize_name, split_name

EXCLUDED_KEYWORDS = ('meeting', 'reminder', 'appointment')

NAME_PATTERNS = [
    re.compile(r"^(.+?)(?:['’]s)?\s*(?:birthday|birth)", re.IGNORECASE),
    re.compile(r"birthday[:\s]+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+birthday", re.IGNORECASE),
]

BORN_PATTERN = re.compile(r'born (\d{4})')

# Emoji and other decoration in front of the name
LEADING_DECORATION = re.compile(r'^[^\w]+', re.UNICODE)


def is_yearly(event: ExternalEvent) -> bool:
    return bool(event.recurrence_rule) and 'YEARLY' in event.recurrence_rule.upper()


def is_birthday_event(event: ExternalEvent) -> bool:
    """Check if a calendar entry represents a birthday"""
    title = (event.title or '').lower()
    description = (event.description or '').lower()
    if 'birthday' in title or 'birthday' in description:
        return True

    # Some calendars store birthdays as untitled yearly all-day entries
    if not is_yearly(event) or not event.all_day:
        return False
    return not any(keyword in title for keyword in EXCLUDED_KEYWORDS)


def matches_record(event: ExternalEvent, record: BirthdayRecord) -> bool:
    """Case-insensitive substring match of the record's names against the title"""
    title = (event.title or '').lower()
    if not title:
        return False
    if record.full_name.lower() in title or record.first_name.lower() in title:
        return True
    return bool(record.last_name) and record.last_name.lower() in title


def extract_name(event: ExternalEvent) -> str:
    """Extract the person's name from a birthday entry title"""
    title = (event.title or '').strip()
    for pattern in NAME_PATTERNS:
        match = pattern.search(title)
        if match:
            name = LEADING_DECORATION.sub('', match.group(1)).strip()
            if name:
                return name
    return title


def event_to_record(event: ExternalEvent) -> Optional[BirthdayRecord]:
    """Convert a birthday entry back into a record, recovering 'born YYYY' from the description"""
    name = sanitize_name(LEADING_DECORATION.sub('', extract_name(event)))
    first_name, last_name = split_name(name)
    if not first_name:
        return None

    year = None
    born = BORN_PATTERN.search(event.description or '')
    if born:
        year = int(born.group(1))

    return BirthdayRecord(
        first_name=first_name,
        last_name=last_name,
        month=event.start_date.month,
        day=event.start_date.day,
        year=year,
    )
