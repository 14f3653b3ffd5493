"""
Free-text birthday parsing

Turns spreadsheet cells such as "John Doe 1990-05-15", "Alyssa S. May 22" or a
("Roland D", "Dec 2") pair into BirthdayRecord instances. Unparseable input is
an everyday occurrence (header rows, blank cells), so every entry point
returns None or skips the input instead of raising.
"""

import re
import logging
from typing import Iterable, List, Optional, Tuple

from bdaybot.dates import is_valid_month_day, month_from_name
from bdaybot.models import BirthdayRecord

logger = logging.getLogger(__name__)

# "<name> 1990-05-15" or "<name> 05-15"; the year group needs its trailing dash
ISO_PATTERN = re.compile(r'^(.+?)\s+(?:(\d{4})-)?(\d{1,2})-(\d{1,2})$')

# "<name> May 15", "<name> May 15, 1990" or "<name> May 15 1990"
MONTH_NAME_PATTERN = re.compile(r'^(.+?)\s+([A-Za-z]+)\s+(\d{1,2})(?:(?:,\s*|\s+)(\d{4}))?$')

# Same grammars without a name, for the date cell of a (name, date) pair
ISO_DATE_PATTERN = re.compile(r'^(?:(\d{4})-)?(\d{1,2})-(\d{1,2})$')
MONTH_NAME_DATE_PATTERN = re.compile(r'^([A-Za-z]+)\s+(\d{1,2})(?:(?:,\s*|\s+)(\d{4}))?$')

TRAILING_PUNCTUATION = re.compile(r'[.,;:!?]+$')
WHITESPACE = re.compile(r'\s+')

DateParts = Tuple[int, int, Optional[int]]


def sanitize_name(name: Optional[str]) -> str:
    """Strip trailing punctuation, collapse whitespace and trim"""
    if not name:
        return ''
    sanitized = TRAILING_PUNCTUATION.sub('', name.strip()).strip()
    return WHITESPACE.sub(' ', sanitized)


def split_name(name: str) -> Tuple[str, Optional[str]]:
    """
    Split a name into (first, last); the last token is the last name

    Both parts are sanitized on their own, so "Smith, Mary Ann" gives
    ("Smith, Mary", "Ann") while "Doe, John" gives ("Doe", "John").
    """
    tokens = sanitize_name(name).split(' ')
    if not tokens[0]:
        return '', None
    if len(tokens) == 1:
        return tokens[0], None
    first_name = sanitize_name(' '.join(tokens[:-1]))
    last_name = sanitize_name(tokens[-1]) or None
    if not first_name:
        return last_name or '', None
    return first_name, last_name


def _date_parts(month: int, day: int, year: Optional[int]) -> Optional[DateParts]:
    if not is_valid_month_day(month, day, year):
        return None
    return month, day, year


def _iso_parts(year: Optional[str], month: str, day: str) -> Optional[DateParts]:
    return _date_parts(int(month), int(day), int(year) if year else None)


def _month_name_parts(month_name: str, day: str, year: Optional[str]) -> Optional[DateParts]:
    month = month_from_name(month_name)
    if month is None:
        return None
    return _date_parts(month, int(day), int(year) if year else None)


def _build_record(name: str, parts: Optional[DateParts]) -> Optional[BirthdayRecord]:
    if parts is None:
        return None
    first_name, last_name = split_name(name)
    if not first_name:
        return None
    month, day, year = parts
    return BirthdayRecord(first_name=first_name, last_name=last_name, month=month, day=day, year=year)


def parse(text: Optional[str]) -> Optional[BirthdayRecord]:
    """Parse a single cell holding a name followed by a date"""
    if not text or not isinstance(text, str):
        return None
    trimmed = text.strip()

    match = ISO_PATTERN.match(trimmed)
    if match:
        name, year, month, day = match.groups()
        return _build_record(name, _iso_parts(year, month, day))

    match = MONTH_NAME_PATTERN.match(trimmed)
    if match:
        name, month_name, day, year = match.groups()
        return _build_record(name, _month_name_parts(month_name, day, year))

    return None


def parse_date_text(text: Optional[str]) -> Optional[DateParts]:
    """Parse a date cell into (month, day, year-or-None)"""
    if not text or not isinstance(text, str):
        return None
    trimmed = text.strip()

    match = ISO_DATE_PATTERN.match(trimmed)
    if match:
        return _iso_parts(*match.groups())

    match = MONTH_NAME_DATE_PATTERN.match(trimmed)
    if match:
        return _month_name_parts(*match.groups())

    return None


def parse_pair(name: Optional[str], date_text: Optional[str]) -> Optional[BirthdayRecord]:
    """Parse a (name, date) pair read from two adjacent cells"""
    if not name or not isinstance(name, str) or not name.strip():
        return None
    return _build_record(name, parse_date_text(date_text))


def parse_row(cells: Iterable[Optional[str]]) -> List[BirthdayRecord]:
    """
    Parse a spreadsheet row of alternating (name, date) cells

    Example row: ["", "", "Roland D", "Dec 2", "", "", "Tyler L", "June 1"]
    yields Roland D (Dec 2) and Tyler L (June 1).
    """
    cells = ['' if cell is None else str(cell) for cell in cells]
    records = []
    for index in range(0, len(cells) - 1, 2):
        record = parse_pair(cells[index], cells[index + 1])
        if record is None:
            if cells[index].strip() or cells[index + 1].strip():
                logger.debug(f"Skipping unparseable pair: {cells[index]!r}, {cells[index + 1]!r}")
            continue
        records.append(record)
    return records


def format_birthday(record: BirthdayRecord) -> str:
    """Canonical date text: YYYY-MM-DD, or MM-DD without a year"""
    if record.year is not None:
        return f"{record.year:04d}-{record.month:02d}-{record.day:02d}"
    return f"{record.month:02d}-{record.day:02d}"


def format_record(record: BirthdayRecord) -> str:
    """Canonical single-cell text that parse() reads back"""
    return f"{record.full_name} {format_birthday(record)}"
