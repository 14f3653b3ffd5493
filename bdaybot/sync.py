"""
Spreadsheet to calendar birthday synchronization
"""

import logging
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from bdaybot import matcher, parser
from bdaybot.dates import is_leap_day, latest_leap_year, yearly_rule
from bdaybot.errors import BirthdayBotError, ErrorKind
from bdaybot.models import BirthdayRecord, ExternalEvent, SyncResult

logger = logging.getLogger(__name__)

DEFAULT_TITLE_TEMPLATE = "🎂 {name}'s Birthday"
DEFAULT_DESCRIPTION_TEMPLATE = "Birthday of {name}"


def normalize_records(items: Iterable) -> List[BirthdayRecord]:
    """Accept parsed records, raw rows (lists of cells) or raw single-cell text"""
    records = []
    for item in items:
        if isinstance(item, BirthdayRecord):
            records.append(item)
        elif isinstance(item, str):
            record = parser.parse(item)
            if record is not None:
                records.append(record)
        elif isinstance(item, (list, tuple)):
            records.extend(parser.parse_row(item))
        else:
            logger.debug(f"Ignoring unsupported source item: {item!r}")
    return records


class SyncEngine:
    """Writes source birthdays into the target calendar without duplicating them"""

    def __init__(self, clock: Callable[[], date], config: Optional[Dict] = None, dry_run: bool = False):
        config = config or {}
        self.clock = clock
        self.title_template = config.get('event_title_template', DEFAULT_TITLE_TEMPLATE)
        self.description_template = config.get('event_description_template', DEFAULT_DESCRIPTION_TEMPLATE)
        self.dry_run = dry_run

    def format_title(self, record: BirthdayRecord) -> str:
        try:
            return self.title_template.format(name=record.full_name)
        except (KeyError, IndexError, ValueError) as e:
            logger.warning(f"Invalid title template '{self.title_template}': {e}, using default")
            return DEFAULT_TITLE_TEMPLATE.format(name=record.full_name)

    def format_description(self, record: BirthdayRecord) -> str:
        try:
            description = self.description_template.format(name=record.full_name)
        except (KeyError, IndexError, ValueError) as e:
            logger.warning(f"Invalid description template '{self.description_template}': {e}, using default")
            description = DEFAULT_DESCRIPTION_TEMPLATE.format(name=record.full_name)
        # The year is embedded as text so it can be recovered on read
        if record.year is not None:
            description += f" (born {record.year})"
        return description

    def event_date(self, record: BirthdayRecord) -> date:
        """Start date of the yearly entry; the current year stands in for an unknown one"""
        if record.year is not None:
            return record.date_in(record.year)
        year = self.clock().year
        # Leap-day entries start on a real Feb 29 so the recurrence keeps the day
        if is_leap_day(record.month, record.day):
            year = latest_leap_year(year)
        return record.date_in(year)

    @staticmethod
    def _is_duplicate(event: ExternalEvent, record: BirthdayRecord) -> bool:
        """A birthday entry on the same day whose title mentions the person"""
        same_day = (event.start_date.month, event.start_date.day) == (record.month, record.day)
        if not same_day and is_leap_day(record.month, record.day):
            same_day = (event.start_date.month, event.start_date.day) == (2, 28)
        return same_day and matcher.is_birthday_event(event) and matcher.matches_record(event, record)

    def _read_source(self, source) -> List[BirthdayRecord]:
        try:
            items = source.read(skip_header_row=True)
        except BirthdayBotError:
            raise
        except Exception as e:
            raise BirthdayBotError(ErrorKind.READ_FAILURE, "Could not read birthdays from source", cause=e)
        return normalize_records(items)

    def _read_target(self, target, start_date: Optional[date], end_date: Optional[date]) -> List[ExternalEvent]:
        try:
            return list(target.read(start_date=start_date, end_date=end_date))
        except BirthdayBotError:
            raise
        except Exception as e:
            raise BirthdayBotError(ErrorKind.READ_FAILURE, "Could not read existing calendar entries", cause=e)

    def sync(self, source, target, start_date: Optional[date] = None, end_date: Optional[date] = None) -> SyncResult:
        """Add every source birthday that has no matching target entry"""
        for collaborator in (source, target):
            if hasattr(collaborator, 'is_available') and not collaborator.is_available():
                name = collaborator.get_metadata()['name'] if hasattr(collaborator, 'get_metadata') else collaborator
                raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE, f"{name} is not configured")

        records = self._read_source(source)
        existing = self._read_target(target, start_date, end_date)
        logger.info(f"Syncing {len(records)} source birthdays against {len(existing)} calendar entries")

        result = SyncResult()
        for record in records:
            if any(self._is_duplicate(event, record) for event in existing):
                logger.debug(f"Skipping {record.full_name}: calendar entry already exists")
                result.skipped += 1
                continue

            try:
                title = self.format_title(record)
                description = self.format_description(record)
                start = self.event_date(record)

                if self.dry_run:
                    logger.info(f"[dry run] Would create '{title}' on {start.isoformat()}")
                    event_id = f"dry-run-{len(existing)}"
                else:
                    event_id = target.create(title, start, description)
                    logger.info(f"Created birthday entry for {record.full_name} on {start.isoformat()}")
            except Exception as e:
                logger.error(f"Error creating birthday entry for {record.full_name}: {e}")
                result.errors += 1
                continue

            # Later rows of the same batch must see this entry
            existing.append(ExternalEvent(
                id=str(event_id),
                title=title,
                start_date=start,
                description=description,
                recurrence_rule=yearly_rule(start),
            ))
            result.added += 1

        logger.info(f"Sync finished: {result.added} added, {result.skipped} skipped, {result.errors} errors")
        return result


class TextSource:
    """Birthdays typed by hand, one "<name> <date>" entry per item"""

    def __init__(self, entries: Iterable[str]):
        self.entries = list(entries)

    def read(self, start_date: Optional[date] = None, end_date: Optional[date] = None,
             skip_header_row: bool = True) -> List[str]:
        return list(self.entries)

    def is_available(self) -> bool:
        return True

    def get_metadata(self) -> Dict:
        return {'name': 'text', 'type': 'text', 'capabilities': ['read']}
