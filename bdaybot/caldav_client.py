"""
CalDAV calendar holding the birthday events
"""

import re
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import caldav
import vobject
from caldav.lib.error import DAVError, NotFoundError

from bdaybot.dates import yearly_rule
from bdaybot.errors import BirthdayBotError, ErrorKind
from bdaybot.models import ExternalEvent

logger = logging.getLogger(__name__)


def event_uid(title: str, start: date) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', title.lower()).strip('-')
    return f"birthday-{slug}-{start.strftime('%Y%m%d')}"


def vevent_to_event(vevent, tz=None, fallback_id: str = '') -> Optional[ExternalEvent]:
    """Convert a vobject VEVENT into an ExternalEvent"""
    if not hasattr(vevent, 'dtstart'):
        return None

    start = vevent.dtstart.value
    all_day = not isinstance(start, datetime)
    if not all_day:
        if start.tzinfo is not None and tz is not None:
            start = start.astimezone(tz)
        start = start.date()

    uid = vevent.uid.value if hasattr(vevent, 'uid') else fallback_id
    rrule = vevent.rrule.value if hasattr(vevent, 'rrule') else None
    instance_of = uid if hasattr(vevent, 'recurrence_id') else None

    return ExternalEvent(
        id=uid,
        title=vevent.summary.value if hasattr(vevent, 'summary') else '',
        start_date=start,
        description=vevent.description.value if hasattr(vevent, 'description') else None,
        recurrence_rule=str(rrule) if rrule else None,
        recurring_instance_of=instance_of,
        all_day=all_day,
    )


class CalDAVCalendar:
    """Reads and writes birthday events in a CalDAV calendar"""

    def __init__(self, calendar, config: Dict, tz=None):
        self.calendar = calendar
        self.tz = tz
        self._load_config(config)

    @classmethod
    def connect(cls, server_url: str, username: str, password: str, calendar_name: str = None,
                config: Dict = None, tz=None) -> 'CalDAVCalendar':
        """Connect to the server and pick the named calendar, or the first one"""
        try:
            client = caldav.DAVClient(url=server_url, username=username, password=password)
            calendars = client.principal().calendars()
        except (DAVError, OSError) as e:
            raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE,
                                   f"Error connecting to CalDAV server {server_url}", cause=e)

        if not calendars:
            raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE, "No calendars found")

        calendar = calendars[0]
        if calendar_name:
            named = [c for c in calendars if c.name == calendar_name]
            if not named:
                raise BirthdayBotError(ErrorKind.CONFIGURATION_UNAVAILABLE,
                                       f"Calendar '{calendar_name}' not found")
            calendar = named[0]

        logger.info(f"Using calendar: {calendar.name}")
        return cls(calendar, config or {}, tz)

    def _load_config(self, config: Dict):
        self.event_category = config.get('event_category', 'Birthday')
        self.reminder_template = config.get('reminder_template', 'Reminder: {name} is in {days} days!')

        try:
            self.reminder_days = [int(d.strip()) for d in config.get('reminder_days_str', '1').split(',') if d.strip()]
        except ValueError:
            logger.warning(f"Invalid reminder days format: {config.get('reminder_days_str')}, using default: [1]")
            self.reminder_days = [1]

    def _format_reminder_message(self, title: str, days_before: int) -> str:
        """Format the reminder text shown by the calendar client"""
        try:
            message = self.reminder_template.format(name=title, days=days_before)
        except (KeyError, IndexError, ValueError) as e:
            logger.warning(f"Error formatting reminder message with template '{self.reminder_template}': {e}")
            message = f"{title} is in {days_before} days!"

        if days_before == 0:
            return message.replace('is in 0 days', 'is today').replace('in 0 days', 'today')
        if days_before == 1:
            return message.replace('1 days', '1 day')
        return message

    def _window(self, start_date: Optional[date], end_date: Optional[date]):
        first = start_date or end_date
        last = end_date or start_date
        start = datetime.combine(first, time.min)
        end = datetime.combine(last + timedelta(days=1), time.min)
        if self.tz is not None:
            start, end = self.tz.localize(start), self.tz.localize(end)
        return start, end

    def read(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[ExternalEvent]:
        """All entries, or the entries (recurrences expanded) inside a date window"""
        try:
            if start_date or end_date:
                start, end = self._window(start_date, end_date)
                objects = self.calendar.search(start=start, end=end, event=True, expand=True)
            else:
                objects = self.calendar.events()
        except (DAVError, OSError) as e:
            raise BirthdayBotError(ErrorKind.READ_FAILURE, "Error reading CalDAV events", cause=e)

        events = []
        for obj in objects:
            try:
                cal = vobject.readOne(obj.data)
            except Exception as e:
                logger.debug(f"Error parsing calendar object {getattr(obj, 'url', '')}: {e}")
                continue
            for vevent in getattr(cal, 'vevent_list', []):
                event = vevent_to_event(vevent, self.tz, fallback_id=str(getattr(obj, 'url', '')))
                if event is not None:
                    events.append(event)

        logger.debug(f"Read {len(events)} CalDAV events")
        return events

    def build_ical(self, title: str, start: date, description: Optional[str] = None) -> str:
        """Serialize an all-day yearly birthday event with reminders"""
        cal = vobject.iCalendar()
        event = cal.add('vevent')
        event.add('uid').value = event_uid(title, start)
        event.add('dtstart').value = start
        event.add('dtend').value = start + timedelta(days=1)
        event.add('summary').value = title
        if description:
            event.add('description').value = description
        event.add('categories').value = [self.event_category]
        event.add('rrule').value = yearly_rule(start)

        for days_before in self.reminder_days:
            alarm = event.add('valarm')
            alarm.add('action').value = 'DISPLAY'
            alarm.add('trigger').value = timedelta(days=-days_before)
            alarm.add('description').value = self._format_reminder_message(title, days_before)

        return cal.serialize()

    def create(self, title: str, start: date, description: Optional[str] = None) -> str:
        """Create the event and return its UID"""
        ical = self.build_ical(title, start, description)
        try:
            self.calendar.save_event(ical)
        except (DAVError, OSError) as e:
            raise BirthdayBotError(ErrorKind.WRITE_FAILURE, f"Error creating event '{title}'", cause=e)
        logger.info(f"Created event '{title}' on {start.isoformat()}")
        return event_uid(title, start)

    def delete(self, event_id: str) -> bool:
        try:
            self.calendar.event_by_uid(event_id).delete()
        except NotFoundError:
            logger.warning(f"Event {event_id} not found, nothing to delete")
            return False
        except (DAVError, OSError) as e:
            raise BirthdayBotError(ErrorKind.WRITE_FAILURE, f"Error deleting event {event_id}", cause=e)
        logger.info(f"Deleted event {event_id}")
        return True

    def is_available(self) -> bool:
        return self.calendar is not None

    def get_metadata(self) -> Dict:
        return {
            'name': 'caldav',
            'type': 'calendar',
            'capabilities': ['read', 'write', 'delete', 'date-range-filter'],
        }
