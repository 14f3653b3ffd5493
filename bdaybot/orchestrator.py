"""
Daily and monthly birthday flows

A daily run syncs the sources into the calendar, catches up on days the
previous runs missed, posts the monthly digest on the first of the month and
finally greets today's birthdays. The run date is only recorded once every
needed message reached at least one channel, so a failed day is retried as a
missed day by the next run.
"""

import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from bdaybot import matcher
from bdaybot.channels import Channel
from bdaybot.dates import is_first_day_of_month, month_bounds
from bdaybot.dispatcher import NotificationDispatcher, any_delivered
from bdaybot.errors import BirthdayBotError, ErrorKind
from bdaybot.messages import format_belated_message, format_birthday_message, format_monthly_digest
from bdaybot.models import BirthdayRecord, ExternalEvent, SyncResult
from bdaybot.sync import SyncEngine
from bdaybot.tracker import RunTracker

logger = logging.getLogger(__name__)


class BirthdayOrchestrator:
    """Runs the daily flow over injected collaborators"""

    def __init__(self, tracker: RunTracker, sync_engine: SyncEngine, calendar,
                 dispatcher: NotificationDispatcher, channels: Sequence[Channel],
                 clock: Callable[[], date], sources: Sequence = (), config: Optional[Dict] = None):
        config = config or {}
        self.tracker = tracker
        self.sync_engine = sync_engine
        self.calendar = calendar
        self.dispatcher = dispatcher
        self.channels = list(channels)
        self.clock = clock
        self.sources = list(sources)
        self.missed_days_limit = config.get('missed_days_limit', 0)
        self.sync_on_run = config.get('sync_on_run', True)

    def _birthday_events(self, start: date, end: date) -> List[ExternalEvent]:
        events = self.calendar.read(start_date=start, end_date=end)
        return [e for e in events if start <= e.start_date <= end and matcher.is_birthday_event(e)]

    def birthdays_between(self, start: date, end: date) -> List[BirthdayRecord]:
        """Birthday records of the calendar entries falling inside [start, end]"""
        records = []
        seen = set()
        for event in self._birthday_events(start, end):
            record = matcher.event_to_record(event)
            if record is None:
                logger.debug(f"Could not extract a name from '{event.title}'")
                continue
            key = (record.full_name.lower(), record.month, record.day)
            if key in seen:
                continue
            seen.add(key)
            records.append(record)
        return records

    def birthdays_on(self, day: date) -> List[BirthdayRecord]:
        return self.birthdays_between(day, day)

    def _notify(self, message: str) -> bool:
        results = self.dispatcher.send_to_all(message, self.channels)
        if not any_delivered(results):
            logger.error("Message was not delivered by any channel")
            return False
        return True

    def run_sync(self) -> Dict[str, SyncResult]:
        """Sync every source into the calendar; a failing source does not stop the others"""
        results = {}
        for source in self.sources:
            name = source.get_metadata()['name']
            try:
                results[name] = self.sync_engine.sync(source, self.calendar)
            except BirthdayBotError as e:
                logger.warning(f"Sync from {name} failed: {e}")
        return results

    def run_missed_days(self, today: Optional[date] = None) -> List[date]:
        """Send belated greetings for missed days; returns the days whose message was not delivered"""
        today = today or self.clock()
        missed = self.tracker.get_missed_dates(today)
        if not missed:
            return []

        if self.missed_days_limit and len(missed) > self.missed_days_limit:
            dropped = missed[:-self.missed_days_limit]
            logger.warning(f"Dropping {len(dropped)} missed days from {dropped[0].isoformat()} "
                           f"to {dropped[-1].isoformat()}")
            missed = missed[-self.missed_days_limit:]

        logger.info(f"Catching up on {len(missed)} missed days")
        undelivered = []
        for day in missed:
            records = self.birthdays_on(day)
            if not records:
                continue
            logger.info(f"Missed birthdays on {day.isoformat()}: {', '.join(r.full_name for r in records)}")
            if not self._notify(format_belated_message(records, day)):
                undelivered.append(day)
        return undelivered

    def run_monthly_digest(self, today: Optional[date] = None) -> bool:
        """Post every birthday of the current month grouped by date"""
        today = today or self.clock()
        first, last = month_bounds(today)
        records = self.birthdays_between(first, last)
        logger.info(f"Monthly digest for {first.strftime('%Y-%m')}: {len(records)} birthdays")
        return self._notify(format_monthly_digest(records, first))

    def run_today(self, today: Optional[date] = None) -> Optional[bool]:
        """Greet today's birthdays; None when there is nobody to greet"""
        today = today or self.clock()
        records = self.birthdays_on(today)
        if not records:
            logger.info("No birthdays today")
            return None
        logger.info(f"Birthdays today: {', '.join(r.full_name for r in records)}")
        return self._notify(format_birthday_message(records))

    def _digest_due(self, today: date, missed: List[date]) -> bool:
        if is_first_day_of_month(today):
            return True
        # The first of this month was missed, so its digest was never posted
        return any(is_first_day_of_month(d) and (d.year, d.month) == (today.year, today.month) for d in missed)

    def run_daily(self, today: Optional[date] = None) -> Dict:
        """Full daily flow; the run date is recorded only when nothing needed was left undelivered"""
        today = today or self.clock()
        summary = {'date': today.isoformat(), 'sync': {}, 'undelivered': []}

        with self.tracker.session():
            if self.sync_on_run:
                summary['sync'] = {name: result.as_dict() for name, result in self.run_sync().items()}

            missed = self.tracker.get_missed_dates(today)
            undelivered = [d.isoformat() for d in self.run_missed_days(today)]

            if self._digest_due(today, missed) and not self.run_monthly_digest(today):
                undelivered.append('monthly digest')

            if self.run_today(today) is False:
                undelivered.append(today.isoformat())

            summary['undelivered'] = undelivered
            if undelivered:
                raise BirthdayBotError(
                    ErrorKind.WRITE_FAILURE,
                    f"Notifications not delivered for: {', '.join(undelivered)}",
                    metadata=summary,
                )

            self.tracker.record_run(today)

        logger.info(f"Daily run for {today.isoformat()} completed")
        return summary
