"""
Last-run tracking and missed-day detection
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Callable, List, Optional

from bdaybot.dates import days_between
from bdaybot.errors import BirthdayBotError
from bdaybot.storage import KeyValueStore

logger = logging.getLogger(__name__)

LAST_RUN_KEY = 'last-run.txt'


class RunTracker:
    """Persists the date of the last successful run in a key/value store"""

    def __init__(self, store: KeyValueStore, clock: Callable[[], date], tz=None, key: str = LAST_RUN_KEY):
        self.store = store
        self.clock = clock
        self.tz = tz
        self.key = key
        self._pending: Optional[date] = None

    def _parse(self, content: str) -> Optional[date]:
        if 'T' not in content:
            return date.fromisoformat(content)
        moment = datetime.fromisoformat(content.replace('Z', '+00:00'))
        if moment.tzinfo is not None and self.tz is not None:
            moment = moment.astimezone(self.tz)
        return moment.date()

    def get_last_run_date(self) -> Optional[date]:
        """Date of the last successful run, or None if unknown"""
        if self._pending is not None:
            return self._pending

        try:
            data = self.store.get(self.key)
        except BirthdayBotError as e:
            logger.warning(f"Error reading last run date, treating as first run: {e}")
            return None

        if not data:
            return None

        content = data.decode('utf-8', errors='replace').strip()
        if not content:
            return None

        try:
            return self._parse(content)
        except ValueError:
            logger.warning(f"Invalid last run date '{content}' in {self.store.describe()}, ignoring it")
            return None

    def record_run(self, run_date: Optional[date] = None):
        """Buffer a new last-run date; it is written by flush()"""
        self._pending = run_date or self.clock()
        logger.debug(f"Last run date {self._pending.isoformat()} pending")

    def flush(self) -> bool:
        """Write the pending last-run date, if any; storage errors are logged"""
        if self._pending is None:
            return False

        pending, self._pending = self._pending, None
        try:
            self.store.put(self.key, pending.isoformat().encode('utf-8'))
        except BirthdayBotError as e:
            logger.error(f"Error updating last run date, it stays stale: {e}")
            return False

        logger.info(f"Last run date updated to {pending.isoformat()} in {self.store.describe()}")
        return True

    @contextmanager
    def session(self):
        """Guarantee a single flush of the pending state on every exit path"""
        try:
            yield self
        finally:
            self.flush()

    def get_missed_dates(self, today: Optional[date] = None) -> List[date]:
        """Every day strictly between the last run and today, ascending"""
        last_run = self.get_last_run_date()
        if last_run is None:
            return []
        return list(days_between(last_run, today or self.clock()))
