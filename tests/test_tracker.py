"""
Last-run tracking and missed-day detection tests
"""

from datetime import date

import pytest

from bdaybot.dates import get_timezone
from bdaybot.tracker import LAST_RUN_KEY, RunTracker
from fakes import MemoryStore


def tracker_with(value=None, today=date(2024, 1, 5), **store_kwargs):
    data = {LAST_RUN_KEY: value.encode('utf-8')} if value is not None else {}
    store = MemoryStore(data, **store_kwargs)
    return RunTracker(store, lambda: today), store


class TestMissedDates:
    """Days strictly between the last run and today"""

    @pytest.mark.tracker
    def test_gap_of_three_days(self):
        """Last run Jan 1, today Jan 5"""
        tracker, _ = tracker_with('2024-01-01')
        assert tracker.get_missed_dates(date(2024, 1, 5)) == [
            date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4),
        ]

    @pytest.mark.tracker
    def test_uses_clock_by_default(self):
        """Today comes from the injected clock"""
        tracker, _ = tracker_with('2024-01-03')
        assert tracker.get_missed_dates() == [date(2024, 1, 4)]

    @pytest.mark.tracker
    def test_first_run_has_no_missed_days(self):
        """No stored value"""
        tracker, _ = tracker_with()
        assert tracker.get_missed_dates(date(2024, 1, 5)) == []

    @pytest.mark.tracker
    @pytest.mark.parametrize('last_run', ['2024-01-04', '2024-01-05', '2024-01-09'])
    def test_no_gap(self, last_run):
        """Yesterday, today or a future date"""
        tracker, _ = tracker_with(last_run)
        assert tracker.get_missed_dates(date(2024, 1, 5)) == []

    @pytest.mark.tracker
    def test_crosses_month_and_year(self):
        """Dates roll over month and year boundaries"""
        tracker, _ = tracker_with('2023-12-30')
        assert tracker.get_missed_dates(date(2024, 1, 2)) == [date(2023, 12, 31), date(2024, 1, 1)]


class TestLastRunDate:
    """Reading the persisted value"""

    @pytest.mark.tracker
    def test_corrupt_value_is_absent(self):
        """Unparseable content reads as no last run"""
        tracker, _ = tracker_with('not a date')
        assert tracker.get_last_run_date() is None

    @pytest.mark.tracker
    def test_empty_value_is_absent(self):
        tracker, _ = tracker_with('  \n')
        assert tracker.get_last_run_date() is None

    @pytest.mark.tracker
    def test_storage_failure_is_absent(self):
        """Read errors are logged and treated as a first run"""
        tracker, _ = tracker_with('2024-01-01', fail_get=True)
        assert tracker.get_last_run_date() is None

    @pytest.mark.tracker
    def test_timestamp_converted_to_timezone(self):
        """A UTC timestamp is read as a day in the configured timezone"""
        store = MemoryStore({LAST_RUN_KEY: b'2024-01-06T02:00:00Z'})
        tracker = RunTracker(store, lambda: date(2024, 1, 8), get_timezone('America/New_York'))
        assert tracker.get_last_run_date() == date(2024, 1, 5)


class TestRecordRun:
    """Buffered writes and the session guarantee"""

    @pytest.mark.tracker
    def test_record_run_is_buffered_until_flush(self):
        """Nothing is written before flush"""
        tracker, store = tracker_with('2024-01-01')
        tracker.record_run(date(2024, 1, 5))
        assert store.puts == 0
        assert tracker.get_last_run_date() == date(2024, 1, 5)
        assert tracker.flush() is True
        assert store.data[LAST_RUN_KEY] == b'2024-01-05'

    @pytest.mark.tracker
    def test_session_flushes_once(self):
        """Leaving the session writes the pending date exactly once"""
        tracker, store = tracker_with()
        with tracker.session():
            tracker.record_run()
        assert store.puts == 1
        assert store.data[LAST_RUN_KEY] == b'2024-01-05'
        assert tracker.flush() is False
        assert store.puts == 1

    @pytest.mark.tracker
    def test_session_flushes_on_error(self):
        """A run that fails after recording still persists the date"""
        tracker, store = tracker_with()
        with pytest.raises(RuntimeError):
            with tracker.session():
                tracker.record_run(date(2024, 1, 4))
                raise RuntimeError("boom")
        assert store.data[LAST_RUN_KEY] == b'2024-01-04'

    @pytest.mark.tracker
    def test_session_without_record_writes_nothing(self):
        tracker, store = tracker_with('2024-01-01')
        with tracker.session():
            pass
        assert store.puts == 0
        assert store.data[LAST_RUN_KEY] == b'2024-01-01'

    @pytest.mark.tracker
    def test_write_failure_is_absorbed(self):
        """Storage errors on flush are logged, not raised"""
        tracker, store = tracker_with(fail_put=True)
        tracker.record_run()
        assert tracker.flush() is False
