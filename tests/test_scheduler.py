"""
Scheduler tests
"""

from datetime import date, datetime

import pytest
import pytz

from bdaybot.scheduler import SchedulerService

CONFIG = {'notify_schedule': '0 9 * * *', 'run_on_startup': True, 'startup_delay': 0}


class TestScheduler:
    """Cron timing and run outcomes"""

    @pytest.mark.unit
    def test_next_run_in_timezone(self):
        """The cron expression is read in the configured timezone"""
        tz = pytz.timezone('Europe/Berlin')
        scheduler = SchedulerService(lambda: True, CONFIG, tz)
        next_run = scheduler.next_run_time(tz.localize(datetime(2024, 5, 15, 8, 30)))
        assert next_run.date() == date(2024, 5, 15)
        assert (next_run.hour, next_run.minute) == (9, 0)

    @pytest.mark.unit
    def test_next_run_rolls_to_tomorrow(self):
        scheduler = SchedulerService(lambda: True, CONFIG)
        next_run = scheduler.next_run_time(datetime(2024, 5, 15, 9, 30))
        assert next_run == datetime(2024, 5, 16, 9, 0)

    @pytest.mark.unit
    def test_invalid_schedule_falls_back_to_hourly(self):
        scheduler = SchedulerService(lambda: True, dict(CONFIG, notify_schedule='whenever'))
        assert scheduler.next_run_time(datetime(2024, 5, 15, 9, 30)) == datetime(2024, 5, 15, 10, 30)

    @pytest.mark.unit
    @pytest.mark.parametrize('outcome,code', [(True, 0), (False, 1)])
    def test_run_once_exit_code(self, outcome, code):
        assert SchedulerService(lambda: outcome, CONFIG).run_once() == code

    @pytest.mark.unit
    def test_run_once_error_is_non_zero(self):
        """An uncaught error in the daily task exits non-zero"""
        def boom():
            raise RuntimeError("calendar exploded")

        assert SchedulerService(boom, CONFIG).run_once() == 1

    @pytest.mark.unit
    def test_signal_stops_daemon(self):
        scheduler = SchedulerService(lambda: True, CONFIG)
        scheduler._signal_handler(15, None)
        assert scheduler.running is False
