"""
Scheduling service for the daily birthday run
"""

import time
import signal
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from croniter import croniter

logger = logging.getLogger(__name__)


class SchedulerService:
    """Runs the daily job on a cron schedule in the configured timezone"""

    def __init__(self, daily_func: Callable[[], bool], config: dict, tz=None):
        self.daily_func = daily_func
        self.tz = tz
        self.running = True

        self.schedule = config['notify_schedule']
        self.run_on_startup = config['run_on_startup']
        self.startup_delay = config['startup_delay']

        self.last_run: Optional[datetime] = None
        self.next_run: Optional[datetime] = None

    def install_signal_handlers(self):
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.running = False

    def _now(self) -> datetime:
        return datetime.now(self.tz) if self.tz is not None else datetime.now()

    def next_run_time(self, base: Optional[datetime] = None) -> datetime:
        """Next cron fire time after base; hourly when the schedule is invalid"""
        base = base or self._now()
        try:
            return croniter(self.schedule, base).get_next(datetime)
        except (ValueError, KeyError) as e:
            logger.error(f"Invalid cron schedule '{self.schedule}': {e}")
            return base + timedelta(hours=1)

    def _perform_run(self) -> bool:
        try:
            logger.info("Starting daily birthday run...")
            success = self.daily_func()
        except Exception as e:
            logger.error(f"Daily run failed: {e}")
            return False

        self.last_run = self._now()
        if success:
            logger.info("Daily run completed successfully")
        else:
            logger.warning("Daily run completed with errors")
        return success

    def _wait_with_interrupt_check(self, seconds: float):
        """Wait for specified seconds while checking for interrupts"""
        end_time = time.time() + seconds
        while time.time() < end_time and self.running:
            time.sleep(max(0, min(1, end_time - time.time())))

    def run_daemon(self):
        """Run as daemon until a shutdown signal arrives"""
        self.install_signal_handlers()
        logger.info("Starting birthday daemon...")
        logger.info(f"Notification schedule: {self.schedule}")

        if self.startup_delay > 0:
            logger.info(f"Waiting {self.startup_delay} seconds before starting...")
            self._wait_with_interrupt_check(self.startup_delay)

        if not self.running:
            logger.info("Shutdown requested during startup delay")
            return

        # Missed-day recovery makes an early run safe
        if self.run_on_startup:
            logger.info("Running initial run...")
            self._perform_run()

        self.next_run = self.next_run_time()
        logger.info(f"Next run: {self.next_run.strftime('%Y-%m-%d %H:%M:%S %Z')}")

        while self.running:
            try:
                if self._now() >= self.next_run:
                    self._perform_run()
                    self.next_run = self.next_run_time()
                    logger.info(f"Next run: {self.next_run.strftime('%Y-%m-%d %H:%M:%S %Z')}")
                self._wait_with_interrupt_check(min(60, max(1, (self.next_run - self._now()).total_seconds())))
            except Exception as e:
                logger.error(f"Error in scheduling loop: {e}")
                self._wait_with_interrupt_check(60)

        logger.info("Scheduler daemon stopped")

    def run_once(self) -> int:
        """Run once and return the exit code"""
        logger.info("Running single birthday run...")
        return 0 if self._perform_run() else 1
