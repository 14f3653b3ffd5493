#!/usr/bin/env python3
"""
Birthday bot
Main entry point with scheduling and argument parsing
"""

import os
import sys
import calendar
import logging
import argparse
from datetime import date, datetime
from itertools import groupby
from typing import List

from bdaybot import __version__
from bdaybot.caldav_client import CalDAVCalendar
from bdaybot.cardav_client import CardDAVClient
from bdaybot.channels import build_channels
from bdaybot.config import (
    get_birthday_config,
    get_caldav_config,
    get_cardav_config,
    get_channel_config,
    get_run_config,
    get_scheduler_config,
    get_sheets_config,
    get_storage_config,
    get_timezone_name,
    setup_logging,
    validate_environment,
)
from bdaybot.dates import format_short, get_timezone, today_in
from bdaybot.dispatcher import NotificationDispatcher
from bdaybot.errors import BirthdayBotError
from bdaybot.orchestrator import BirthdayOrchestrator
from bdaybot.parser import format_birthday, parse
from bdaybot.scheduler import SchedulerService
from bdaybot.sheets_client import SheetsClient
from bdaybot.storage import create_store
from bdaybot.sync import SyncEngine, TextSource
from bdaybot.tracker import RunTracker

logger = logging.getLogger(__name__)

BANNER = """
╔══════════════════════════════════════════════════════════════╗
║                                                              ║
║              🎂  B D A Y B O T  🎂                           ║
║        Spreadsheet to calendar sync and daily greetings      ║
║                                                              ║
╚══════════════════════════════════════════════════════════════╝
"""


def print_banner():
    """Print the ASCII art banner"""
    print(BANNER)
    print(f"Version: {__version__}")
    print(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("─" * 62)
    print()


def build_sources(skip_unavailable: bool = True) -> List:
    """Spreadsheet and contacts sources that are configured; one that cannot connect is left out"""
    sources = []

    sheets = get_sheets_config()
    if sheets['spreadsheet_id'] and sheets['credentials_file']:
        try:
            sources.append(SheetsClient.connect(
                sheets['credentials_file'],
                sheets['spreadsheet_id'],
                sheets['worksheet'],
                sheets['skip_header_row'],
            ))
        except BirthdayBotError as e:
            if not skip_unavailable:
                raise
            logger.warning(f"Skipping spreadsheet source: {e}")

    cardav = get_cardav_config()
    if cardav['server_url']:
        sources.append(CardDAVClient(cardav['server_url'], cardav['username'], cardav['password']))

    if not sources:
        logger.warning("No birthday source configured, only the calendar will be used")
    return sources


def build_calendar(tz) -> CalDAVCalendar:
    caldav = get_caldav_config()
    return CalDAVCalendar.connect(
        caldav['server_url'],
        caldav['username'],
        caldav['password'],
        calendar_name=caldav['calendar_name'],
        config=get_birthday_config(),
        tz=tz,
    )


def build_orchestrator() -> BirthdayOrchestrator:
    """Build every collaborator once and inject them"""
    tz = get_timezone(get_timezone_name())

    def clock():
        return today_in(tz)

    run_config = get_run_config()
    channel_config = get_channel_config()

    return BirthdayOrchestrator(
        tracker=RunTracker(create_store(get_storage_config()), clock, tz),
        sync_engine=SyncEngine(clock, get_birthday_config(), dry_run=run_config['dry_run']),
        calendar=build_calendar(tz),
        dispatcher=NotificationDispatcher(channel_config['send_concurrency']),
        channels=build_channels(channel_config),
        clock=clock,
        sources=build_sources(),
        config=run_config,
    )


def run_daily() -> bool:
    """Daily run; errors are logged and reported as failure"""
    try:
        summary = build_orchestrator().run_daily()
    except BirthdayBotError as e:
        logger.error(f"Daily run failed: {e}")
        return False
    logger.debug(f"Run summary: {summary}")
    return True


def run_sync_only() -> bool:
    try:
        results = build_orchestrator().run_sync()
    except BirthdayBotError as e:
        logger.error(f"Sync failed: {e}")
        return False
    for name, result in results.items():
        logger.info(f"{name}: {result.added} added, {result.skipped} skipped, {result.errors} errors")
    return all(result.errors == 0 for result in results.values())


def run_digest() -> bool:
    try:
        return build_orchestrator().run_monthly_digest()
    except BirthdayBotError as e:
        logger.error(f"Monthly digest failed: {e}")
        return False


def add_birthday(text: str) -> bool:
    """Add one "<name> <date>" entry to the calendar unless it is already there"""
    record = parse(text)
    if record is None:
        print(f"✗ Could not parse '{text}'. Use one of:")
        print('   "Name LastName YYYY-MM-DD"')
        print('   "Name LastName MM-DD"')
        print('   "Name LastName Month DD, YYYY"')
        print('   "Name LastName Month DD"')
        return False

    tz = get_timezone(get_timezone_name())
    engine = SyncEngine(lambda: today_in(tz), get_birthday_config(), dry_run=get_run_config()['dry_run'])
    try:
        result = engine.sync(TextSource([text]), build_calendar(tz))
    except BirthdayBotError as e:
        logger.error(f"Adding birthday failed: {e}")
        return False

    if result.added:
        print(f"✓ Added {record.full_name} ({format_birthday(record)})")
    elif result.skipped:
        print(f"• {record.full_name} ({format_birthday(record)}) is already in the calendar")
    return result.errors == 0


def list_birthdays() -> bool:
    """Print every birthday of the current year grouped by month"""
    try:
        orchestrator = build_orchestrator()
        today = orchestrator.clock()
        records = orchestrator.birthdays_between(date(today.year, 1, 1), date(today.year, 12, 31))
    except BirthdayBotError as e:
        logger.error(f"Listing birthdays failed: {e}")
        return False

    if not records:
        print(f"📅 No birthdays found for {today.year}.")
        return True

    print(f"🎉 Found {len(records)} birthday(s) in {today.year}:")
    by_date = groupby(sorted(records, key=lambda r: (r.month, r.day)), key=lambda r: (r.month, r.day))
    current_month = None
    for (month, day), group in by_date:
        if month != current_month:
            current_month = month
            print(f"\n📅 {calendar.month_name[month]}:")
        names = ', '.join(record.full_name for record in group)
        print(f"   🎂 {format_short(date(today.year, month, day))}: {names}")
    return True


def diagnose() -> bool:
    """Check connectivity of every configured collaborator"""
    tz = get_timezone(get_timezone_name())
    print(f"Timezone: {tz.zone}, today is {today_in(tz).isoformat()}")
    print("-" * 60)
    ok = True

    try:
        target = build_calendar(tz)
        print(f"✓ Calendar: {target.calendar.name}")
    except BirthdayBotError as e:
        print(f"✗ Calendar: {e}")
        ok = False

    try:
        for source in build_sources(skip_unavailable=False):
            records = source.read(skip_header_row=True)
            print(f"✓ Source {source.get_metadata()['name']}: {len(records)} entries")
    except BirthdayBotError as e:
        print(f"✗ Source: {e}")
        ok = False

    try:
        store = create_store(get_storage_config())
        last_run = RunTracker(store, lambda: today_in(tz), tz).get_last_run_date()
        print(f"✓ State: {store.describe()} (last run: {last_run.isoformat() if last_run else 'never'})")
    except BirthdayBotError as e:
        print(f"✗ State: {e}")
        ok = False

    for channel in build_channels(get_channel_config()):
        mark = '✓' if channel.is_available() else '✗'
        print(f"{mark} Channel {channel.get_metadata()['name']}")
        ok = ok and channel.is_available()

    return ok


def health_check() -> bool:
    """Health check function"""
    logger.info("Performing health check...")

    if not validate_environment():
        return False

    if os.getenv('HEALTH_CHECK_CONNECTIVITY', 'false').lower() == 'true':
        logger.info("Testing connectivity as part of health check...")
        return diagnose()

    logger.info("Health check passed")
    return True


def main(argv=None):
    """Main function with argument parsing"""
    parser = argparse.ArgumentParser(description='Birthday sync and notification service')
    parser.add_argument('--once', action='store_true', help='Run the daily flow once and exit')
    parser.add_argument('--sync-only', action='store_true', help='Sync sources into the calendar and exit')
    parser.add_argument('--digest', action='store_true', help='Send the monthly digest now and exit')
    parser.add_argument('--add', metavar='"NAME DATE"', help='Add one birthday, e.g. "John Doe 1990-05-15", and exit')
    parser.add_argument('--list', action='store_true', help='List this year\'s birthdays and exit')
    parser.add_argument('--diagnose', action='store_true', help='Run diagnostics')
    parser.add_argument('--health-check', action='store_true', help='Run health check')
    parser.add_argument('--no-banner', action='store_true', help='Skip ASCII art banner')

    args = parser.parse_args(argv)

    setup_logging()

    if not args.no_banner:
        print_banner()

    if args.health_check:
        sys.exit(0 if health_check() else 1)

    if not validate_environment():
        sys.exit(1)

    if args.diagnose:
        sys.exit(0 if diagnose() else 1)

    if args.sync_only:
        sys.exit(0 if run_sync_only() else 1)

    if args.digest:
        sys.exit(0 if run_digest() else 1)

    if args.add:
        sys.exit(0 if add_birthday(args.add) else 1)

    if args.list:
        sys.exit(0 if list_birthdays() else 1)

    run_mode = os.getenv('RUN_MODE', 'daemon').lower()
    tz = get_timezone(get_timezone_name())
    scheduler = SchedulerService(run_daily, get_scheduler_config(), tz)

    if args.once or run_mode == 'once':
        sys.exit(scheduler.run_once())

    try:
        scheduler.run_daemon()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    sys.exit(0)


if __name__ == "__main__":
    main()
