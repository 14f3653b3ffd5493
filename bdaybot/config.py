"""
Configuration management and environment validation
"""

import os
import logging
from typing import Dict, List


def _flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() == 'true'


def _int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(f"Invalid integer for {name}: {value}, using default: {default}")
        return default


def _list(name: str, default: str = '') -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


def setup_logging():
    """Setup logging configuration from environment variables"""
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_to_file = _flag('LOG_TO_FILE')
    debug_mode = _flag('DEBUG')

    if debug_mode:
        log_level = 'DEBUG'

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    simple_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(simple_formatter)
    handlers.append(console_handler)

    if log_to_file:
        log_dir = os.getenv('LOG_DIR', '/var/log/bdaybot')
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(os.path.join(log_dir, 'bdaybot.log'))
            file_handler.setFormatter(detailed_formatter)
            handlers.append(file_handler)
        except OSError as e:
            print(f"Warning: Could not create log file: {e}")

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=handlers
    )

    # Third-party loggers stay quiet unless debugging
    if not debug_mode:
        for name in ('requests', 'urllib3', 'caldav', 'google'):
            logging.getLogger(name).setLevel(logging.WARNING)


def get_birthday_config() -> Dict:
    """Get birthday event configuration from environment"""
    return {
        'event_title_template': os.getenv('BIRTHDAY_EVENT_TITLE', "🎂 {name}'s Birthday"),
        'event_description_template': os.getenv('BIRTHDAY_EVENT_DESCRIPTION', 'Birthday of {name}'),
        'reminder_days_str': os.getenv('BIRTHDAY_REMINDER_DAYS', '1'),
        'reminder_template': os.getenv('BIRTHDAY_REMINDER_MESSAGE', 'Reminder: {name} is in {days} days!'),
        'event_category': os.getenv('BIRTHDAY_EVENT_CATEGORY', 'Birthday'),
    }


def get_scheduler_config() -> Dict:
    """Get scheduler configuration from environment"""
    return {
        'notify_schedule': os.getenv('NOTIFY_SCHEDULE', '0 9 * * *'),
        'run_on_startup': _flag('RUN_ON_STARTUP', 'true'),
        'startup_delay': _int('STARTUP_DELAY', 30),
    }


def get_timezone_name() -> str:
    return os.getenv('TIMEZONE', 'UTC')


def get_sheets_config() -> Dict:
    return {
        'credentials_file': os.getenv('GOOGLE_CREDENTIALS_FILE'),
        'spreadsheet_id': os.getenv('GOOGLE_SPREADSHEET_ID'),
        'worksheet': os.getenv('GOOGLE_WORKSHEET'),
        'skip_header_row': _flag('SHEETS_SKIP_HEADER_ROW', 'true'),
    }


def get_cardav_config() -> Dict:
    return {
        'server_url': os.getenv('CARDAV_SERVER_URL'),
        'username': os.getenv('CARDAV_USERNAME'),
        'password': os.getenv('CARDAV_PASSWORD'),
    }


def get_caldav_config() -> Dict:
    return {
        'server_url': os.getenv('CALDAV_SERVER_URL'),
        'username': os.getenv('CALDAV_USERNAME'),
        'password': os.getenv('CALDAV_PASSWORD'),
        'calendar_name': os.getenv('CALDAV_CALENDAR'),
    }


def get_storage_config() -> Dict:
    """Where the last-run marker is kept"""
    return {
        'backend': os.getenv('STATE_BACKEND', 'file').lower(),
        'state_dir': os.getenv('STATE_DIR', './data'),
        'webdav_url': os.getenv('STATE_WEBDAV_URL'),
        'webdav_username': os.getenv('STATE_WEBDAV_USERNAME'),
        'webdav_password': os.getenv('STATE_WEBDAV_PASSWORD'),
    }


def get_channel_config() -> Dict:
    """Notification channels and their credentials"""
    return {
        'channels': [name.lower() for name in _list('NOTIFY_CHANNELS', 'console')],
        'send_concurrency': _int('SEND_CONCURRENCY', 4),
        'telegram_bot_token': os.getenv('TELEGRAM_BOT_TOKEN'),
        'telegram_chat_ids': _list('TELEGRAM_CHAT_IDS'),
        'whatsapp_access_token': os.getenv('WHATSAPP_ACCESS_TOKEN'),
        'whatsapp_phone_number_id': os.getenv('WHATSAPP_PHONE_NUMBER_ID'),
        'whatsapp_recipients': _list('WHATSAPP_RECIPIENTS'),
        'whatsapp_api_version': os.getenv('WHATSAPP_API_VERSION', 'v21.0'),
        'twilio_account_sid': os.getenv('TWILIO_ACCOUNT_SID'),
        'twilio_auth_token': os.getenv('TWILIO_AUTH_TOKEN'),
        'twilio_from_number': os.getenv('TWILIO_FROM_NUMBER'),
        'sms_recipients': _list('SMS_RECIPIENTS'),
    }


def get_run_config() -> Dict:
    return {
        'dry_run': _flag('DRY_RUN'),
        'missed_days_limit': _int('MISSED_DAYS_LIMIT', 0),
        'sync_on_run': _flag('SYNC_ON_RUN', 'true'),
    }


def _required_vars() -> List[str]:
    required = ['CALDAV_SERVER_URL', 'CALDAV_USERNAME', 'CALDAV_PASSWORD']

    if os.getenv('GOOGLE_SPREADSHEET_ID') or os.getenv('GOOGLE_CREDENTIALS_FILE'):
        required += ['GOOGLE_CREDENTIALS_FILE', 'GOOGLE_SPREADSHEET_ID']
    if os.getenv('CARDAV_SERVER_URL'):
        required += ['CARDAV_USERNAME', 'CARDAV_PASSWORD']

    if get_storage_config()['backend'] == 'webdav':
        required.append('STATE_WEBDAV_URL')

    channels = get_channel_config()['channels']
    if 'telegram' in channels:
        required += ['TELEGRAM_BOT_TOKEN', 'TELEGRAM_CHAT_IDS']
    if 'whatsapp' in channels:
        required += ['WHATSAPP_ACCESS_TOKEN', 'WHATSAPP_PHONE_NUMBER_ID', 'WHATSAPP_RECIPIENTS']
    if 'sms' in channels:
        required += ['TWILIO_ACCOUNT_SID', 'TWILIO_AUTH_TOKEN', 'TWILIO_FROM_NUMBER', 'SMS_RECIPIENTS']
    return required


def validate_environment() -> bool:
    """Validate the environment variables the configured collaborators need"""
    logger = logging.getLogger(__name__)

    missing_vars = [var for var in _required_vars() if not os.getenv(var)]

    if missing_vars:
        logger.error(f"Missing required environment variables: {', '.join(missing_vars)}")
        return False

    logger.info("Environment validation passed")
    return True
