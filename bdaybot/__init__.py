"""
Birthday Bot Package
Spreadsheet to calendar birthday sync with daily group-chat greetings
"""

__version__ = "2.0.0"
__author__ = "anatosun"
__description__ = "Birthday sync, missed-run recovery and notification service"

from bdaybot.errors import BirthdayBotError, ErrorKind
from bdaybot.models import BirthdayRecord, ExternalEvent, SendResult, SyncResult
from bdaybot.tracker import RunTracker
from bdaybot.sync import SyncEngine
from bdaybot.dispatcher import NotificationDispatcher
from bdaybot.orchestrator import BirthdayOrchestrator
from bdaybot.config import setup_logging, validate_environment

__all__ = [
    'BirthdayBotError',
    'ErrorKind',
    'BirthdayRecord',
    'ExternalEvent',
    'SendResult',
    'SyncResult',
    'RunTracker',
    'SyncEngine',
    'NotificationDispatcher',
    'BirthdayOrchestrator',
    'setup_logging',
    'validate_environment',
]
