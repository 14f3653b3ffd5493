"""
Data types passed between the parser, sync engine and dispatcher
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

from bdaybot.dates import concrete_date
from bdaybot.errors import ErrorKind


@dataclass(frozen=True)
class BirthdayRecord:
    """A person's name and birth date; the year is optional"""

    first_name: str
    last_name: Optional[str]
    month: int
    day: int
    year: Optional[int] = None

    @property
    def full_name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name

    def date_in(self, year: int) -> date:
        """Concrete date of this birthday in the given year"""
        return concrete_date(self.month, self.day, year)

    def age_on(self, on_date: date) -> Optional[int]:
        if self.year is None:
            return None
        return on_date.year - self.year


@dataclass(frozen=True)
class ExternalEvent:
    """Read-only view of an entry in the target calendar"""

    id: str
    title: str
    start_date: date
    description: Optional[str] = None
    recurrence_rule: Optional[str] = None
    recurring_instance_of: Optional[str] = None
    all_day: bool = True


@dataclass
class SyncResult:
    added: int = 0
    skipped: int = 0
    errors: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {'added': self.added, 'skipped': self.skipped, 'errors': self.errors}


@dataclass(frozen=True)
class SendResult:
    """Outcome of one send to one recipient over one channel"""

    success: bool
    recipient: Optional[str] = None
    message_id: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, recipient: Optional[str], error, kind: ErrorKind = ErrorKind.WRITE_FAILURE) -> 'SendResult':
        return cls(success=False, recipient=recipient, error_kind=kind, error=str(error))
