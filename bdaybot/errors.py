"""
Error taxonomy shared by every component
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Kinds of failure the service distinguishes"""

    PARSE_FAILURE = "parse_failure"
    DUPLICATE_SKIP = "duplicate_skip"
    WRITE_FAILURE = "write_failure"
    READ_FAILURE = "read_failure"
    CONFIGURATION_UNAVAILABLE = "configuration_unavailable"
    STORAGE_FAILURE = "storage_failure"
    FATAL_ORCHESTRATION = "fatal_orchestration"


class BirthdayBotError(Exception):
    """Single error type carrying a kind, an optional cause and metadata"""

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None,
                 metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.metadata = metadata or {}

    def __str__(self):
        text = f"[{self.kind.value}] {self.message}"
        if self.cause is not None:
            text += f" (caused by {type(self.cause).__name__}: {self.cause})"
        return text
