"""Core exceptions for sqlcontext."""

from enum import Enum
from typing import Any, Dict, Optional


class SQLContextError(Exception):
    """Base exception for all sqlcontext errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ErrorKind(str, Enum):
    """Categories of database failures."""
    CONFIGURATION = "configuration"
    CONNECTION = "connection"
    STATEMENT = "statement"


class DatabaseError(SQLContextError):
    """Raised when the driver, the connection or a statement fails.

    The ``kind`` tag tells callers which stage failed; ``cause`` keeps the
    driver-level exception that triggered it (also available as ``__cause__``
    when raised with ``from``).
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.kind = kind
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} ({type(self.cause).__name__}: {self.cause})"
        return self.message

    @classmethod
    def configuration(
        cls, message: str, cause: Optional[BaseException] = None, **details: Any
    ) -> "DatabaseError":
        return cls(message, ErrorKind.CONFIGURATION, cause, details)

    @classmethod
    def connection(
        cls, message: str, cause: Optional[BaseException] = None, **details: Any
    ) -> "DatabaseError":
        return cls(message, ErrorKind.CONNECTION, cause, details)

    @classmethod
    def statement(
        cls, message: str, cause: Optional[BaseException] = None, **details: Any
    ) -> "DatabaseError":
        return cls(message, ErrorKind.STATEMENT, cause, details)
