"""Exception hierarchy for pgreport.

Every failure kind the reporter can hit has its own class so that log lines
name the stage that failed. None of these ever escapes to the host test
framework: they are raised and caught inside the reporting subsystem.
"""

from typing import Any


class ReportingError(Exception):
    """Base exception for all reporting failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Configuration and connection
class ConfigMissingError(ReportingError):
    """Raised when a required environment value is absent."""


class BackendUnavailableError(ReportingError):
    """Raised when the database client module cannot be loaded or resolved."""

    def __init__(self, message: str, module: str):
        super().__init__(message, {"module": module})
        self.module = module


class ConnectFailedError(ReportingError):
    """Raised when the transport cannot open a connection."""


# Statement execution
class StatementError(ReportingError):
    """Base for failures tied to one attempted statement."""

    def __init__(self, message: str, statement: str, stage: str | None = None):
        details: dict[str, Any] = {"statement": statement}
        if stage:
            details["stage"] = stage
        super().__init__(message, details)
        self.statement = statement
        self.stage = stage


class TransportLostError(StatementError):
    """Raised when a previously good connection returns no result."""


class StatusMismatchError(StatementError):
    """Raised when a result arrives with an unexpected status code."""

    def __init__(self, message: str, statement: str, expected: int, actual: int):
        super().__init__(message, statement)
        self.details.update({"expected": expected, "actual": actual})
        self.expected = expected
        self.actual = actual


class QueryFailedError(StatementError):
    """Raised when a statement produced no usable result."""


class InvalidIdentifierError(StatementError):
    """Raised when a lookup returns a value that is not a positive integer."""

    def __init__(self, message: str, statement: str, stage: str, value: Any):
        super().__init__(message, statement, stage)
        self.details["value"] = value
        self.value = value


# Description building
class EscapeOverflowError(ReportingError):
    """Raised when escaping wrote fewer characters than the source holds."""

    def __init__(self, message: str, source_length: int, written: int):
        super().__init__(message, {"source_length": source_length, "written": written})
        self.source_length = source_length
        self.written = written


class ParseFailureError(ReportingError):
    """Raised when a model document cannot be loaded."""

    def __init__(self, message: str, path: str):
        super().__init__(message, {"path": path})
        self.path = path
