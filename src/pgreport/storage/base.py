"""Abstract client backend for the reporting datastore."""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any


class ConnStatus(IntEnum):
    """Connection status, numbered as libpq numbers them."""

    OK = 0
    BAD = 1


class ExecStatus(IntEnum):
    """Result status of an executed statement, numbered as libpq numbers them."""

    EMPTY_QUERY = 0
    COMMAND_OK = 1
    TUPLES_OK = 2
    COPY_OUT = 3
    COPY_IN = 4
    BAD_RESPONSE = 5
    NONFATAL_ERROR = 6
    FATAL_ERROR = 7


class ClientBackend(ABC):
    """Capability interface over a PostgreSQL client library.

    Connections and results are opaque to callers; they are only ever
    handed back to the backend that produced them.
    """

    name: str = "backend"

    @abstractmethod
    def load(self) -> None:
        """Resolve the client entry points.

        Raises BackendUnavailableError when the client cannot be used.
        """

    @abstractmethod
    def connect(self, dsn: str) -> Any:
        """Open a connection. Raises ConnectFailedError on failure."""

    @abstractmethod
    def status(self, conn: Any) -> ConnStatus:
        """Report whether `conn` is usable."""

    @abstractmethod
    def execute(self, conn: Any, sql: str) -> Any | None:
        """Run `sql`; return a raw result, or None if the transport is gone."""

    @abstractmethod
    def result_status(self, result: Any) -> ExecStatus:
        """Status code of a raw result."""

    @abstractmethod
    def row_count(self, result: Any) -> int:
        """Number of rows a raw result holds."""

    @abstractmethod
    def value(self, result: Any, row: int, column: int) -> str | None:
        """Text of one cell, or None when the cell does not exist or is NULL."""

    @abstractmethod
    def clear(self, result: Any) -> None:
        """Free a raw result."""

    @abstractmethod
    def finish(self, conn: Any) -> None:
        """Close a connection."""

    @abstractmethod
    def escape_string(self, conn: Any, text: str) -> tuple[str, int]:
        """Escape `text` as a string literal for `conn`.

        Returns the quoted literal and the number of escaped characters
        written between the quotes.
        """
