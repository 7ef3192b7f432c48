"""Shared fakes for pgreport unit tests."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from pgreport.config import ReportingSettings
from pgreport.exceptions import ConnectFailedError
from pgreport.storage.base import ClientBackend, ConnStatus, ExecStatus
from pgreport.storage.connection import ConnectionManager


ENV_VARS = (
    "PGREPORT_CONN",
    "PGREPORT_SESSION_ID",
    "PGREPORT_CLIENT_LOADING",
    "PGREPORT_CLIENT_MODULE",
    "PGREPORT_CONFORMANCE_SUITE",
    "PGREPORT_DEBUG",
)

# Ids returned by the scripted database, keyed by statement prefix.
# A list value answers with one row per item.
DEFAULT_IDS = {
    "SELECT GET_SESSION": 7,
    "SELECT GET_TEST_SUITE": 3,
    "INSERT INTO suite_results": 101,
    "SELECT GET_TEST_NAME": 42,
    "INSERT INTO test_results": 501,
}


@dataclass
class FakeResult:
    sql: str
    status: ExecStatus
    rows: list[tuple[Any, ...]] = field(default_factory=list)


@dataclass
class FakeConnection:
    number: int
    closed: bool = False


class FakeBackend(ClientBackend):
    """Scripted client backend recording every call."""

    name = "fake"

    def __init__(self, ids: dict[str, Any] | None = None) -> None:
        self.ids = dict(DEFAULT_IDS if ids is None else ids)
        self.responder: Callable[[str], FakeResult | None] | None = None
        self.loads = 0
        self.connects = 0
        self.finished: list[FakeConnection] = []
        self.executed: list[str] = []
        self.cleared: list[FakeResult] = []
        self.fail_connect = False
        self.drop_next = 0
        self.escape_shortfall = 0
        self.client_encoding: str | None = None

    @property
    def transport_calls(self) -> int:
        return self.connects + len(self.executed)

    def load(self) -> None:
        self.loads += 1

    def connect(self, dsn: str) -> FakeConnection:
        self.connects += 1
        if self.fail_connect:
            raise ConnectFailedError("Cannot connect to PostgreSQL: refused")
        return FakeConnection(self.connects)

    def status(self, conn: FakeConnection) -> ConnStatus:
        return ConnStatus.BAD if conn.closed else ConnStatus.OK

    def execute(self, conn: FakeConnection, sql: str) -> FakeResult | None:
        self.executed.append(sql)
        if self.client_encoding is not None:
            sql.encode(self.client_encoding)
        if self.drop_next:
            self.drop_next -= 1
            return None
        if self.responder is not None:
            return self.responder(sql)
        return self.respond(sql)

    def respond(self, sql: str) -> FakeResult:
        for prefix, value in self.ids.items():
            if sql.startswith(prefix):
                values = value if isinstance(value, list) else [value]
                return FakeResult(sql, ExecStatus.TUPLES_OK, [(v,) for v in values])
        if sql.startswith("UPDATE"):
            return FakeResult(sql, ExecStatus.COMMAND_OK)
        return FakeResult(sql, ExecStatus.TUPLES_OK)

    def result_status(self, result: FakeResult) -> ExecStatus:
        return result.status

    def row_count(self, result: FakeResult) -> int:
        return len(result.rows)

    def value(self, result: FakeResult, row: int, column: int) -> str | None:
        if row >= len(result.rows):
            return None
        cell = result.rows[row][column]
        return None if cell is None else str(cell)

    def clear(self, result: FakeResult) -> None:
        self.cleared.append(result)

    def finish(self, conn: FakeConnection) -> None:
        conn.closed = True
        self.finished.append(conn)

    def escape_string(self, conn: FakeConnection, text: str) -> tuple[str, int]:
        escaped = text.replace("'", "''")
        return f"'{escaped}'", len(escaped) - self.escape_shortfall


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep real reporting variables out of every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def settings() -> ReportingSettings:
    return ReportingSettings(connection="host=fake dbname=results", session_token="S1")


@pytest.fixture
def manager(settings, backend) -> ConnectionManager:
    return ConnectionManager(settings, backend)


@pytest.fixture
def make_backend():
    """Factory for backends with a custom id script."""
    return FakeBackend
