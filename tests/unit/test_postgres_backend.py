import importlib
import sys
from types import ModuleType, SimpleNamespace

import pytest

from pgreport.exceptions import BackendUnavailableError, ConnectFailedError
from pgreport.storage.base import ConnStatus, ExecStatus
from pgreport.storage.postgres.backend import DynamicBackend, PsycopgBackend


class Error(Exception):
    pass


class OperationalError(Error):
    pass


class InterfaceError(Error):
    pass


class FakeQuotedString:
    prefix = ""

    def __init__(self, text):
        self.text = text
        self.conn = None

    def prepare(self, conn):
        self.conn = conn

    def getquoted(self):
        return (self.prefix + "'" + self.text.replace("'", "''") + "'").encode("utf-8")


class FakeCursor:
    def __init__(self, outcome, fetch_error=None):
        self.outcome = outcome
        self.fetch_error = fetch_error
        self.description = None
        self.closed = False
        self.statements = []

    def execute(self, sql):
        self.statements.append(sql)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        if self.outcome is not None:
            self.description = [("col",)]

    def fetchall(self):
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.outcome)

    def close(self):
        self.closed = True


class FakeConn:
    encoding = "UTF8"

    def __init__(self, outcome=None, fetch_error=None):
        self.outcome = outcome
        self.fetch_error = fetch_error
        self.closed = False
        self.autocommit = False

    def cursor(self):
        return FakeCursor(self.outcome, self.fetch_error)

    def close(self):
        self.closed = True


def make_api(connect=None):
    api = ModuleType("fake_pg_client")
    api.Error = Error
    api.OperationalError = OperationalError
    api.InterfaceError = InterfaceError
    api.connect = connect or (lambda dsn: FakeConn())
    api.extensions = SimpleNamespace(QuotedString=FakeQuotedString, encodings={"UTF8": "utf-8"})
    return api


class TestPsycopgBackend:
    def test_connect_enables_autocommit(self):
        backend = PsycopgBackend(make_api())

        conn = backend.connect("host=fake")

        assert conn.autocommit is True
        assert backend.status(conn) is ConnStatus.OK

    def test_connect_error_is_wrapped(self):
        def refuse(dsn):
            raise OperationalError("connection refused")

        backend = PsycopgBackend(make_api(refuse))

        with pytest.raises(ConnectFailedError, match="connection refused"):
            backend.connect("host=fake")

    def test_unbound_backend_is_unavailable(self):
        with pytest.raises(BackendUnavailableError):
            PsycopgBackend().connect("host=fake")

    def test_rows_give_tuples_status(self):
        backend = PsycopgBackend(make_api())

        result = backend.execute(FakeConn([(7,)]), "SELECT GET_SESSION('S1')")

        assert backend.result_status(result) is ExecStatus.TUPLES_OK
        assert backend.row_count(result) == 1
        assert backend.value(result, 0, 0) == "7"
        assert backend.value(result, 1, 0) is None

    def test_no_description_gives_command_status(self):
        backend = PsycopgBackend(make_api())

        result = backend.execute(FakeConn(None), "UPDATE sessions SET end_time=NOW()")

        assert backend.result_status(result) is ExecStatus.COMMAND_OK

    def test_server_error_gives_fatal_status(self):
        backend = PsycopgBackend(make_api())

        result = backend.execute(FakeConn(Error("syntax error")), "SELEC 1")

        assert backend.result_status(result) is ExecStatus.FATAL_ERROR
        assert result.error_message == "syntax error"

    def test_transport_error_gives_no_result(self):
        backend = PsycopgBackend(make_api())

        assert backend.execute(FakeConn(OperationalError("gone")), "SELECT 1") is None

    def test_drop_while_fetching_gives_no_result(self):
        backend = PsycopgBackend(make_api())
        conn = FakeConn([(7,)], fetch_error=OperationalError("server closed the connection"))

        assert backend.execute(conn, "SELECT GET_SESSION('S1')") is None

    def test_client_side_error_gives_fatal_status(self):
        backend = PsycopgBackend(make_api())
        error = UnicodeEncodeError("latin-1", "\u6d4b\u8bd5", 0, 2, "ordinal not in range(256)")

        result = backend.execute(FakeConn(error), "SELECT GET_TEST_NAME(3, '\u6d4b\u8bd5')")

        assert backend.result_status(result) is ExecStatus.FATAL_ERROR
        assert result.cursor.closed is True
        assert "latin-1" in result.error_message

    def test_closed_connection_gives_no_result(self):
        backend = PsycopgBackend(make_api())
        conn = FakeConn()
        conn.close()

        assert backend.execute(conn, "SELECT 1") is None
        assert backend.status(conn) is ConnStatus.BAD

    def test_clear_closes_cursor(self):
        backend = PsycopgBackend(make_api())
        result = backend.execute(FakeConn([(1,)]), "SELECT 1")

        backend.clear(result)

        assert result.cursor.closed is True

    def test_escape_string_counts_escaped_body(self):
        backend = PsycopgBackend(make_api())

        literal, written = backend.escape_string(FakeConn(), "<a b='c'/>")

        assert literal == "'<a b=''c''/>'"
        assert written == len("<a b=''c''/>")

    def test_escape_string_with_extended_prefix(self, monkeypatch):
        monkeypatch.setattr(FakeQuotedString, "prefix", "E")
        backend = PsycopgBackend(make_api())

        literal, written = backend.escape_string(FakeConn(), "abc")

        assert literal == "E'abc'"
        assert written == 3


class TestDynamicBackend:
    def test_missing_module_fails_once(self, monkeypatch):
        calls = []
        real_import = importlib.import_module

        def counting_import(name, *args):
            calls.append(name)
            return real_import(name, *args)

        monkeypatch.setattr(importlib, "import_module", counting_import)
        backend = DynamicBackend("pgreport_no_such_client")

        with pytest.raises(BackendUnavailableError):
            backend.load()
        with pytest.raises(BackendUnavailableError):
            backend.load()

        assert calls == ["pgreport_no_such_client"]

    def test_module_failing_on_import_is_unavailable(self, monkeypatch):
        def broken_import(name, *args):
            raise RuntimeError("client library built for another platform")

        monkeypatch.setattr(importlib, "import_module", broken_import)
        backend = DynamicBackend("pgreport_broken_client")

        with pytest.raises(BackendUnavailableError, match="another platform"):
            backend.load()

    def test_module_without_entry_points_is_rejected(self, monkeypatch):
        incomplete = ModuleType("pgreport_incomplete_client")
        incomplete.connect = lambda dsn: None
        monkeypatch.setitem(sys.modules, "pgreport_incomplete_client", incomplete)

        backend = DynamicBackend("pgreport_incomplete_client")

        with pytest.raises(BackendUnavailableError, match="extensions.QuotedString"):
            backend.load()

    def test_loaded_module_is_used(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "pgreport_fake_client", make_api())
        backend = DynamicBackend("pgreport_fake_client")

        backend.load()
        backend.load()
        conn = backend.connect("host=fake")

        assert backend.status(conn) is ConnStatus.OK
        assert backend.api is sys.modules["pgreport_fake_client"]
