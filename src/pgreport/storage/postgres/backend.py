"""PostgreSQL client backends built on psycopg2."""

from __future__ import annotations

import importlib
import logging
import threading
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any

from pgreport.exceptions import BackendUnavailableError, ConnectFailedError
from pgreport.storage.base import ClientBackend, ConnStatus, ExecStatus


logger = logging.getLogger(__name__)

# Attributes a DB-API module must expose to be usable as the client.
REQUIRED_ENTRY_POINTS = (
    "connect",
    "Error",
    "OperationalError",
    "InterfaceError",
    "extensions.QuotedString",
    "extensions.encodings",
)


@dataclass
class PgResult:
    """Raw result of one statement."""

    cursor: Any
    status: ExecStatus
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    error_message: str | None = None


class PsycopgBackend(ClientBackend):
    """Backend driving a psycopg2-compatible module.

    Subclasses decide where the module comes from; everything else is shared.
    """

    name = "psycopg"

    def __init__(self, api: ModuleType | None = None) -> None:
        self._api = api

    @property
    def api(self) -> ModuleType:
        if self._api is None:
            msg = f"{self.name} backend used before load()"
            raise BackendUnavailableError(msg, module=self.name)
        return self._api

    def load(self) -> None:
        """Nothing to resolve once the module is bound."""

    def connect(self, dsn: str) -> Any:
        api = self.api
        try:
            conn = api.connect(dsn)
        except api.Error as e:
            raise ConnectFailedError(f"Cannot connect to PostgreSQL: {e}".strip()) from e
        conn.autocommit = True
        return conn

    def status(self, conn: Any) -> ConnStatus:
        if conn is None or conn.closed:
            return ConnStatus.BAD
        return ConnStatus.OK

    def execute(self, conn: Any, sql: str) -> PgResult | None:
        api = self.api
        if conn is None or conn.closed:
            return None
        try:
            cursor = conn.cursor()
        except (api.OperationalError, api.InterfaceError):
            return None

        try:
            cursor.execute(sql)
            if cursor.description is None:
                return PgResult(cursor=cursor, status=ExecStatus.COMMAND_OK)
            rows = cursor.fetchall()
        except (api.OperationalError, api.InterfaceError) as e:
            logger.debug("Transport error while executing statement: %s", e)
            cursor.close()
            return None
        except api.Error as e:
            return PgResult(cursor=cursor, status=ExecStatus.FATAL_ERROR, error_message=str(e).strip())
        except Exception as e:  # pylint: disable=broad-except
            # Client-side failures, e.g. text the connection encoding cannot hold.
            logger.debug("Client error while executing statement: %s", e)
            cursor.close()
            return PgResult(cursor=cursor, status=ExecStatus.FATAL_ERROR, error_message=str(e))

        return PgResult(cursor=cursor, status=ExecStatus.TUPLES_OK, rows=rows)

    def result_status(self, result: PgResult) -> ExecStatus:
        return result.status

    def row_count(self, result: PgResult) -> int:
        return len(result.rows)

    def value(self, result: PgResult, row: int, column: int) -> str | None:
        if row >= len(result.rows) or column >= len(result.rows[row]):
            return None
        cell = result.rows[row][column]
        return None if cell is None else str(cell)

    def clear(self, result: PgResult) -> None:
        if not result.cursor.closed:
            result.cursor.close()

    def finish(self, conn: Any) -> None:
        if conn is not None and not conn.closed:
            conn.close()

    def escape_string(self, conn: Any, text: str) -> tuple[str, int]:
        extensions = self.api.extensions
        quoted = extensions.QuotedString(text)
        quoted.prepare(conn)
        codec = extensions.encodings.get(conn.encoding, "utf-8")
        literal = quoted.getquoted().decode(codec)

        # E'...' appears when standard_conforming_strings is off.
        body = literal[1:] if literal[:1] in ("E", "e") else literal
        return literal, max(len(body) - 2, 0)


class DynamicBackend(PsycopgBackend):
    """Backend that imports its client module on first use.

    The module is resolved at most once per backend; later calls reuse it,
    and a failed resolution is reported again without another import.
    """

    def __init__(self, module_name: str = "psycopg2") -> None:
        super().__init__(None)
        self.module_name = module_name
        self.name = module_name
        self._lock = threading.Lock()
        self._failure: BackendUnavailableError | None = None

    def load(self) -> None:
        with self._lock:
            if self._api is not None:
                return
            if self._failure is not None:
                raise self._failure

            try:
                module = importlib.import_module(self.module_name)
            except Exception as e:  # pylint: disable=broad-except
                self._failure = BackendUnavailableError(
                    f"Cannot load client module {self.module_name}: {e}", module=self.module_name
                )
                raise self._failure from e

            missing = [ep for ep in REQUIRED_ENTRY_POINTS if not _has_path(module, ep)]
            if missing:
                self._failure = BackendUnavailableError(
                    f"Client module {self.module_name} lacks {', '.join(missing)}",
                    module=self.module_name,
                )
                raise self._failure

            logger.debug("Loaded client module %s", self.module_name)
            self._api = module


def _has_path(module: ModuleType, dotted: str) -> bool:
    target: Any = module
    for part in dotted.split("."):
        if not hasattr(target, part):
            return False
        target = getattr(target, part)
    return True
