"""Connection management for the reporting database."""

from __future__ import annotations

import atexit
import logging
import threading
from typing import Any

from pgreport.config import CONN_ENV, ReportingSettings
from pgreport.exceptions import (
    BackendUnavailableError,
    ConfigMissingError,
    ConnectFailedError,
    QueryFailedError,
    StatusMismatchError,
    TransportLostError,
)
from pgreport.storage.base import ClientBackend, ConnStatus, ExecStatus
from pgreport.storage.postgres.backend import DynamicBackend
from pgreport.storage.result import ResultHandle


logger = logging.getLogger(__name__)


def select_backend(settings: ReportingSettings) -> ClientBackend:
    """Pick the client backend named by the settings.

    Raises BackendUnavailableError when the static client is not installed.
    """
    if settings.client_loading == "dynamic":
        return DynamicBackend(settings.client_module)

    try:
        from pgreport.storage.postgres.static import StaticBackend
    except ImportError as e:
        raise BackendUnavailableError(f"Cannot import psycopg2: {e}", module="psycopg2") from e
    return StaticBackend()


class ConnectionManager:
    """Owns one live connection with lazy connect and a single reconnect.

    A connection that drops mid-run is re-established at most once per
    failing statement.
    """

    def __init__(
        self,
        settings: ReportingSettings | None = None,
        backend: ClientBackend | None = None,
    ) -> None:
        self._settings = settings or ReportingSettings()
        self._backend = backend
        self._lock = threading.RLock()
        self._conn: Any = None
        self.is_connected = False

    @property
    def backend(self) -> ClientBackend:
        if self._backend is None:
            self._backend = select_backend(self._settings)
        return self._backend

    def initialize(self) -> bool:
        """Connect using the configured descriptor.

        Returns True when a connection is live afterwards. Never raises.
        """
        with self._lock:
            if self._conn is not None and self.is_connected:
                logger.debug("PostgreSQL connection already established")
                return True

            try:
                self._connect()
            except ConfigMissingError as e:
                logger.warning("%s", e)
                return False
            except BackendUnavailableError as e:
                logger.error("PostgreSQL client unavailable: %s", e)
                return False
            except ConnectFailedError as e:
                logger.error("%s", e)
                return False
            except Exception as e:  # pylint: disable=broad-except
                logger.error("Unexpected error while connecting to PostgreSQL: %s", e)
                return False

            self.is_connected = True
            logger.info("Connected to PostgreSQL successfully")
            return True

    def _connect(self) -> None:
        dsn = self._settings.dsn
        if dsn is None:
            msg = f"PostgreSQL connection string isn't found in environment ({CONN_ENV})"
            raise ConfigMissingError(msg, {"variable": CONN_ENV})

        backend = self.backend
        backend.load()
        conn = backend.connect(dsn)
        try:
            status = backend.status(conn)
        except Exception:
            self._finish(conn)
            raise
        if status != ConnStatus.OK:
            self._finish(conn)
            raise ConnectFailedError(f"Cannot connect to PostgreSQL: status {int(status)}")
        self._conn = conn

    def query(self, sql: str, expected_status: ExecStatus = ExecStatus.TUPLES_OK) -> ResultHandle:
        """Execute `sql` and return its result.

        An empty handle means failure: not connected, transport lost twice,
        or a status other than `expected_status`. Never raises.
        """
        with self._lock:
            if not self.is_connected:
                return ResultHandle()

            try:
                return self._query(sql, expected_status)
            except Exception as e:  # pylint: disable=broad-except
                logger.error("%s", QueryFailedError(f"PostgreSQL client error: {e}", sql))
                return ResultHandle()

    def _query(self, sql: str, expected_status: ExecStatus) -> ResultHandle:
        backend = self.backend
        result = ResultHandle(backend.execute(self._conn, sql), backend.clear)
        if not result:
            logger.warning("%s", TransportLostError("PostgreSQL returned no result", sql))
            self._reconnect()
            if self.is_connected:
                result.reset(backend.execute(self._conn, sql))

        if not result:
            logger.error("Error while querying PostgreSQL: %s", sql)
            return ResultHandle()

        try:
            status = backend.result_status(result.get())
        except Exception:
            result.release()
            raise
        if status != expected_status:
            error = StatusMismatchError(
                "Unexpected PostgreSQL result status", sql, int(expected_status), int(status)
            )
            logger.error("%s", error)
            result.release()
            return ResultHandle()

        return result

    def _reconnect(self) -> None:
        if self._conn is not None:
            self._finish(self._conn)
            self._conn = None
        self.is_connected = False
        logger.warning("Reconnecting to the PostgreSQL server...")
        self.initialize()

    def _finish(self, conn: Any) -> None:
        try:
            self.backend.finish(conn)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("An exception while finishing PostgreSQL connection: %s", e)

    def value(self, result: ResultHandle, row: int = 0, column: int = 0) -> str | None:
        """Text of one cell of a non-empty result."""
        if not result:
            return None
        return self.backend.value(result.get(), row, column)

    def row_count(self, result: ResultHandle) -> int:
        if not result:
            return 0
        return self.backend.row_count(result.get())

    def escape_string(self, text: str) -> tuple[str | None, int]:
        """Escape `text` through the live connection.

        Returns the quoted literal and the escaped character count, or
        ``(None, 0)`` when there is no connection to escape against.
        """
        with self._lock:
            if not self.is_connected:
                return None, 0
            try:
                return self.backend.escape_string(self._conn, text)
            except Exception as e:  # pylint: disable=broad-except
                logger.error("Cannot escape string: %s", e)
                return None, 0

    def close(self) -> None:
        """Finish the live connection; later calls do nothing."""
        with self._lock:
            if self._conn is not None:
                self._finish(self._conn)
                self._conn = None
            self.is_connected = False


# Module-level shared manager helpers
_default_manager: ConnectionManager | None = None
_default_lock = threading.Lock()


def get_connection_manager(settings: ReportingSettings | None = None) -> ConnectionManager:
    """Return the process-wide shared ConnectionManager (lazy init).

    `settings` only applies to the call that creates the manager.
    """
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            _default_manager = ConnectionManager(settings)
            atexit.register(close_connection_manager)
        return _default_manager


def close_connection_manager() -> None:
    """Close the shared manager and forget it."""
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            return
        _default_manager.close()
        _default_manager = None
