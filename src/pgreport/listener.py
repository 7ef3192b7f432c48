"""Lifecycle listener mirroring a test run into the reporting database.

The listener receives suite and test notifications from the host framework
and turns each one into a short series of statements. Identifiers handed
out by the database are cached so that later notifications can refer to
the rows created earlier:

    session_id      one per process, resolved from the session token
    suite_name_id   one per suite name, kept for the whole process
    suite_run_id    one per suite run, cleared when the suite ends
    test_name_id    one per test name (and description)
    test_id         one per test run, cleared when the test ends

Any failure is logged and abandons only the remaining steps of the current
notification. Nothing raised here ever reaches the host framework.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

from pgreport.config import ReportingSettings
from pgreport.custom_fields import CustomFieldStore
from pgreport.exceptions import (
    EscapeOverflowError,
    InvalidIdentifierError,
    QueryFailedError,
    ReportingError,
)
from pgreport.params import parse_value_param
from pgreport.storage.base import ExecStatus
from pgreport.storage.connection import ConnectionManager
from pgreport.storage.postgres import statements
from pgreport.xml_normalizer import normalize_model_xml


logger = logging.getLogger(__name__)


class ListenerState(Enum):
    """Whether the listener writes to the database at all."""

    DISABLED = "disabled"
    ENABLED = "enabled"


class Phase(Enum):
    """Position inside the host's suite/test nesting."""

    IDLE = "idle"
    SUITE_ACTIVE = "suite_active"
    TEST_ACTIVE = "test_active"


class TestOutcome(Enum):
    """Final outcome of one test."""

    __test__ = False  # Prevent pytest from collecting this as a test class

    PASSED = "passed"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def status_code(self) -> int:
        """Value stored in the test_result column."""
        if self is TestOutcome.PASSED:
            return 1
        if self is TestOutcome.SKIPPED:
            return 2
        return 0


def _elapsed_ms(started: float | None) -> int:
    if started is None:
        return 0
    return int((time.perf_counter() - started) * 1000)


class ReportingListener:
    """State machine driven by host lifecycle notifications.

    Construction performs the session bootstrap. Without a session token,
    or when the connection or session lookup fails, the listener stays
    DISABLED for the rest of the process and every hook is a no-op.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        settings: ReportingSettings | None = None,
    ) -> None:
        self._connection = connection
        self._settings = settings or ReportingSettings()
        self.state = ListenerState.DISABLED

        self.session_id: int | None = None
        self.suite_name_id: int | None = None
        self.suite_run_id: int | None = None
        self.test_name_id: int | None = None
        self.test_id: int | None = None

        self._suite_name_ids: dict[str, int] = {}
        self._suite_name: str | None = None
        self._suite_started: float | None = None
        self._test_started: float | None = None

        self.custom_fields = CustomFieldStore()

        self._start_session()

    @property
    def enabled(self) -> bool:
        return self.state is ListenerState.ENABLED and self.session_id is not None

    @property
    def phase(self) -> Phase:
        if self.test_id is not None:
            return Phase.TEST_ACTIVE
        if self.suite_run_id is not None:
            return Phase.SUITE_ACTIVE
        return Phase.IDLE

    @property
    def current_suite(self) -> str | None:
        return self._suite_name

    # -------- Statement helpers --------

    @contextmanager
    def _transition(self, stage: str) -> Iterator[None]:
        """Run one notification's steps; a failing step abandons the rest."""
        try:
            yield
        except ReportingError as e:
            logger.error("PostgreSQL reporting: %s aborted: %s", stage, e)
        except Exception:  # pylint: disable=broad-except
            logger.exception("PostgreSQL reporting: %s failed unexpectedly", stage)

    def _fetch_id(self, stage: str, sql: str) -> int:
        """Run a lookup and return the single positive integer it produced."""
        logger.debug("%s", sql)
        with self._connection.query(sql) as result:
            if not result:
                raise QueryFailedError(f"Cannot retrieve a correct {stage} id", sql, stage)
            rows = self._connection.row_count(result)
            if rows != 1:
                raise QueryFailedError(f"Expected one {stage} id row, got {rows}", sql, stage)
            raw = self._connection.value(result)

        try:
            value = int(raw) if raw is not None else 0
        except ValueError:
            value = 0
        if value <= 0:
            raise InvalidIdentifierError(f"Cannot interpret a returned {stage} id", sql, stage, raw)
        return value

    def _execute(self, stage: str, sql: str) -> None:
        logger.debug("%s", sql)
        with self._connection.query(sql, ExecStatus.COMMAND_OK) as result:
            if not result:
                raise QueryFailedError(f"Cannot update {stage}", sql, stage)

    # -------- Session --------

    def _start_session(self) -> None:
        token = self._settings.session_token
        if token is None:
            logger.info("Test session ID hasn't been found, continues without database reporting")
            return

        logger.info("Test session ID has been found")
        if not self._connection.initialize():
            return

        with self._transition("session start"):
            self.session_id = self._fetch_id("session", statements.get_session(token))
            self.state = ListenerState.ENABLED

    def close(self) -> None:
        """Mark the session finished. Safe to call more than once."""
        if self.session_id is None:
            return
        with self._transition("session end"):
            self._execute("session", statements.close_session(self.session_id))

    # -------- Suites --------

    def on_suite_start(self, name: str) -> None:
        if not self.enabled:
            return

        if self.suite_run_id is not None:
            logger.warning(
                "Suite %s started while suite run %s is still open; abandoning it",
                name,
                self.suite_run_id,
            )
            self.suite_run_id = None
            self.test_id = None

        self._suite_name = name
        self._suite_started = time.perf_counter()
        self.suite_name_id = None

        with self._transition("suite start"):
            suite_name_id = self._suite_name_ids.get(name)
            if suite_name_id is None:
                suite_name_id = self._fetch_id("suite name", statements.get_suite_name(name))
                self._suite_name_ids[name] = suite_name_id
            self.suite_name_id = suite_name_id

            self.suite_run_id = self._fetch_id(
                "suite run", statements.insert_suite_run(self.session_id, suite_name_id)
            )

    def on_suite_end(self, passed: bool, elapsed_ms: int | None = None) -> None:
        if self.suite_run_id is None:
            return

        if self.test_id is not None:
            logger.warning(
                "Suite run %s ended while test run %s is still open", self.suite_run_id, self.test_id
            )
            self.test_id = None

        suite_run_id = self.suite_run_id
        self.suite_run_id = None
        self.suite_name_id = None
        duration = elapsed_ms if elapsed_ms is not None else _elapsed_ms(self._suite_started)

        with self._transition("suite end"):
            self._execute("suite run", statements.update_suite_run(suite_run_id, int(duration), passed))

    # -------- Tests --------

    def on_test_start(self, name: str, value_param: str | None = None) -> None:
        if not self.enabled or self.suite_name_id is None or self.suite_run_id is None:
            return

        if self.test_id is not None:
            logger.warning("Test %s started while test run %s is still open", name, self.test_id)
            self.test_id = None

        self._test_started = time.perf_counter()

        with self._transition("test start"):
            description = None
            if value_param and self._suite_name == self._settings.conformance_suite:
                description = self._describe(value_param)

            self.test_name_id = self._fetch_id(
                "test name", statements.get_test_name(self.suite_name_id, name, description)
            )
            self.test_id = self._fetch_id(
                "test run",
                statements.insert_test_run(self.session_id, self.suite_run_id, self.test_name_id),
            )

    def _describe(self, value_param: str) -> str | None:
        """Escaped literal of the normalized model named by `value_param`."""
        params = parse_value_param(value_param)
        if not params:
            return None

        text = normalize_model_xml(params[0])
        if not text:
            return None

        literal, written = self._connection.escape_string(text)
        if literal is None:
            return None
        if written < len(text):
            error = EscapeOverflowError("Cannot escape model description", len(text), written)
            logger.warning("%s", error)
            logger.debug("%s", text)
            return None
        return literal

    def on_test_part_result(self, summary: str) -> None:
        """Legacy hook; part results are not stored."""
        logger.debug("Test part result: %s", summary)

    def on_test_end(self, outcome: TestOutcome, elapsed_ms: int | None = None) -> None:
        if self.test_id is None:
            return

        test_id = self.test_id
        self.test_id = None
        duration = elapsed_ms if elapsed_ms is not None else _elapsed_ms(self._test_started)

        with self._transition("test end"):
            self._execute(
                "test run", statements.update_test_run(test_id, int(duration), outcome.status_code)
            )

    # -------- Custom fields --------

    def set_custom_field(self, name: str, value: str, rewrite: bool = True) -> bool:
        return self.custom_fields.set(name, value, rewrite)

    def get_custom_field(self, name: str, default: str = "") -> str:
        return self.custom_fields.get(name, default)

    def remove_custom_field(self, name: str) -> bool:
        return self.custom_fields.remove(name)

    def clear_custom_fields(self) -> None:
        self.custom_fields.clear()
