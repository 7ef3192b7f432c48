"""pytest plugin mirroring a test session into PostgreSQL.

Reporting switches on when both ``PGREPORT_CONN`` and
``PGREPORT_SESSION_ID`` are set and ``--pgreport-disable`` is not given.
Tests are grouped into suites by their parent node (module or class),
or by the name given with ``@pytest.mark.pgreport_suite("name")``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import pytest
from pydantic import ValidationError

from pgreport.config import ReportingSettings
from pgreport.context import ReportingContext, should_report
from pgreport.custom_fields import ReportingLink
from pgreport.listener import ReportingListener, TestOutcome
from pgreport.log import configure_logging


logger = logging.getLogger(__name__)

REPORTER_PLUGIN_NAME = "pgreport-reporter"
SUITE_MARKER = "pgreport_suite"

context_key = pytest.StashKey["ReportingContext | None"]()


def suite_name_for(item: pytest.Item) -> str:
    """Suite an item is reported under."""
    marker = item.get_closest_marker(SUITE_MARKER)
    if marker is not None and marker.args:
        return str(marker.args[0])
    parent = item.parent
    return parent.nodeid if parent is not None else item.nodeid


def value_param_for(item: pytest.Item) -> str | None:
    """Serialized parametrization of an item, or None if it has none."""
    callspec = getattr(item, "callspec", None)
    if callspec is None:
        return None
    return repr(tuple(callspec.params.values()))


def outcome_from_reports(reports: list[pytest.TestReport]) -> TestOutcome:
    """Fold setup/call/teardown reports into one outcome."""
    if not reports or any(r.failed for r in reports):
        return TestOutcome.FAILED
    if any(r.skipped for r in reports):
        return TestOutcome.SKIPPED
    return TestOutcome.PASSED


def _guarded(hook: Callable[..., Any], *args: Any) -> None:
    """Call a listener hook; reporting must never break the run."""
    try:
        hook(*args)
    except Exception:  # pylint: disable=broad-except
        logger.exception("PostgreSQL reporting hook %s failed", getattr(hook, "__name__", hook))


class PytestReporter:
    """Translates pytest's run protocol into listener notifications."""

    def __init__(self, listener: ReportingListener) -> None:
        self.listener = listener
        self.current_suite: str | None = None
        self._suite_failed = False
        self._reports: dict[str, list[pytest.TestReport]] = {}

    def _start_suite(self, name: str) -> None:
        self.current_suite = name
        self._suite_failed = False
        _guarded(self.listener.on_suite_start, name)

    def _end_suite(self) -> None:
        if self.current_suite is None:
            return
        self.current_suite = None
        _guarded(self.listener.on_suite_end, not self._suite_failed)

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: pytest.Item | None):
        suite = suite_name_for(item)
        if suite != self.current_suite:
            self._end_suite()
            self._start_suite(suite)

        self._reports[item.nodeid] = []
        _guarded(self.listener.on_test_start, item.name, value_param_for(item))

        yield

        reports = self._reports.pop(item.nodeid, [])
        outcome = outcome_from_reports(reports)
        if outcome is TestOutcome.FAILED:
            self._suite_failed = True
        elapsed_ms = int(sum(r.duration for r in reports) * 1000)
        _guarded(self.listener.on_test_end, outcome, elapsed_ms)

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        reports = self._reports.get(report.nodeid)
        if reports is not None:
            reports.append(report)

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        self._end_suite()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("pgreport", "PostgreSQL test-run reporting")
    group.addoption(
        "--pgreport-disable",
        action="store_true",
        default=False,
        help="Do not report this run to PostgreSQL even if configured.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", f"{SUITE_MARKER}(name): report the test under the given suite name"
    )
    config.stash[context_key] = None

    if config.getoption("pgreport_disable"):
        return

    try:
        settings = ReportingSettings()
    except ValidationError as e:
        logger.error("Invalid PostgreSQL reporting settings, reporting disabled: %s", e)
        return

    if settings.debug:
        configure_logging(debug=True)
    if not should_report(settings):
        return

    try:
        context = ReportingContext.create(settings)
    except Exception:  # pylint: disable=broad-except
        logger.exception("PostgreSQL reporting bootstrap failed, reporting disabled")
        return

    config.stash[context_key] = context
    if context.enabled:
        config.pluginmanager.register(PytestReporter(context.listener), REPORTER_PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    context = config.stash.get(context_key, None)
    if context is not None:
        _guarded(context.close)
        config.stash[context_key] = None


@pytest.fixture
def pgreport_link(request: pytest.FixtureRequest) -> ReportingLink:
    """Custom-field link for the running session."""
    context = request.config.stash.get(context_key, None)
    if context is None:
        return ReportingLink()
    return context.link()
