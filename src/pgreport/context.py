"""Bootstrap of the reporting subsystem for one test run."""

from __future__ import annotations

import logging

from pgreport.config import ReportingSettings
from pgreport.custom_fields import ReportingLink
from pgreport.listener import ReportingListener
from pgreport.storage.base import ClientBackend
from pgreport.storage.connection import ConnectionManager


logger = logging.getLogger(__name__)


def should_report(settings: ReportingSettings) -> bool:
    """Reporting needs both a connection descriptor and a session token."""
    return settings.dsn is not None and settings.session_token is not None


class ReportingContext:
    """Connection and listener owned by one test run.

    Built once by the run's bootstrap and handed to whoever needs it;
    `close` ends the session row and drops the connection.

    Usage:
        context = ReportingContext.create()
        context.listener.on_suite_start("suite")
        ...
        context.close()
    """

    def __init__(
        self,
        settings: ReportingSettings,
        connection: ConnectionManager,
        listener: ReportingListener,
    ) -> None:
        self.settings = settings
        self.connection = connection
        self.listener = listener
        self._closed = False

    @classmethod
    def create(
        cls,
        settings: ReportingSettings | None = None,
        backend: ClientBackend | None = None,
    ) -> ReportingContext:
        settings = settings or ReportingSettings()
        connection = ConnectionManager(settings, backend)
        listener = ReportingListener(connection, settings)
        return cls(settings, connection, listener)

    def __enter__(self) -> ReportingContext:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def enabled(self) -> bool:
        return self.listener.enabled

    def link(self) -> ReportingLink:
        """Custom-field link bound to this run's listener."""
        return ReportingLink(self.listener)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.listener.close()
        self.connection.close()
        logger.debug("Reporting context closed")
