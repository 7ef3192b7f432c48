"""Reporter configuration."""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


CONN_ENV = "PGREPORT_CONN"
SESSION_ENV = "PGREPORT_SESSION_ID"
DEFAULT_CONFORMANCE_SUITE = "conformance/ReadIRTest"


class ReportingSettings(BaseSettings):
    """Configuration for the PostgreSQL test-run reporter.

    Environment variables are read without a prefix.

    Attributes
    ----------
    connection
        libpq connection descriptor, passed verbatim to the client
        (from ``PGREPORT_CONN``).
    session_token
        Token correlating this process with others in the same test run
        (from ``PGREPORT_SESSION_ID``).
    client_loading
        ``static`` uses the client imported with the package, ``dynamic``
        imports `client_module` on first connect
        (from ``PGREPORT_CLIENT_LOADING``).
    client_module
        Module providing the DB-API client for dynamic loading
        (from ``PGREPORT_CLIENT_MODULE``).
    conformance_suite
        Suite whose tests get a normalized model description
        (from ``PGREPORT_CONFORMANCE_SUITE``).
    debug
        Log every statement (from ``PGREPORT_DEBUG``).
    """

    connection: SecretStr | None = Field(default=None, validation_alias=CONN_ENV)
    session_token: str | None = Field(default=None, validation_alias=SESSION_ENV)
    client_loading: Literal["static", "dynamic"] = Field(
        default="static", validation_alias="PGREPORT_CLIENT_LOADING"
    )
    client_module: str = Field(default="psycopg2", validation_alias="PGREPORT_CLIENT_MODULE")
    conformance_suite: str = Field(
        default=DEFAULT_CONFORMANCE_SUITE, validation_alias="PGREPORT_CONFORMANCE_SUITE"
    )
    debug: bool = Field(default=False, validation_alias="PGREPORT_DEBUG")

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_prefix="",
    )

    @property
    def dsn(self) -> str | None:
        """Plain connection descriptor, or None when not configured."""
        if self.connection is None:
            return None
        return self.connection.get_secret_value()
