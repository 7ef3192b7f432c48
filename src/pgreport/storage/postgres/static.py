"""Backend bound to the psycopg2 imported with this package."""

import psycopg2

from pgreport.storage.postgres.backend import PsycopgBackend


class StaticBackend(PsycopgBackend):
    """Backend using psycopg2 as linked at import time."""

    name = "psycopg2"

    def __init__(self) -> None:
        super().__init__(psycopg2)
