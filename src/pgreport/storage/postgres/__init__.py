"""PostgreSQL backends and statements.

`StaticBackend` lives in `pgreport.storage.postgres.static` and is imported
on demand so that the dynamic backend works without psycopg2 installed.
"""

from pgreport.storage.postgres.backend import DynamicBackend, PgResult, PsycopgBackend


__all__ = ["DynamicBackend", "PgResult", "PsycopgBackend"]
