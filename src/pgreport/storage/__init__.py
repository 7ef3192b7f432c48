"""Storage module for mirroring test runs into PostgreSQL."""

from pgreport.storage.base import ClientBackend, ConnStatus, ExecStatus
from pgreport.storage.connection import (
    ConnectionManager,
    close_connection_manager,
    get_connection_manager,
    select_backend,
)
from pgreport.storage.result import ResultHandle


__all__ = [
    "ClientBackend",
    "ConnStatus",
    "ConnectionManager",
    "ExecStatus",
    "ResultHandle",
    "close_connection_manager",
    "get_connection_manager",
    "select_backend",
]
