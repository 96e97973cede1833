"""Database connection lifecycle, statements and streaming cursors."""

from sqlcontext.db.context import ConnectionContext
from sqlcontext.db.driver import DriverInfo, DriverRegistrar, RunOnce, get_registrar, load_driver
from sqlcontext.db.results import iter_chunks, iter_rows
from sqlcontext.db.statements import PreparedStatement

__all__ = [
    # Connection lifecycle
    "ConnectionContext",
    # Driver registration
    "DriverInfo",
    "DriverRegistrar",
    "RunOnce",
    "get_registrar",
    "load_driver",
    # Statements and cursors
    "PreparedStatement",
    "iter_rows",
    "iter_chunks",
]
