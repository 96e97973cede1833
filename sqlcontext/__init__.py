"""sqlcontext: connection lifecycle management for extract/load tools.

sqlcontext provides:
- One-time, thread-safe database driver registration
- Lazily opened, single-connection database contexts
- Prepared statements and row-at-a-time streaming cursors
- Deterministic, never-failing resource release
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core exports
from sqlcontext.exceptions import DatabaseError, ErrorKind, SQLContextError
from sqlcontext.db import ConnectionContext, PreparedStatement

__all__ = [
    "__version__",
    "ConnectionContext",
    "PreparedStatement",
    "SQLContextError",
    "DatabaseError",
    "ErrorKind",
]
