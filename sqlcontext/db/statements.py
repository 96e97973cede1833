"""Prepared statements bound to a context's connection."""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult
from sqlalchemy.exc import SQLAlchemyError

from sqlcontext.config.models import StreamingOptions
from sqlcontext.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class PreparedStatement:
    """SQL text bound to a connection, ready to be executed repeatedly.

    Parameters use SQLAlchemy's named bind style (``:name``). A streaming
    statement carries server-side cursor options, so the cursors it returns
    fetch rows from the server as they are consumed.
    """

    def __init__(
        self,
        connection: Connection,
        sql: str,
        streaming: Optional[StreamingOptions] = None,
    ) -> None:
        """Initialize the statement.

        Args:
            connection: Open connection the statement runs on.
            sql: Statement text.
            streaming: Cursor settings for streaming. ``None`` keeps the
                driver's default buffering.

        Raises:
            DatabaseError: With kind ``STATEMENT`` if the text cannot be
                prepared.
        """
        self.sql = sql
        self.streaming = streaming
        self._connection = connection
        self._closed = False

        try:
            clause = text(sql)
            if streaming is not None:
                clause = clause.execution_options(**streaming.to_execution_options())
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise DatabaseError.statement(
                "Unable to create database prepared statement",
                cause=e,
                operation="prepare",
                sql=sql,
            ) from e
        self._clause = clause

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_streaming(self) -> bool:
        return self.streaming is not None

    @property
    def forward_only(self) -> bool:
        return self.is_streaming and self.streaming.forward_only

    @property
    def read_only(self) -> bool:
        return self.is_streaming and self.streaming.read_only

    @property
    def fetch_size(self) -> Optional[int]:
        """Rows per server round trip, or None for driver default buffering."""
        return self.streaming.fetch_size if self.streaming is not None else None

    @property
    def execution_options(self) -> Dict[str, Any]:
        """Execution options attached to the statement."""
        return dict(self._clause.get_execution_options())

    def execute_query(self, parameters: Optional[Mapping[str, Any]] = None) -> CursorResult:
        """Execute the statement and return its cursor.

        Args:
            parameters: Named bind values.

        Returns:
            Open cursor result. The caller owns it.

        Raises:
            DatabaseError: With kind ``STATEMENT`` on failure.
        """
        self._check_open()
        try:
            if parameters:
                return self._connection.execute(self._clause, dict(parameters))
            return self._connection.execute(self._clause)
        except SQLAlchemyError as e:
            raise DatabaseError.statement(
                f"Query execution failed: {e}",
                cause=e,
                operation="execute_query",
                sql=self.sql,
            ) from e

    def execute_update(self, parameters: Optional[Mapping[str, Any]] = None) -> int:
        """Execute a data-modifying statement.

        Returns:
            Number of rows affected, or 0 if the driver does not report it.
        """
        self._check_open()
        try:
            if parameters:
                result = self._connection.execute(self._clause, dict(parameters))
            else:
                result = self._connection.execute(self._clause)
        except SQLAlchemyError as e:
            raise DatabaseError.statement(
                f"Statement execution failed: {e}",
                cause=e,
                operation="execute_update",
                sql=self.sql,
            ) from e

        try:
            return result.rowcount if result.rowcount >= 0 else 0
        finally:
            result.close()

    def execute_batch(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Execute the statement once per parameter set (``executemany``).

        Returns:
            Number of rows affected, or 0 if the driver does not report it.
        """
        self._check_open()
        if not rows:
            return 0
        try:
            result = self._connection.execute(self._clause, [dict(row) for row in rows])
        except SQLAlchemyError as e:
            raise DatabaseError.statement(
                f"Batch execution failed: {e}",
                cause=e,
                operation="execute_batch",
                sql=self.sql,
                batch_size=len(rows),
            ) from e

        try:
            return result.rowcount if result.rowcount >= 0 else 0
        finally:
            result.close()

    def close(self) -> None:
        """Close the statement. Cursors it already produced stay usable."""
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise DatabaseError.statement(
                "Statement is closed",
                operation="execute",
                sql=self.sql,
            )

    def __enter__(self) -> "PreparedStatement":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        mode = f"streaming, fetch_size={self.fetch_size}" if self.is_streaming else "buffered"
        state = "closed" if self._closed else "open"
        return f"PreparedStatement({self.sql!r}, {mode}, {state})"
