"""Lifecycle management for a single logical database connection."""

import logging
import weakref
from typing import Any, Callable, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from sqlcontext.config.models import ContextSettings, DatabaseConfig, StreamingOptions, resolve_protocol
from sqlcontext.db.driver import DriverRegistrar, get_registrar, streaming_needs_transaction
from sqlcontext.db.statements import PreparedStatement
from sqlcontext.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class _ConnectionHandle:
    """Holds the engine and connection so they can be released without the context."""

    def __init__(self) -> None:
        self.engine: Optional[Engine] = None
        self.connection: Optional[Connection] = None

    @property
    def is_open(self) -> bool:
        return self.connection is not None

    def release(self) -> None:
        """Close the connection and dispose the engine; never raises."""
        connection, engine = self.connection, self.engine
        self.connection = None
        self.engine = None

        if connection is not None:
            try:
                connection.close()
            except Exception as e:
                logger.warning(f"Ignoring error while closing database connection: {e}")

        if engine is not None:
            try:
                engine.dispose()
            except Exception as e:
                logger.warning(f"Ignoring error while disposing database engine: {e}")


def _release_leaked(handle: _ConnectionHandle, description: str) -> None:
    if handle.is_open:
        logger.warning(f"{description} was garbage collected without release(); closing its connection")
        handle.release()


class ConnectionContext:
    """Owns one database connection and the statements derived from it.

    The connection is opened on the first statement request and reused
    until :meth:`release`. Use the context as a ``with`` block so release
    happens on every exit path::

        with ConnectionContext("db.example.com", "osm", "reader", "secret") as ctx:
            for row in iter_rows(ctx.execute_streaming_query("SELECT * FROM nodes")):
                ...

    A context is meant for a single owner at a time; only driver
    registration is shared between threads.
    """

    def __init__(
        self,
        host: str,
        database: str,
        user: str,
        password: str,
        *,
        protocol: Optional[str] = None,
        settings: Optional[ContextSettings] = None,
        registrar: Optional[DriverRegistrar] = None,
        engine_factory: Callable[..., Engine] = create_engine,
    ) -> None:
        """Initialize the context. No connection is opened here.

        Args:
            host: Server hosting the database.
            database: Database name.
            user: User name for authentication.
            password: Password for authentication.
            protocol: SQLAlchemy dialect name. Defaults to
                ``SQLCONTEXT_PROTOCOL`` or ``mysql+pymysql``.
            settings: Engine and streaming settings.
            registrar: Driver registrar. Defaults to the process-wide one for
                ``protocol``.
            engine_factory: Callable building the engine from a URL.
        """
        self.host = host
        self.database = database
        self.user = user
        self._password = password
        self.protocol = resolve_protocol(protocol)
        self.settings = settings or ContextSettings()
        self._registrar = registrar or get_registrar(self.protocol)
        self._engine_factory = engine_factory
        self._handle = _ConnectionHandle()
        self._finalizer = weakref.finalize(self, _release_leaked, self._handle, repr(self))

    @classmethod
    def from_config(
        cls, config: DatabaseConfig, settings: Optional[ContextSettings] = None, **kwargs: Any
    ) -> "ConnectionContext":
        """Create a context from a validated :class:`DatabaseConfig`."""
        return cls(
            config.host,
            config.database,
            config.username,
            config.password.get_secret_value(),
            protocol=config.protocol,
            settings=settings,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        """Whether a physical connection is currently held."""
        return self._handle.is_open

    @property
    def streaming_options(self) -> StreamingOptions:
        return self.settings.streaming

    def build_connection_url(self) -> str:
        """Build ``protocol://host/database?user=...&password=...``.

        Values are embedded as-is.
        """
        return (
            f"{self.protocol}://{self.host}/{self.database}?"
            f"user={self.user}&password={self._password}"
        )

    def _masked_url(self) -> str:
        return f"{self.protocol}://{self.host}/{self.database}?user={self.user}&password=***"

    def get_connection(self) -> Connection:
        """Return the held connection, opening it on first use.

        Raises:
            DatabaseError: ``CONFIGURATION`` if the driver is missing,
                ``CONNECTION`` if the connection cannot be established.
        """
        self._registrar.ensure_loaded()

        if self._handle.connection is None:
            engine = None
            try:
                logger.debug(f"Connecting to {self._masked_url()}")
                engine = self._engine_factory(
                    self.build_connection_url(),
                    poolclass=NullPool,
                    isolation_level=self.settings.isolation_level,
                    echo=self.settings.echo,
                    connect_args=dict(self.settings.connect_args),
                )
                connection = engine.connect()
            except (SQLAlchemyError, ValueError, TypeError) as e:
                if engine is not None:
                    try:
                        engine.dispose()
                    except Exception as dispose_error:
                        logger.warning(f"Ignoring error while disposing database engine: {dispose_error}")
                raise DatabaseError.connection(
                    "Unable to establish a database connection",
                    cause=e,
                    host=self.host,
                    database=self.database,
                ) from e

            self._handle.engine = engine
            self._handle.connection = connection
            logger.debug(f"Connected to {self.host}/{self.database}")

        return self._handle.connection

    def prepare_statement(self, sql: str) -> PreparedStatement:
        """Create a prepared statement with the driver's default buffering.

        Raises:
            DatabaseError: ``STATEMENT`` if preparation fails, or any error
                from :meth:`get_connection`.
        """
        return PreparedStatement(self.get_connection(), sql)

    def prepare_statement_for_streaming(self, sql: str) -> PreparedStatement:
        """Create a statement whose cursors stream rows from the server.

        The statement is forward-only and read-only with the configured
        minimum fetch size, so results are never buffered whole on the
        client. ``sql`` must be a query. If it needs no parameters, use
        :meth:`execute_streaming_query` instead.

        Raises:
            DatabaseError: ``CONFIGURATION`` if the database only streams
                inside a transaction and the context runs in autocommit.
        """
        self._registrar.ensure_loaded()
        if self.settings.isolation_level == "AUTOCOMMIT" and streaming_needs_transaction(self.protocol):
            raise DatabaseError.configuration(
                f"Streaming cursors for protocol '{self.protocol}' require a transaction; "
                "set a non-AUTOCOMMIT isolation_level to stream from this database",
                protocol=self.protocol,
                isolation_level=self.settings.isolation_level,
            )

        connection = self.get_connection()
        try:
            return PreparedStatement(connection, sql, streaming=self.streaming_options)
        except DatabaseError as e:
            raise DatabaseError.statement(
                "Unable to create streaming resultset statement",
                cause=e.cause,
                operation="prepare_streaming",
                sql=sql,
            ) from e

    def execute_streaming_query(self, sql: str) -> CursorResult:
        """Run a parameterless query and return a streaming cursor.

        The statement is closed before returning; the cursor stays open and
        must be consumed sequentially and closed by the caller.

        Raises:
            DatabaseError: ``STATEMENT`` if the streaming result cannot be
                created.
        """
        statement = self.prepare_statement_for_streaming(sql)
        try:
            return statement.execute_query()
        except DatabaseError as e:
            raise DatabaseError.statement(
                "Unable to create streaming resultset",
                cause=e.cause,
                operation="execute_streaming_query",
                sql=sql,
            ) from e
        finally:
            statement.close()

    def commit(self) -> None:
        """Commit outstanding work. The connection runs in autocommit mode, so this does nothing."""

    def release(self) -> None:
        """Release all database resources.

        Safe to call any number of times and from error-handling paths; it
        never raises.
        """
        if self._handle.is_open:
            logger.debug(f"Releasing connection to {self.host}/{self.database}")
        self._handle.release()

    def __enter__(self) -> "ConnectionContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"ConnectionContext({self.protocol}://{self.host}/{self.database}, user={self.user!r})"
