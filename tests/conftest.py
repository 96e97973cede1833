"""Shared fixtures and fakes for sqlcontext tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine

from sqlcontext.config.models import ContextSettings
from sqlcontext.db.context import ConnectionContext
from sqlcontext.db.driver import DriverInfo, DriverRegistrar


class FakeResult:
    """Cursor result over an in-memory list of rows."""

    def __init__(self, rows: Optional[List[tuple]] = None, columns: Optional[List[str]] = None) -> None:
        self._rows = list(rows or [])
        self._columns = columns or ["value"]
        self.rowcount = len(self._rows)
        self.closed = False

    def keys(self) -> List[str]:
        return list(self._columns)

    def __iter__(self):
        while self._rows:
            yield self._rows.pop(0)

    def fetchmany(self, size: int) -> List[tuple]:
        batch, self._rows = self._rows[:size], self._rows[size:]
        return batch

    def scalar(self) -> Any:
        return self._rows[0][0] if self._rows else None

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    """Connection recording every executed clause."""

    def __init__(self, rows: Optional[List[tuple]] = None, close_error: Optional[Exception] = None) -> None:
        self.rows = rows or []
        self.close_error = close_error
        self.executed: List[Dict[str, Any]] = []
        self.execute_error: Optional[Exception] = None
        self.close_calls = 0
        self.closed = False

    def execute(self, clause, parameters=None):
        self.executed.append({
            'sql': str(clause),
            'parameters': parameters,
            'options': dict(clause.get_execution_options()),
        })
        if self.execute_error is not None:
            raise self.execute_error
        return FakeResult(self.rows)

    def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeEngine:
    """Engine handing out a single fake connection."""

    def __init__(self, url: str, kwargs: Dict[str, Any], connection: FakeConnection,
                 connect_error: Optional[Exception] = None,
                 dispose_error: Optional[Exception] = None) -> None:
        self.url = url
        self.kwargs = kwargs
        self.connection = connection
        self.connect_error = connect_error
        self.dispose_error = dispose_error
        self.connect_calls = 0
        self.dispose_calls = 0

    def connect(self) -> FakeConnection:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        return self.connection

    def dispose(self) -> None:
        self.dispose_calls += 1
        if self.dispose_error is not None:
            raise self.dispose_error


class FakeEngineFactory:
    """Stands in for ``create_engine`` and counts physical connections."""

    def __init__(self, rows: Optional[List[tuple]] = None) -> None:
        self.rows = rows
        self.engines: List[FakeEngine] = []
        self.connect_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None
        self.dispose_error: Optional[Exception] = None

    def __call__(self, url: str, **kwargs: Any) -> FakeEngine:
        connection = FakeConnection(self.rows, close_error=self.close_error)
        engine = FakeEngine(
            url, kwargs, connection,
            connect_error=self.connect_error, dispose_error=self.dispose_error,
        )
        self.engines.append(engine)
        return engine

    @property
    def open_calls(self) -> int:
        return sum(engine.connect_calls for engine in self.engines)

    @property
    def last_connection(self) -> FakeConnection:
        return self.engines[-1].connection


class CountingLoader:
    """Driver loader that records how often registration runs."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, protocol: str) -> DriverInfo:
        self.calls += 1
        return DriverInfo(protocol=protocol, dialect_cls=None, dbapi=None)


@pytest.fixture
def loader() -> CountingLoader:
    return CountingLoader()


@pytest.fixture
def registrar(loader: CountingLoader) -> DriverRegistrar:
    return DriverRegistrar("mysql+pymysql", loader=loader)


@pytest.fixture
def engine_factory() -> FakeEngineFactory:
    return FakeEngineFactory(rows=[(1,), (2,), (3,)])


@pytest.fixture
def context(registrar: DriverRegistrar, engine_factory: FakeEngineFactory):
    """Context wired to fakes; released after the test."""
    ctx = ConnectionContext(
        "db.example.com",
        "osm",
        "reader",
        "secret",
        protocol="mysql+pymysql",
        registrar=registrar,
        engine_factory=engine_factory,
    )
    yield ctx
    ctx.release()


@pytest.fixture
def sqlite_context(tmp_path: Path):
    """Context backed by a real SQLite file through an injected engine factory."""
    db_path = tmp_path / "streaming_test.db"
    opened_urls: List[str] = []

    def sqlite_engine_factory(url: str, **kwargs: Any):
        opened_urls.append(url)
        return create_engine(f"sqlite:///{db_path}", **kwargs)

    ctx = ConnectionContext(
        "localhost",
        "scan",
        "reader",
        "secret",
        protocol="sqlite",
        settings=ContextSettings(),
        engine_factory=sqlite_engine_factory,
    )
    ctx.opened_urls = opened_urls
    yield ctx
    ctx.release()


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection(rows=[(1,), (2,)])
