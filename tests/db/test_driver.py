"""Tests for one-time driver registration."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from sqlcontext.db.context import ConnectionContext
from sqlcontext.db.driver import (
    DriverInfo,
    DriverRegistrar,
    RunOnce,
    get_registrar,
    load_driver,
    streaming_needs_transaction,
)
from sqlcontext.exceptions import DatabaseError, ErrorKind


class TestRunOnce:
    """Test the run-once primitive."""

    def test_caches_result(self) -> None:
        calls = []
        once = RunOnce(lambda: calls.append(1) or "loaded")

        assert not once.done
        assert once() == "loaded"
        assert once() == "loaded"
        assert once.done
        assert len(calls) == 1

    def test_failure_is_not_cached(self) -> None:
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return "ok"

        once = RunOnce(flaky)
        with pytest.raises(RuntimeError):
            once()
        assert not once.done
        assert once() == "ok"
        assert len(attempts) == 2


class TestDriverRegistrar:
    """Test registrar behaviour."""

    def test_registers_once(self, registrar, loader) -> None:
        first = registrar.ensure_loaded()
        second = registrar.ensure_loaded()

        assert loader.calls == 1
        assert first is second
        assert first.protocol == "mysql+pymysql"
        assert registrar.loaded

    def test_registers_once_under_concurrent_first_use(self) -> None:
        calls = []
        calls_lock = threading.Lock()

        def slow_loader(protocol: str) -> DriverInfo:
            with calls_lock:
                calls.append(protocol)
            time.sleep(0.05)
            return DriverInfo(protocol=protocol, dialect_cls=None, dbapi=None)

        registrar = DriverRegistrar("racing", loader=slow_loader)
        workers = 16
        barrier = threading.Barrier(workers)

        def worker(_):
            barrier.wait()
            return registrar.ensure_loaded()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(worker, range(workers)))

        assert len(calls) == 1
        assert all(result is results[0] for result in results)
        assert registrar.loaded

    def test_racing_contexts_share_one_registration(self, loader, engine_factory) -> None:
        registrar = DriverRegistrar("mysql+pymysql", loader=loader)
        workers = 8
        barrier = threading.Barrier(workers)

        def open_context(index: int) -> bool:
            ctx = ConnectionContext(
                "db.example.com", f"db{index}", "reader", "secret",
                registrar=registrar, engine_factory=engine_factory,
            )
            barrier.wait()
            try:
                ctx.get_connection()
                return ctx.is_open
            finally:
                ctx.release()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            opened = list(pool.map(open_context, range(workers)))

        assert all(opened)
        assert loader.calls == 1
        assert engine_factory.open_calls == workers

    def test_failed_registration_is_reported_each_time(self) -> None:
        attempts = []

        def missing_driver(protocol: str) -> DriverInfo:
            attempts.append(protocol)
            raise DatabaseError.configuration("Unable to find database driver")

        registrar = DriverRegistrar("missing", loader=missing_driver)

        for _ in range(2):
            with pytest.raises(DatabaseError) as exc_info:
                registrar.ensure_loaded()
            assert exc_info.value.kind is ErrorKind.CONFIGURATION

        assert not registrar.loaded
        assert len(attempts) == 2

    def test_get_registrar_returns_process_wide_instance(self) -> None:
        first = get_registrar("postgresql+psycopg2-shared-test")
        second = get_registrar("postgresql+psycopg2-shared-test")
        other = get_registrar("sqlite-shared-test")

        assert first is second
        assert first is not other


class TestLoadDriver:
    """Test real dialect resolution."""

    def test_loads_sqlite(self) -> None:
        info = load_driver("sqlite")

        assert info.protocol == "sqlite"
        assert info.dbapi is not None
        assert info.dbapi.__name__.startswith("sqlite3")

    def test_unknown_dialect_is_configuration_error(self) -> None:
        with pytest.raises(DatabaseError) as exc_info:
            load_driver("nosuchdatabase")

        error = exc_info.value
        assert error.kind is ErrorKind.CONFIGURATION
        assert error.cause is not None
        assert error.__cause__ is error.cause
        assert error.details["protocol"] == "nosuchdatabase"

    def test_missing_driver_module_is_configuration_error(self) -> None:
        class DialectWithoutModule:
            @classmethod
            def import_dbapi(cls):
                raise ImportError("No module named 'vendordb'")

        with patch("sqlcontext.db.driver.make_url") as make_url:
            make_url.return_value.get_dialect.return_value = DialectWithoutModule
            with pytest.raises(DatabaseError) as exc_info:
                load_driver("vendor+vendordb")

        assert exc_info.value.kind is ErrorKind.CONFIGURATION
        assert isinstance(exc_info.value.cause, ImportError)

    @pytest.mark.parametrize(
        ("protocol", "expected"),
        [
            ("mysql+pymysql", False),
            ("mariadb+pymysql", False),
            ("sqlite", False),
            ("postgresql+psycopg2", True),
            ("postgresql", True),
        ],
    )
    def test_streaming_needs_transaction(self, protocol: str, expected: bool) -> None:
        assert streaming_needs_transaction(protocol) is expected
