"""One-time, process-wide database driver registration."""

import logging
import threading
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Dict, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from sqlcontext.exceptions import DatabaseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverInfo:
    """A registered driver: the SQLAlchemy dialect and its DB-API module."""

    protocol: str
    dialect_cls: Any
    dbapi: Optional[ModuleType]


def load_driver(protocol: str) -> DriverInfo:
    """Resolve the dialect for ``protocol`` and import its DB-API module.

    Raises:
        DatabaseError: If the dialect or the driver module cannot be found.
    """
    try:
        dialect_cls = make_url(f"{protocol}://").get_dialect()
    except ArgumentError as e:
        raise DatabaseError.configuration(
            f"Unable to find database driver for protocol '{protocol}'",
            cause=e,
            protocol=protocol,
        ) from e

    try:
        dbapi = dialect_cls.import_dbapi()
    except ImportError as e:
        raise DatabaseError.configuration(
            f"Unable to load database driver module for protocol '{protocol}'",
            cause=e,
            protocol=protocol,
        ) from e

    return DriverInfo(protocol=protocol, dialect_cls=dialect_cls, dbapi=dbapi)


# Backends whose server-side cursors only exist inside a transaction.
TRANSACTIONAL_STREAMING_BACKENDS = frozenset({"postgresql"})


def streaming_needs_transaction(protocol: str) -> bool:
    """Whether ``stream_results`` on ``protocol`` fails outside a transaction."""
    return make_url(f"{protocol}://").get_backend_name() in TRANSACTIONAL_STREAMING_BACKENDS


class RunOnce:
    """Run a callable exactly once, even when first use is concurrent.

    The result is cached. If the callable raises, nothing is cached and the
    next caller tries again.
    """

    def __init__(self, func: Callable[[], Any]) -> None:
        self._func = func
        self._lock = threading.Lock()
        self._done = False
        self._result: Any = None

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self) -> Any:
        if self._done:
            return self._result
        with self._lock:
            if not self._done:
                self._result = self._func()
                self._done = True
        return self._result


class DriverRegistrar:
    """Ensures the driver for one protocol is loaded before any connection.

    Use :func:`get_registrar` to obtain the shared process-wide instance.
    """

    def __init__(
        self,
        protocol: str,
        loader: Optional[Callable[[str], DriverInfo]] = None,
    ) -> None:
        """Initialize the registrar.

        Args:
            protocol: SQLAlchemy dialect name, e.g. ``mysql+pymysql``.
            loader: Callable performing the registration. Defaults to
                :func:`load_driver`.
        """
        self.protocol = protocol
        self._loader = loader or load_driver
        self._once = RunOnce(self._register)

    @property
    def loaded(self) -> bool:
        """Whether registration has completed."""
        return self._once.done

    def ensure_loaded(self) -> DriverInfo:
        """Register the driver on first call; return the registered driver.

        Raises:
            DatabaseError: With kind ``CONFIGURATION`` if the driver is missing.
        """
        return self._once()

    def _register(self) -> DriverInfo:
        logger.debug(f"Registering database driver for '{self.protocol}'")
        info = self._loader(self.protocol)
        logger.debug(f"Database driver for '{self.protocol}' registered")
        return info


_registrars: Dict[str, DriverRegistrar] = {}
_registrars_lock = threading.Lock()


def get_registrar(protocol: str) -> DriverRegistrar:
    """Get the process-wide registrar for ``protocol``."""
    with _registrars_lock:
        registrar = _registrars.get(protocol)
        if registrar is None:
            registrar = DriverRegistrar(protocol)
            _registrars[protocol] = registrar
        return registrar
