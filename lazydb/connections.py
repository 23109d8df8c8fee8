"""Live-connection contract and the factories that produce connections."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from .drivers import open_connection

LOG = logging.getLogger(__name__)


@runtime_checkable
class PreparedStatement(Protocol):
    """Statement returned by ``LiveConnection.prepare``."""

    def execute(self, params: Sequence[Any] | Mapping[str, Any] | None = None) -> Any:
        """Run the statement with positional or named parameters."""

    def fetch_all(self) -> list[Mapping[str, Any]]:
        """Return every result row as a column-name mapping."""

    def row_count(self) -> int:
        """Rows affected (or returned) by the last execution."""


@runtime_checkable
class LiveConnection(Protocol):
    """Capabilities a resolved connection must offer."""

    def prepare(self, sql: str) -> PreparedStatement:
        """Prepare ``sql`` for execution."""

    def last_insert_id(self) -> int | str:
        """Driver-reported id of the last inserted row."""

    def set_attribute(self, key: str, value: Any) -> bool:
        """Assign a driver attribute, returning the driver's success flag."""


@runtime_checkable
class ConnectionFactory(Protocol):
    """Strategy used by the registry to open live connections."""

    def connect(self, dsn: str, user: str, password: str) -> LiveConnection:
        """Open a connection for the given connection string and credentials."""


class DriverConnectionFactory:
    """Opens real connections through the driver named in the connection string."""

    def connect(self, dsn: str, user: str, password: str) -> LiveConnection:
        LOG.debug("Opening connection", extra={"dsn": dsn, "user": user})
        return open_connection(dsn, user, password)


class StaticConnectionFactory:
    """Hands out one pre-built connection for every request."""

    def __init__(self, connection: LiveConnection) -> None:
        if not isinstance(connection, LiveConnection):
            raise TypeError(f"{type(connection).__name__} does not implement the live connection contract")
        self._connection = connection
        self.requests: list[str] = []

    @property
    def connection(self) -> LiveConnection:
        return self._connection

    def connect(self, dsn: str, user: str, password: str) -> LiveConnection:
        self.requests.append(dsn)
        return self._connection


__all__ = [
    "ConnectionFactory",
    "DriverConnectionFactory",
    "LiveConnection",
    "PreparedStatement",
    "StaticConnectionFactory",
]
