"""Public operation surface routing statements through named handles."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from .config import Config
from .connections import ConnectionFactory, LiveConnection, PreparedStatement
from .registry import ConnectionRegistry

LOG = logging.getLogger(__name__)

Params = Sequence[Any] | Mapping[str, Any]


class Database:
    """Dispatches queries to lazily opened connections, one per handle.

    Connections are described in configuration and opened on first use::

        db = Database({"dsns": {"dev": {...}, "prod": {...}}})
        rows = db.query("SELECT * FROM users WHERE id = ?", [42], "prod")

    Operations that omit ``handle`` use the configured default handle.
    """

    def __init__(
        self,
        config: Config | Mapping[str, Any],
        *,
        factory: ConnectionFactory | None = None,
    ) -> None:
        self._registry = ConnectionRegistry(config, factory=factory)
        self._row_counts: dict[str, int] = {}

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def default_handle(self) -> str:
        return self._registry.default_handle

    @property
    def handles(self) -> tuple[str, ...]:
        return self._registry.handles

    def add_connection(self, handle: str, config: Config | Mapping[str, Any]) -> Database:
        """Register another named connection; raises if the handle is taken."""

        self._registry.add(handle, config)
        return self

    def use_test_double(self, connection: LiveConnection) -> None:
        """Resolve every not-yet-opened handle to ``connection`` instead."""

        self._registry.use_test_double(connection)

    def execute(self, statement: str, params: Params = (), handle: str | None = None) -> PreparedStatement:
        """Prepare and run ``statement``, recording its row count for the handle."""

        name = self._handle_name(handle)
        connection = self._registry.resolve(name)
        self._row_counts.setdefault(name, 0)
        sth = connection.prepare(statement)
        sth.execute(params)
        self._row_counts[name] = sth.row_count()
        LOG.debug("Executed statement", extra={"handle": name, "rows": self._row_counts[name]})
        return sth

    def query(self, statement: str, params: Params = (), handle: str | None = None) -> list[dict[str, Any]]:
        """Run ``statement`` and return every row as a column-name dict."""

        sth = self.execute(statement, params, handle)
        return [dict(row) for row in sth.fetch_all()]

    def get_last_insert_id(self, handle: str | None = None) -> int:
        connection = self._registry.resolve(self._handle_name(handle))
        return int(connection.last_insert_id() or 0)

    def get_row_count(self, handle: str | None = None) -> int:
        """Rows affected by the most recent ``execute`` on ``handle`` (0 if none)."""

        return self._row_counts.get(self._handle_name(handle), 0)

    def set_attribute(self, key: str, value: Any, handle: str | None = None) -> bool:
        connection = self._registry.resolve(self._handle_name(handle))
        return bool(connection.set_attribute(key, value))

    def _handle_name(self, handle: str | None) -> str:
        return self._registry.default_handle if handle is None else handle


__all__ = ["Database", "Params"]
