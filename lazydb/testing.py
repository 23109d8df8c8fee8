"""In-memory connection used in place of a real driver (tests, demos)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

Rows = Sequence[Mapping[str, Any]]
RowSource = Rows | Callable[[str, Any], Rows]


@dataclass(slots=True)
class ExecutedStatement:
    """Record of one statement run against a ``FakeConnection``."""

    sql: str
    params: Any


class FakeStatement:
    """Statement whose rows and row count come from its connection's script."""

    def __init__(self, connection: FakeConnection, sql: str) -> None:
        self._connection = connection
        self._sql = sql
        self._rows: list[dict[str, Any]] = []
        self._row_count = 0
        self.executed = False

    @property
    def sql(self) -> str:
        return self._sql

    def execute(self, params: Any = None) -> None:
        self._connection.executed.append(ExecutedStatement(self._sql, params))
        error = self._connection.error
        if error is not None:
            raise error
        rows = self._connection.rows
        if callable(rows):
            rows = rows(self._sql, params)
        self._rows = [dict(row) for row in rows]
        count = self._connection.row_count
        self._row_count = len(self._rows) if count is None else count
        self.executed = True

    def fetch_all(self) -> list[dict[str, Any]]:
        return list(self._rows)

    def row_count(self) -> int:
        return self._row_count


@dataclass
class FakeConnection:
    """Scriptable stand-in satisfying the live connection contract.

    ``rows`` may be a fixed sequence or a callable receiving ``(sql, params)``.
    ``row_count`` overrides the affected-row count; by default it is the
    number of rows returned. Setting ``error`` makes every execution raise it.
    """

    rows: RowSource = ()
    row_count: int | None = None
    insert_id: int | str = 0
    error: BaseException | None = None
    prepared: list[str] = field(default_factory=list)
    executed: list[ExecutedStatement] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)

    def prepare(self, sql: str) -> FakeStatement:
        self.prepared.append(sql)
        return FakeStatement(self, sql)

    def last_insert_id(self) -> int | str:
        return self.insert_id

    def set_attribute(self, key: str, value: Any) -> bool:
        self.attributes[key] = value
        return True

    @property
    def last_query(self) -> str | None:
        return self.prepared[-1] if self.prepared else None


__all__ = ["ExecutedStatement", "FakeConnection", "FakeStatement"]
