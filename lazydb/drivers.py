"""Driver adapters exposing PyMySQL and asyncpg through one statement contract."""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from typing import Any, Callable, Coroutine, Mapping, Sequence

import asyncpg
import pymysql
import pymysql.cursors

from .errors import DriverError

LOG = logging.getLogger(__name__)

Params = Sequence[Any] | Mapping[str, Any]

# Quoted literals are matched first so placeholders inside them are left alone.
_TOKEN_RE = re.compile(
    r"""'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|`[^`]*`|(?<!:):([A-Za-z_][A-Za-z0-9_]*)|\?|%"""
)
_QUOTES = ("'", '"', "`")


def parse_dsn(dsn: str) -> tuple[str, dict[str, str]]:
    """Split ``driver:key=value;...`` into the driver name and its options."""

    driver, sep, rest = dsn.partition(":")
    if not sep or not driver:
        raise DriverError(f"Malformed connection string: {dsn!r}")
    options: dict[str, str] = {}
    for chunk in rest.split(";"):
        if not chunk.strip():
            continue
        key, eq, value = chunk.partition("=")
        if not eq:
            raise DriverError(f"Malformed connection string option {chunk!r} in {dsn!r}")
        options[key.strip().lower()] = value.strip()
    return driver.strip().lower(), options


def to_pyformat(sql: str) -> str:
    """Rewrite ``?`` / ``:name`` placeholders as ``%s`` / ``%(name)s``."""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if token.startswith(_QUOTES) or token == "%":
            return token.replace("%", "%%")
        if token == "?":
            return "%s"
        return f"%({match.group(1)})s"

    return _TOKEN_RE.sub(_replace, sql)


def to_numeric(sql: str, params: Params) -> tuple[str, list[Any]]:
    """Rewrite placeholders as ``$1..$n`` and order the values to match."""

    values: list[Any] = []
    named: dict[str, int] = {}
    positional = iter(()) if isinstance(params, Mapping) else iter(params)

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if token.startswith(_QUOTES) or token == "%":
            return token
        if token == "?":
            if isinstance(params, Mapping):
                raise ValueError("Positional placeholder used with named parameters")
            try:
                values.append(next(positional))
            except StopIteration:
                raise ValueError("Not enough parameters for statement") from None
            return f"${len(values)}"
        name = match.group(1)
        if not isinstance(params, Mapping):
            raise ValueError(f"Named placeholder :{name} used with positional parameters")
        if name not in named:
            if name not in params:
                raise ValueError(f"Missing value for parameter :{name}")
            values.append(params[name])
            named[name] = len(values)
        return f"${named[name]}"

    return _TOKEN_RE.sub(_replace, sql), values


class PyMySQLStatement:
    """Prepared statement over a buffered PyMySQL ``DictCursor``."""

    def __init__(self, connection: pymysql.connections.Connection, sql: str) -> None:
        self._connection = connection
        self._sql = sql
        self._cursor: pymysql.cursors.DictCursor | None = None

    @property
    def sql(self) -> str:
        return self._sql

    @property
    def cursor(self) -> pymysql.cursors.DictCursor | None:
        """Underlying cursor once the statement has run."""

        return self._cursor

    def execute(self, params: Params | None = None) -> None:
        cursor = self._connection.cursor(pymysql.cursors.DictCursor)
        if params:
            args: Any = params if isinstance(params, Mapping) else tuple(params)
            cursor.execute(to_pyformat(self._sql), args)
        else:
            cursor.execute(self._sql)
        self._cursor = cursor

    def fetch_all(self) -> list[dict[str, Any]]:
        if self._cursor is None:
            return []
        return [dict(row) for row in self._cursor.fetchall() or ()]

    def row_count(self) -> int:
        if self._cursor is None:
            return 0
        return max(self._cursor.rowcount, 0)


class PyMySQLConnection:
    """Live MySQL connection backed by PyMySQL."""

    def __init__(self, connection: pymysql.connections.Connection) -> None:
        self._connection = connection

    @classmethod
    def open(cls, options: Mapping[str, str], user: str, password: str) -> PyMySQLConnection:
        kwargs: dict[str, Any] = {
            "host": options.get("hostname") or options.get("host") or "localhost",
            "user": user,
            "password": password,
            "database": options.get("dbname"),
            "charset": options.get("charset") or "utf8",
        }
        if options.get("port"):
            kwargs["port"] = int(options["port"])
        LOG.debug("Opening MySQL connection", extra={"host": kwargs["host"], "database": kwargs["database"]})
        return cls(pymysql.connect(**kwargs))

    @property
    def raw(self) -> pymysql.connections.Connection:
        return self._connection

    def prepare(self, sql: str) -> PyMySQLStatement:
        return PyMySQLStatement(self._connection, sql)

    def last_insert_id(self) -> int:
        return self._connection.insert_id()

    def set_attribute(self, key: str, value: Any) -> bool:
        if key == "autocommit":
            self._connection.autocommit(bool(value))
            return True
        if key == "charset":
            self._connection.set_character_set(str(value))
            return True
        LOG.debug("Unsupported MySQL attribute", extra={"attribute": key})
        return False


class AsyncpgStatement:
    """Prepared statement executed on the owning connection's loop."""

    def __init__(self, owner: AsyncpgConnection, sql: str) -> None:
        self._owner = owner
        self._sql = sql
        self._rows: list[dict[str, Any]] | None = None
        self._row_count = 0

    @property
    def sql(self) -> str:
        return self._sql

    def execute(self, params: Params | None = None) -> None:
        query, args = to_numeric(self._sql, params or ())
        self._rows, self._row_count = self._owner.run(self._execute(query, args))

    def fetch_all(self) -> list[dict[str, Any]]:
        return list(self._rows or [])

    def row_count(self) -> int:
        return self._row_count

    async def _execute(self, query: str, args: list[Any]) -> tuple[list[dict[str, Any]], int]:
        stmt = await self._owner.raw.prepare(query)
        records = await stmt.fetch(*args)
        rows = [dict(record.items()) for record in records]
        return rows, _status_row_count(stmt.get_statusmsg(), len(rows))


class AsyncpgConnection:
    """Live PostgreSQL connection driving asyncpg from synchronous callers."""

    def __init__(self, connect_kwargs: Mapping[str, Any], *, connect_timeout: float = 5.0) -> None:
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever,
            name="lazydb-asyncpg",
            daemon=True,
        )
        self._loop_thread.start()
        kwargs = dict(connect_kwargs)
        kwargs.setdefault("timeout", connect_timeout)
        try:
            self._connection = self.run(asyncpg.connect(**kwargs))
        except BaseException:
            self.shutdown()
            raise

    @classmethod
    def open(cls, options: Mapping[str, str], user: str, password: str) -> AsyncpgConnection:
        kwargs: dict[str, Any] = {
            "host": options.get("hostname") or options.get("host") or "localhost",
            "user": user,
            "password": password,
            "database": options.get("dbname"),
        }
        if options.get("port"):
            kwargs["port"] = int(options["port"])
        LOG.debug("Opening PostgreSQL connection", extra={"host": kwargs["host"], "database": kwargs["database"]})
        return cls(kwargs)

    @property
    def raw(self) -> asyncpg.Connection:
        return self._connection

    def run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def prepare(self, sql: str) -> AsyncpgStatement:
        return AsyncpgStatement(self, sql)

    def last_insert_id(self) -> int:
        """Return ``lastval()``, or 0 when no sequence has been used yet.

        Inside an open transaction the lookup runs in a savepoint, so the
        failure PostgreSQL raises for an unused session does not abort the
        caller's transaction.
        """

        return self.run(self._last_insert_id())

    async def _last_insert_id(self) -> int:
        conn = self._connection
        try:
            if conn.is_in_transaction():
                async with conn.transaction():
                    return await conn.fetchval("SELECT lastval()")
            return await conn.fetchval("SELECT lastval()")
        except asyncpg.exceptions.ObjectNotInPrerequisiteStateError:
            return 0

    def set_attribute(self, key: str, value: Any) -> bool:
        LOG.debug("Unsupported PostgreSQL attribute", extra={"attribute": key})
        return False

    def shutdown(self) -> None:
        """Stop and close the background event loop."""

        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._loop_thread.join(timeout=1)
        if not self._loop.is_running() and not self._loop.is_closed():
            self._loop.close()

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.shutdown()
        except Exception:
            pass


def _status_row_count(status: str | None, fallback: int) -> int:
    if status:
        tail = status.rsplit(" ", 1)[-1]
        if tail.isdigit():
            return int(tail)
    return fallback


DriverOpener = Callable[[Mapping[str, str], str, str], Any]

DRIVERS: dict[str, DriverOpener] = {
    "mysql": PyMySQLConnection.open,
    "pgsql": AsyncpgConnection.open,
}


def open_connection(dsn: str, user: str, password: str) -> Any:
    """Open a live connection for ``dsn`` with the registered driver."""

    driver, options = parse_dsn(dsn)
    try:
        opener = DRIVERS[driver]
    except KeyError:
        raise DriverError(f"Unsupported driver: {driver!r}") from None
    return opener(options, user, password)


__all__ = [
    "AsyncpgConnection",
    "AsyncpgStatement",
    "DRIVERS",
    "PyMySQLConnection",
    "PyMySQLStatement",
    "open_connection",
    "parse_dsn",
    "to_numeric",
    "to_pyformat",
]
