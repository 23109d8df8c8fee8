"""Tests for the Database dispatcher."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from lazydb import Database, InvalidConfigError, InvalidHandleError, load_config
from lazydb.testing import FakeConnection

CONFIG = {
    "dsns": {
        "test1": {"host": "localhost", "port": 3306, "dbname": "test1", "user": "testuser1", "pass": "testpass1"},
        "test2": {"host": "localhost", "dbname": "test2", "user": "testuser2", "pass": "testpass2"},
    }
}


class _Factory:
    def __init__(self) -> None:
        self.opened: dict[str, FakeConnection] = {}

    def connect(self, dsn: str, user: str, password: str) -> FakeConnection:
        connection = FakeConnection(rows=lambda sql, params: [{"user": user}])
        self.opened[user] = connection
        return connection


@pytest.fixture
def double() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def database(double: FakeConnection) -> Database:
    db = Database(CONFIG)
    db.use_test_double(double)
    return db


def test_query_routes_to_each_handle() -> None:
    factory = _Factory()
    db = Database(CONFIG, factory=factory)

    assert db.query("SHOW DATABASES", [], "test1") == [{"user": "testuser1"}]
    assert db.query("SHOW DATABASES", [], "test2") == [{"user": "testuser2"}]
    assert set(factory.opened) == {"testuser1", "testuser2"}


def test_query_returns_rows_from_double(database: Database, double: FakeConnection) -> None:
    double.rows = [{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]

    rows = database.query("SELECT id, name FROM users WHERE active = ?", [1], "test1")

    assert rows == [{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]
    assert double.last_query == "SELECT id, name FROM users WHERE active = ?"
    assert double.executed[-1].params == [1]


def test_query_unknown_handle_fails(database: Database) -> None:
    with pytest.raises(InvalidHandleError):
        database.query("SELECT 1", [], "unknown")


def test_query_without_handle_uses_default() -> None:
    double = FakeConnection(rows=[{"one": 1}])
    db = Database({"host": "localhost", "dbname": "app", "user": "u", "pass": "p"})
    db.use_test_double(double)

    assert db.default_handle == "default"
    assert db.query("SELECT 1 AS one") == [{"one": 1}]


def test_execute_returns_statement_and_records_rows(database: Database, double: FakeConnection) -> None:
    double.row_count = 3

    statement = database.execute("UPDATE users SET active = :flag", {"flag": 0}, "test1")

    assert statement.row_count() == 3
    assert database.get_row_count("test1") == 3
    assert database.get_row_count("test2") == 0


def test_row_count_tracks_latest_statement(database: Database, double: FakeConnection) -> None:
    double.row_count = 5
    database.execute("DELETE FROM sessions", [], "test1")
    double.row_count = 1
    database.execute("DELETE FROM sessions WHERE id = ?", [9], "test1")

    assert database.get_row_count("test1") == 1


def test_row_count_for_unused_handle_is_zero(database: Database) -> None:
    assert database.get_row_count("test2") == 0
    assert database.get_row_count("never-registered") == 0


def test_driver_errors_propagate_unchanged(database: Database, double: FakeConnection) -> None:
    class _SyntaxError(Exception):
        pass

    double.error = _SyntaxError("You have an error in your SQL syntax")

    with pytest.raises(_SyntaxError):
        database.execute("SELEC 1", [], "test1")

    assert database.get_row_count("test1") == 0


def test_last_insert_id_is_int(database: Database, double: FakeConnection) -> None:
    double.insert_id = "17"

    assert database.get_last_insert_id("test1") == 17


def test_last_insert_id_unknown_handle_fails(database: Database) -> None:
    with pytest.raises(InvalidHandleError):
        database.get_last_insert_id("missing")


def test_set_attribute_forwards_to_connection(database: Database, double: FakeConnection) -> None:
    assert database.set_attribute("autocommit", True, "test2") is True
    assert double.attributes == {"autocommit": True}


def test_add_connection_chains_and_registers(database: Database, double: FakeConnection) -> None:
    result = database.add_connection(
        "reporting", {"host": "replica", "dbname": "reports", "user": "r", "pass": "r"}
    )

    assert result is database
    assert database.handles == ("test1", "test2", "reporting")
    database.execute("SELECT 1", [], "reporting")
    assert double.executed[-1].sql == "SELECT 1"


def test_add_connection_rejects_invalid_config(database: Database) -> None:
    with pytest.raises(InvalidConfigError):
        database.add_connection("invalid", {"host": "localhost", "foo": "bar"})
    with pytest.raises(InvalidConfigError):
        database.add_connection("empty", {})

    assert database.handles == ("test1", "test2")


def test_add_connection_rejects_duplicate_handle(database: Database) -> None:
    with pytest.raises(InvalidConfigError):
        database.add_connection(
            "test1",
            {"host": "localhost", "port": 3306, "dbname": "test1", "user": "testuser1", "pass": "testpass1"},
        )


def test_connection_errors_surface_as_invalid_handle(monkeypatch: pytest.MonkeyPatch) -> None:
    def _refuse(**kwargs: Any) -> None:
        raise OSError("Can't connect to MySQL server")

    monkeypatch.setattr("lazydb.drivers.pymysql.connect", _refuse)
    db = Database(CONFIG)

    with pytest.raises(InvalidHandleError) as excinfo:
        db.query("SELECT 1", [], "test1")

    assert isinstance(excinfo.value.__cause__, OSError)


def test_construction_is_lazy(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(**kwargs: Any) -> None:
        raise AssertionError("should not connect")

    monkeypatch.setattr("lazydb.drivers.pymysql.connect", _fail)

    db = Database(CONFIG)

    assert db.registry.is_resolved("test1") is False
    assert db.registry.is_resolved("test2") is False


def test_flat_ini_file_registers_default_handle(tmp_path: Path) -> None:
    config_path = tmp_path / "database.ini"
    config_path.write_text("host = localhost\ndbname = app\nuser = u\npass = p\n")
    double = FakeConnection(rows=[{"one": 1}])

    db = Database(load_config(config_path))
    db.use_test_double(double)

    assert db.handles == ("default",)
    assert db.registry.descriptor().dsn == "mysql:hostname=localhost;dbname=app;charset=utf8"
    assert db.query("SELECT 1 AS one") == [{"one": 1}]
