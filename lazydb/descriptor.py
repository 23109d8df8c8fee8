"""Connection descriptor validation and connection-string derivation."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import Config, as_config
from .errors import InvalidConfigError

REQUIRED_KEYS: tuple[str, ...] = ("host", "dbname", "user", "pass")
DEFAULT_DRIVER = "mysql"
DEFAULT_CHARSET = "utf8"


class ConnectionDescriptor(BaseModel):
    """Validated fields required to open one connection."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    host: str
    database_name: str = Field(alias="dbname")
    user: str
    password: str = Field(alias="pass", repr=False)
    port: int | None = None
    driver: str = DEFAULT_DRIVER

    @property
    def dsn(self) -> str:
        return build_dsn(self)


def validate_descriptor(config: Config | Mapping[str, Any]) -> ConnectionDescriptor:
    """Check a raw config fragment and turn it into a ``ConnectionDescriptor``.

    Raises:
        InvalidConfigError: if a required key is missing or a value has the
            wrong type.
    """

    section = as_config(config)
    for required in REQUIRED_KEYS:
        if section.get_string(required) is None:
            raise InvalidConfigError(f"Required key {required} not found in database config")

    payload: dict[str, Any] = {
        "host": section.get_string("host"),
        "dbname": section.get_string("dbname"),
        "user": section.get_string("user"),
        "pass": section.get_string("pass"),
        "port": section.get_optional_int("port"),
    }
    driver = section.get_string("driver")
    if driver:
        payload["driver"] = driver
    try:
        return ConnectionDescriptor.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfigError(f"Invalid database config: {exc}") from exc


def build_dsn(descriptor: ConnectionDescriptor) -> str:
    """Render ``driver:hostname=...;dbname=...[;port=...];charset=utf8``."""

    port = f";port={descriptor.port}" if descriptor.port is not None else ""
    return (
        f"{descriptor.driver}:hostname={descriptor.host};"
        f"dbname={descriptor.database_name}{port};charset={DEFAULT_CHARSET}"
    )


__all__ = [
    "ConnectionDescriptor",
    "DEFAULT_DRIVER",
    "REQUIRED_KEYS",
    "build_dsn",
    "validate_descriptor",
]
