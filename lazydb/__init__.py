"""Named, lazily opened database connections behind one dispatcher."""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config, load_config
from .connections import (
    ConnectionFactory,
    DriverConnectionFactory,
    LiveConnection,
    PreparedStatement,
    StaticConnectionFactory,
)
from .database import Database
from .descriptor import ConnectionDescriptor, build_dsn, validate_descriptor
from .errors import DriverError, InvalidConfigError, InvalidHandleError, LazyDbError
from .registry import DEFAULT_HANDLE, ConnectionRegistry

__all__ = [
    "Config",
    "ConnectionDescriptor",
    "ConnectionFactory",
    "ConnectionRegistry",
    "DEFAULT_HANDLE",
    "Database",
    "DriverConnectionFactory",
    "DriverError",
    "InvalidConfigError",
    "InvalidHandleError",
    "LazyDbError",
    "LiveConnection",
    "PreparedStatement",
    "StaticConnectionFactory",
    "__version__",
    "build_dsn",
    "load_config",
    "validate_descriptor",
]
