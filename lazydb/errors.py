"""Exception hierarchy shared by the registry and dispatcher."""

from __future__ import annotations


class LazyDbError(RuntimeError):
    """Base class for errors raised by lazydb itself."""


class InvalidConfigError(LazyDbError):
    """Raised when a connection configuration is missing or malformed."""


class InvalidHandleError(LazyDbError):
    """Raised when a handle is unknown or cannot produce a live connection."""

    def __init__(self, handle: str, message: str | None = None) -> None:
        super().__init__(message or f"Invalid handle: {handle}")
        self.handle = handle


class DriverError(LazyDbError):
    """Raised when a connection string names no usable driver."""


__all__ = ["DriverError", "InvalidConfigError", "InvalidHandleError", "LazyDbError"]
