"""Registry mapping handle names to lazily resolved live connections."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from .config import Config, as_config
from .connections import ConnectionFactory, DriverConnectionFactory, LiveConnection, StaticConnectionFactory
from .descriptor import ConnectionDescriptor, build_dsn, validate_descriptor
from .errors import InvalidConfigError, InvalidHandleError

LOG = logging.getLogger(__name__)

DEFAULT_HANDLE = "default"


@dataclass(frozen=True, slots=True)
class Pending:
    """Entry whose connection has not been opened yet."""

    descriptor: ConnectionDescriptor


@dataclass(frozen=True, slots=True)
class Resolved:
    """Entry holding the live connection opened for a handle."""

    descriptor: ConnectionDescriptor
    connection: LiveConnection


@dataclass(slots=True)
class _Slot:
    state: Pending | Resolved
    lock: threading.Lock = field(default_factory=threading.Lock)


class ConnectionRegistry:
    """Owns handle → connection entries and resolves each at most once."""

    def __init__(
        self,
        config: Config | Mapping[str, Any],
        *,
        factory: ConnectionFactory | None = None,
    ) -> None:
        config = as_config(config)
        self._factory: ConnectionFactory = factory or DriverConnectionFactory()
        self._override: StaticConnectionFactory | None = None
        self._default_handle = config.get_string("default_handle") or DEFAULT_HANDLE
        self._slots: dict[str, _Slot] = {
            handle: _Slot(Pending(descriptor))
            for handle, descriptor in self._load_from_config(config).items()
        }
        LOG.debug(
            "Registry ready",
            extra={"handles": tuple(self._slots), "default_handle": self._default_handle},
        )

    @property
    def default_handle(self) -> str:
        return self._default_handle

    @property
    def handles(self) -> tuple[str, ...]:
        """Registered handle names in registration order."""

        return tuple(self._slots)

    def __contains__(self, handle: object) -> bool:
        return handle in self._slots

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._slots))

    def __len__(self) -> int:
        return len(self._slots)

    def add(self, handle: str, config: Config | Mapping[str, Any]) -> None:
        """Register a new handle; the descriptor is validated immediately."""

        if handle in self._slots:
            raise InvalidConfigError(f"Handle {handle} already exists")
        descriptor = validate_descriptor(config)
        self._slots[handle] = _Slot(Pending(descriptor))
        LOG.debug("Registered connection", extra={"handle": handle, "dsn": build_dsn(descriptor)})

    def descriptor(self, handle: str | None = None) -> ConnectionDescriptor:
        return self._slot(self._handle_name(handle)).state.descriptor

    def is_resolved(self, handle: str | None = None) -> bool:
        return isinstance(self._slot(self._handle_name(handle)).state, Resolved)

    def resolve(self, handle: str | None = None) -> LiveConnection:
        """Return the live connection for ``handle``, opening it on first use."""

        name = self._handle_name(handle)
        slot = self._slot(name)
        with slot.lock:
            state = slot.state
            if isinstance(state, Pending):
                connection = self._open(name, state.descriptor)
                slot.state = Resolved(state.descriptor, connection)
                LOG.debug("Resolved connection", extra={"handle": name})
                return connection
            return state.connection

    def use_test_double(self, connection: LiveConnection) -> None:
        """Serve ``connection`` for every handle resolved from now on."""

        self._override = StaticConnectionFactory(connection)

    def _open(self, handle: str, descriptor: ConnectionDescriptor) -> LiveConnection:
        factory = self._override or self._factory
        try:
            connection = factory.connect(build_dsn(descriptor), descriptor.user, descriptor.password)
        except Exception as exc:
            raise InvalidHandleError(handle, f"Invalid handle: {handle} ({exc})") from exc
        if not isinstance(connection, LiveConnection):
            raise InvalidHandleError(handle)
        return connection

    def _handle_name(self, handle: str | None) -> str:
        return self._default_handle if handle is None else handle

    def _slot(self, handle: str) -> _Slot:
        try:
            return self._slots[handle]
        except KeyError:
            raise InvalidHandleError(handle) from None

    def _load_from_config(self, config: Config) -> dict[str, ConnectionDescriptor]:
        dsns = config.get_section("dsns")
        if dsns is None:
            return {self._default_handle: validate_descriptor(config)}

        descriptors: dict[str, ConnectionDescriptor] = {}
        for name, section in dsns.sections():
            try:
                descriptors[name] = validate_descriptor(section)
            except InvalidConfigError as exc:
                LOG.warning("Skipping invalid connection config", extra={"handle": name, "reason": str(exc)})
        if descriptors:
            return descriptors
        return {self._default_handle: validate_descriptor(dsns)}


__all__ = ["ConnectionRegistry", "DEFAULT_HANDLE", "Pending", "Resolved"]
