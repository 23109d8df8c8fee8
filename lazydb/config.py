"""Configuration loading helpers and the typed accessor consumed by the registry."""

from __future__ import annotations

import configparser
from pathlib import Path
from typing import Any, Iterator, Mapping

import tomllib

from .errors import InvalidConfigError


class Config(Mapping[str, Any]):
    """Read-only view over a (possibly nested) configuration tree."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def __getitem__(self, key: str) -> Any:
        value = self._data[key]
        if isinstance(value, Mapping) and not isinstance(value, Config):
            return Config(value)
        return value

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Config({self._data!r})"

    def get_string(self, key: str) -> str | None:
        """Return the value for ``key`` as a string, or ``None`` when absent."""

        value = self._data.get(key)
        if value is None or isinstance(value, Mapping):
            return None
        return str(value)

    def get_optional_int(self, key: str) -> int | None:
        """Return the value for ``key`` as an int, or ``None`` when absent."""

        value = self._data.get(key)
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise InvalidConfigError(f"Key {key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise InvalidConfigError(f"Key {key} must be an integer, got {value!r}") from None

    def get_section(self, key: str) -> Config | None:
        """Return the nested section stored under ``key``, if it is one."""

        value = self._data.get(key)
        if isinstance(value, Mapping):
            return value if isinstance(value, Config) else Config(value)
        return None

    def sections(self) -> Iterator[tuple[str, Config]]:
        """Yield ``(name, section)`` pairs for every nested section."""

        for name in self._data:
            section = self.get_section(name)
            if section is not None:
                yield name, section

    def as_dict(self) -> dict[str, Any]:
        """Return a plain-dict copy of the tree."""

        return {
            key: value.as_dict() if isinstance(value, Config) else (
                Config(value).as_dict() if isinstance(value, Mapping) else value
            )
            for key, value in self._data.items()
        }


def as_config(value: Config | Mapping[str, Any]) -> Config:
    """Wrap plain mappings so callers can pass dicts straight through."""

    if isinstance(value, Config):
        return value
    return Config(value)


def load_config(path: str | Path) -> Config:
    """Load a TOML or INI file into a ``Config``."""

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".toml":
        return Config(_read_toml(path))
    if suffix in {".ini", ".cfg"}:
        return Config(_read_ini(path))
    raise InvalidConfigError(f"Unsupported config file type: {path.name}")


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise InvalidConfigError(f"Unable to read config file {path}: {exc}") from exc


_INI_ROOT = "lazydb:root"
_INI_TOP_LEVEL = {_INI_ROOT, configparser.DEFAULTSECT}


def _read_ini(path: Path) -> dict[str, Any]:
    # Keys above the first header land in a synthetic root section; [DEFAULT]
    # is read as plain top-level keys, never inherited by other sections.
    parser = configparser.ConfigParser(interpolation=None, default_section=f"{_INI_ROOT}:inherited")
    try:
        text = path.read_text(encoding="utf-8")
        parser.read_string(f"[{_INI_ROOT}]\n{text}", source=str(path))
    except (configparser.Error, OSError) as exc:
        raise InvalidConfigError(f"Unable to read config file {path}: {exc}") from exc

    data: dict[str, Any] = {}
    for section in parser.sections():
        node = data
        if section not in _INI_TOP_LEVEL:
            # Dotted section names nest: [dsns.dev] -> data["dsns"]["dev"].
            for part in section.split("."):
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
        for key, value in parser.items(section, raw=True):
            node[key] = _strip_quotes(value)
    return data


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


__all__ = ["Config", "as_config", "load_config"]
