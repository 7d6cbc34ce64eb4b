"""
Dot-path configuration store.

A Config holds a nested mapping addressed with dot delimited paths such as
"server.url". Once frozen it can no longer be changed, which is how the
loader hands out the process-wide configuration snapshot.
"""

import copy
from collections.abc import Mapping
from typing import Any

from fc_common.errors import ConfigFrozenError

_MISSING = object()


def _deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    """Recursively merge source into target, source values winning."""
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        elif isinstance(value, Mapping):
            target[key] = {}
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class Config:
    """Nested configuration values addressed by dot paths."""

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = {}
        self._frozen = False
        if data:
            _deep_merge(self._data, data)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _lookup(self, path: str) -> Any:
        node: Any = self._data
        for segment in path.split("."):
            if not isinstance(node, dict) or segment not in node:
                return _MISSING
            node = node[segment]
        return node

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a value by dot path.

        Args:
            path: Dot delimited path, or "." for the whole configuration
            default: Returned when the path is not set

        Returns:
            A copy of the stored value, or default
        """
        if path == ".":
            return copy.deepcopy(self._data)

        value = self._lookup(path)
        if value is _MISSING:
            return default
        return copy.deepcopy(value)

    def has(self, path: str) -> bool:
        return self._lookup(path) is not _MISSING

    def set(self, path: str, value: Any) -> "Config":
        """
        Set a value by dot path, creating intermediate sections.

        Raises:
            ConfigFrozenError: If the configuration is frozen
        """
        if self._frozen:
            raise ConfigFrozenError(f"Cannot set '{path}' on a frozen config")

        segments = path.split(".")
        node = self._data
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = copy.deepcopy(value)
        return self

    def merge(self, data: Mapping[str, Any]) -> "Config":
        """
        Deep merge a mapping into this configuration, later values winning.

        Raises:
            ConfigFrozenError: If the configuration is frozen
        """
        if self._frozen:
            raise ConfigFrozenError("Cannot merge into a frozen config")
        _deep_merge(self._data, data)
        return self

    def freeze(self) -> "Config":
        self._frozen = True
        return self

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "mutable"
        return f"<Config {state} keys={sorted(self._data)}>"
