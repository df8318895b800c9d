"""
CachePort Bridge — Core types, protocols, and data structures.

Defines the contracts shared by resolvers, factories, adapters and
engines: component status, the resolved configuration object, and the
protocols native engines implement.
"""

from __future__ import annotations

import copy
from enum import Enum
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Protocol,
    runtime_checkable,
)

from .faults import CacheConfigFault


PropertyMap = Dict[str, Any]


# ============================================================================
# Component Status
# ============================================================================

class ComponentStatus(str, Enum):
    """Run state of a native cache or cache manager."""
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"
    FAILED = "failed"


class ConfigurationSource(str, Enum):
    """Where an effective configuration came from."""
    EXPLICIT = "explicit"     # Ready-made configuration object
    FILE = "file"             # Loaded from a location, overrides applied
    OVERRIDES = "overrides"   # Overrides applied onto engine defaults
    DEFAULTS = "defaults"     # Nothing configured, engine built-ins apply


# ============================================================================
# Property helpers
# ============================================================================

_TRUE_VALUES = ("true", "yes", "1", "on")
_FALSE_VALUES = ("false", "no", "0", "off")


def flatten_properties(data: Mapping[str, Any], prefix: str = "") -> PropertyMap:
    """
    Flatten nested mappings into dotted keys.

    ``{"eviction": {"max_entries": 10}}`` becomes ``{"eviction.max_entries": 10}``.
    Lists and scalars are kept as values.
    """
    flat: PropertyMap = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten_properties(value, prefix=f"{full_key}."))
        else:
            flat[full_key] = value
    return flat


def coerce_bool(value: Any, key: str = "") -> bool:
    """Parse a configuration value as a boolean."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise CacheConfigFault(f"'{value}' is not a boolean", key=key or None)


def coerce_int(value: Any, key: str = "") -> int:
    """Parse a configuration value as an integer."""
    if isinstance(value, bool):
        raise CacheConfigFault(f"'{value}' is not an integer", key=key or None)
    try:
        return int(str(value).strip()) if not isinstance(value, int) else value
    except ValueError:
        raise CacheConfigFault(f"'{value}' is not an integer", key=key or None) from None


def coerce_float(value: Any, key: str = "") -> float:
    """Parse a configuration value as a float."""
    if isinstance(value, bool):
        raise CacheConfigFault(f"'{value}' is not a number", key=key or None)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise CacheConfigFault(f"'{value}' is not a number", key=key or None) from None


# ============================================================================
# Effective Configuration
# ============================================================================

class EffectiveConfiguration(Mapping[str, Any]):
    """
    Resolved, read-only configuration handed to an engine.

    Holds a private deep copy of the merged properties; callers get a
    read-only view. Typed accessors coerce string values coming from
    property files and overrides.
    """

    __slots__ = ("_data", "_view", "_source")

    def __init__(self, properties: Mapping[str, Any], source: ConfigurationSource):
        self._data: PropertyMap = copy.deepcopy(dict(properties))
        self._view = MappingProxyType(self._data)
        self._source = source

    @property
    def source(self) -> ConfigurationSource:
        return self._source

    def __getitem__(self, key: str) -> Any:
        return self._view[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._view)

    def __len__(self) -> int:
        return len(self._view)

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        if key not in self._data:
            return default
        return str(self._data[key])

    def get_bool(self, key: str, default: bool = False) -> bool:
        if key not in self._data:
            return default
        return coerce_bool(self._data[key], key)

    def get_int(self, key: str, default: int = 0) -> int:
        if key not in self._data:
            return default
        return coerce_int(self._data[key], key)

    def get_float(self, key: str, default: float = 0.0) -> float:
        if key not in self._data:
            return default
        return coerce_float(self._data[key], key)

    def to_dict(self) -> PropertyMap:
        """Return an independent, mutable copy."""
        return copy.deepcopy(self._data)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, EffectiveConfiguration):
            return self._data == other._data and self._source == other._source
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<EffectiveConfiguration source={self._source.value} keys={len(self._data)}>"


# ============================================================================
# Native protocols
# ============================================================================

@runtime_checkable
class NativeCache(Protocol):
    """Operations every native cache exposes to the adapter."""

    @property
    def name(self) -> str:
        ...

    async def get(self, key: Any) -> Any:
        ...

    async def put(self, key: Any, value: Any) -> Any:
        ...

    async def put_if_absent(self, key: Any, value: Any) -> Any:
        ...

    async def remove(self, key: Any) -> Any:
        ...

    async def remove_if(self, key: Any, expected: Any) -> bool:
        ...

    async def replace(self, key: Any, value: Any) -> Any:
        ...

    async def replace_if(self, key: Any, expected: Any, value: Any) -> bool:
        ...

    async def contains_key(self, key: Any) -> bool:
        ...

    async def clear(self) -> None:
        ...


class NameEnumeration(Protocol):
    """Strategy deciding how a manager adapter lists cache names."""

    def names(self, engine: "EngineOps", manager: Any) -> frozenset:
        ...


@runtime_checkable
class EngineOps(Protocol):
    """
    Capabilities a cache engine provides to the bridge.

    Factories and adapters are composed over one of these; the embedded
    and remote variants differ only in which implementation is plugged in.
    """

    name: str
    default_manager_name: str
    enumeration: NameEnumeration
    overrides_type: type

    def default_properties(self) -> Optional[PropertyMap]:
        """Base properties used when only overrides are configured."""
        ...

    def cache_configuration_fault(self) -> Optional[Exception]:
        """Fault raised for a named cache created with its own configuration, or ``None``."""
        ...

    async def create_manager(
        self,
        configuration: Optional[EffectiveConfiguration],
        *,
        name: str,
        start: bool = True,
    ) -> Any:
        ...

    async def create_cache(
        self,
        manager: Any,
        name: str,
        configuration: Optional[EffectiveConfiguration] = None,
    ) -> Any:
        ...

    def get_status(self, handle: Any) -> ComponentStatus:
        ...

    async def stop(self, handle: Any) -> None:
        ...

    def cache_names(self, manager: Any) -> Iterable[str]:
        ...
