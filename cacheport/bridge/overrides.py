"""
CachePort Bridge — Explicitly set configuration overrides.

An ``OverrideSet`` collects scalar settings made through setters on a
resource factory. When merged onto a base property source, every key it
holds wins. Merging never mutates the base.

Engine-specific subclasses add typed setters for the settings each engine
understands; values are always recorded as strings, the way property
files carry them.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

from .faults import CacheConfigFault


def _to_property(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class OverrideSet:
    """
    Ordered collection of explicitly set configuration overrides.

    Usage::

        overrides = OverrideSet()
        overrides.set("cache_mode", "REPL_ASYNC")
        effective = overrides.apply(loaded_properties)
    """

    __slots__ = ("_overrides",)

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._overrides: Dict[str, str] = {}
        if initial:
            for key, value in initial.items():
                self.set(key, value)

    def set(self, key: str, value: Any) -> None:
        """
        Record or overwrite an override. Keys are validated by the engine later.

        Raises:
            CacheConfigFault: Value is a mapping; nested settings use dotted keys.
        """
        if isinstance(value, Mapping):
            raise CacheConfigFault(
                f"override '{key}' must be a scalar, got a mapping (use dotted keys such as '{key}.<setting>')",
                key=key,
            )
        self._overrides[key] = _to_property(value)

    def is_empty(self) -> bool:
        return not self._overrides

    def keys(self) -> Tuple[str, ...]:
        return tuple(self._overrides)

    def snapshot(self) -> Mapping[str, str]:
        """Immutable copy of the current overrides."""
        return MappingProxyType(dict(self._overrides))

    def apply(self, base: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Return a new dict equal to ``base`` with every override applied.

        Args:
            base: Base properties (not mutated). ``None`` is treated as empty.

        Returns:
            Merged properties, overrides taking precedence key by key.
        """
        merged: Dict[str, Any] = dict(base) if base else {}
        merged.update(self._overrides)
        return merged

    def __len__(self) -> int:
        return len(self._overrides)

    def __contains__(self, key: object) -> bool:
        return key in self._overrides

    def __iter__(self) -> Iterator[str]:
        return iter(self._overrides)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {dict(self._overrides)!r}>"


class EmbeddedOverrides(OverrideSet):
    """Typed setters for the embedded engine's cache settings."""

    __slots__ = ()

    def set_cache_mode(self, cache_mode: str) -> None:
        self.set("cache_mode", cache_mode.upper())

    def set_invocation_batching_enabled(self, enabled: bool) -> None:
        self.set("invocation_batching_enabled", enabled)

    def set_eviction_strategy(self, strategy: str) -> None:
        self.set("eviction.strategy", strategy.upper())

    def set_eviction_max_entries(self, max_entries: int) -> None:
        self.set("eviction.max_entries", max_entries)

    def set_expiration_lifespan(self, lifespan_ms: int) -> None:
        self.set("expiration.lifespan", lifespan_ms)

    def set_expiration_max_idle(self, max_idle_ms: int) -> None:
        self.set("expiration.max_idle", max_idle_ms)

    def set_concurrency_level(self, concurrency_level: int) -> None:
        self.set("concurrency_level", concurrency_level)

    def set_lock_acquisition_timeout(self, timeout_ms: int) -> None:
        self.set("lock_acquisition_timeout", timeout_ms)

    def set_sync_repl_timeout(self, timeout_ms: int) -> None:
        self.set("sync_repl_timeout", timeout_ms)

    def set_expose_statistics(self, expose: bool) -> None:
        self.set("expose_statistics", expose)


class RemoteOverrides(OverrideSet):
    """Typed setters for the remote engine's client settings."""

    __slots__ = ()

    def set_server_list(self, servers: Iterable[Sequence[Any]]) -> None:
        """Record servers as ``host:port;host:port``."""
        entries = [f"{host}:{port}" for host, port in servers]
        if not entries:
            raise ValueError("server list must contain at least one server")
        self.set("server_list", ";".join(entries))

    def set_marshaller(self, marshaller: str) -> None:
        self.set("marshaller", marshaller)

    def set_tcp_no_delay(self, tcp_no_delay: bool) -> None:
        self.set("tcp_no_delay", tcp_no_delay)

    def set_ping_on_startup(self, ping_on_startup: bool) -> None:
        self.set("ping_on_startup", ping_on_startup)

    def set_socket_timeout(self, seconds: float) -> None:
        self.set("socket_timeout", seconds)

    def set_connect_timeout(self, seconds: float) -> None:
        self.set("connect_timeout", seconds)

    def set_max_connections(self, max_connections: int) -> None:
        self.set("max_connections", max_connections)

    def set_database(self, database: int) -> None:
        self.set("database", database)

    def set_key_prefix(self, key_prefix: str) -> None:
        self.set("key_prefix", key_prefix)

    def set_force_return_values(self, force_return_values: bool) -> None:
        self.set("force_return_values", force_return_values)

    def set_key_size_estimate(self, estimate: int) -> None:
        self.set("key_size_estimate", estimate)

    def set_value_size_estimate(self, estimate: int) -> None:
        self.set("value_size_estimate", estimate)
