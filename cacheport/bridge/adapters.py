"""
CachePort Bridge — Uniform cache and cache-manager adapters.

``CacheAdapter`` presents one stable async interface over any native
cache; every call passes straight through, the adapter adds no caching
semantics of its own.

``CacheManagerAdapter`` hands out ``CacheAdapter`` instances by name.
How it lists cache names is decided by the engine's enumeration
strategy:

- ``LiveEnumeration``: re-query the native manager on every call
- ``NoEnumeration``: the engine cannot enumerate, always fault
"""

from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional

from .core import ComponentStatus, EngineOps
from .faults import UnsupportedOperationFault
from .lifecycle import LifecycleGuard

logger = logging.getLogger("cacheport.bridge.adapters")


# ============================================================================
# Enumeration strategies
# ============================================================================

class LiveEnumeration:
    """Cache names come from the native manager, fresh on every call."""

    __slots__ = ()

    def names(self, engine: EngineOps, manager: Any) -> FrozenSet[str]:
        LifecycleGuard().require_running(
            manager, engine.get_status, what=f"{engine.name} cache manager"
        )
        return frozenset(engine.cache_names(manager))


class NoEnumeration:
    """The engine does not expose the caches it knows about."""

    __slots__ = ()

    def names(self, engine: EngineOps, manager: Any) -> FrozenSet[str]:
        raise UnsupportedOperationFault(
            "get_cache_names",
            engine.name,
            reason="the engine does not expose the caches it knows about",
        )


# ============================================================================
# Cache Adapter
# ============================================================================

class CacheAdapter:
    """
    Uniform async cache interface over a native cache.

    The native cache must be RUNNING when wrapped.

    Usage::

        users = await manager.get_cache("users")
        previous = await users.put("u:1", {"name": "Ada"})
        if await users.replace_if("u:1", {"name": "Ada"}, {"name": "Ada L."}):
            ...
    """

    __slots__ = ("_native", "_engine")

    def __init__(self, native_cache: Any, engine: EngineOps):
        LifecycleGuard().require_running(
            native_cache, engine.get_status, what=f"{engine.name} cache"
        )
        self._native = native_cache
        self._engine = engine

    @property
    def name(self) -> str:
        return self._native.name

    @property
    def native_cache(self) -> Any:
        return self._native

    @property
    def status(self) -> ComponentStatus:
        return self._engine.get_status(self._native)

    async def get(self, key: Any) -> Any:
        return await self._native.get(key)

    async def put(self, key: Any, value: Any) -> Any:
        """Store ``value``; returns the previous value or ``None``."""
        return await self._native.put(key, value)

    async def put_if_absent(self, key: Any, value: Any) -> Any:
        """Store ``value`` only if ``key`` is absent; returns the current value or ``None``."""
        return await self._native.put_if_absent(key, value)

    async def remove(self, key: Any) -> Any:
        """Remove ``key``; returns the previous value or ``None``."""
        return await self._native.remove(key)

    async def remove_if(self, key: Any, expected: Any) -> bool:
        """Remove ``key`` only if it currently maps to ``expected``."""
        return await self._native.remove_if(key, expected)

    async def replace(self, key: Any, value: Any) -> Any:
        """Replace ``key`` only if present; returns the previous value or ``None``."""
        return await self._native.replace(key, value)

    async def replace_if(self, key: Any, expected: Any, value: Any) -> bool:
        """Replace ``key`` only if it currently maps to ``expected``."""
        return await self._native.replace_if(key, expected, value)

    async def contains_key(self, key: Any) -> bool:
        return await self._native.contains_key(key)

    async def clear(self) -> None:
        await self._native.clear()

    def __repr__(self) -> str:
        return f"CacheAdapter [native_cache = {self._native!r}]"


# ============================================================================
# Cache Manager Adapter
# ============================================================================

class CacheManagerAdapter:
    """
    Hands out ``CacheAdapter`` instances from a native cache manager.

    The native manager must be RUNNING when wrapped and whenever a cache
    is requested.
    """

    __slots__ = ("_native", "_engine", "_name", "_requested")

    def __init__(self, native_manager: Any, engine: EngineOps, name: Optional[str] = None):
        LifecycleGuard().require_running(
            native_manager, engine.get_status, what=f"{engine.name} cache manager"
        )
        self._native = native_manager
        self._engine = engine
        self._name = name or getattr(native_manager, "name", engine.default_manager_name)
        self._requested: Dict[str, CacheAdapter] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def engine(self) -> EngineOps:
        return self._engine

    @property
    def native_manager(self) -> Any:
        return self._native

    @property
    def status(self) -> ComponentStatus:
        return self._engine.get_status(self._native)

    @property
    def requested_cache_names(self) -> FrozenSet[str]:
        """Names requested through this adapter (local bookkeeping, not enumeration)."""
        return frozenset(self._requested)

    async def get_cache(self, name: str) -> CacheAdapter:
        """Return the adapter for the named cache, creating the native cache if needed."""
        LifecycleGuard().require_running(
            self._native, self._engine.get_status, what=f"{self._engine.name} cache manager"
        )
        native_cache = await self._engine.create_cache(self._native, name)
        adapter = CacheAdapter(native_cache, self._engine)
        self._requested[name] = adapter
        return adapter

    def get_cache_names(self) -> FrozenSet[str]:
        """
        Names of the caches the native manager knows about.

        Raises:
            InvalidStateFault: Embedded manager not RUNNING.
            UnsupportedOperationFault: Remote engine.
        """
        return self._engine.enumeration.names(self._engine, self._native)

    async def stop(self) -> None:
        await LifecycleGuard().stop(self._native, self._engine.stop)

    def __repr__(self) -> str:
        return f"CacheManagerAdapter [name = {self._name!r}, native_manager = {self._native!r}]"
