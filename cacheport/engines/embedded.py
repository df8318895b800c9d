"""
CachePort Engines — Embedded (in-process) cache engine.

A small single-process engine:

- ``LocalCacheManager`` owns named ``LocalCache`` instances and their settings
- ``LocalCache`` is an ``OrderedDict`` store guarded by an ``asyncio.Lock``
  with NONE / LRU / FIFO / UNORDERED eviction bounded by
  ``eviction.max_entries`` and lifespan / max-idle expiration
- ``EmbeddedEngine`` plugs both into the bridge

Clustered cache modes (REPL_*, DIST_*, INVALIDATION_*) are accepted and
recorded in the settings, but the store itself is always local.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Type

from cacheport.bridge.adapters import LiveEnumeration
from cacheport.bridge.core import (
    ComponentStatus,
    ConfigurationSource,
    EffectiveConfiguration,
    PropertyMap,
)
from cacheport.bridge.faults import CacheConfigFault, InvalidStateFault
from cacheport.bridge.overrides import EmbeddedOverrides

logger = logging.getLogger("cacheport.engines.embedded")


# ============================================================================
# Settings
# ============================================================================

class CacheMode(str, Enum):
    LOCAL = "LOCAL"
    REPL_SYNC = "REPL_SYNC"
    REPL_ASYNC = "REPL_ASYNC"
    INVALIDATION_SYNC = "INVALIDATION_SYNC"
    INVALIDATION_ASYNC = "INVALIDATION_ASYNC"
    DIST_SYNC = "DIST_SYNC"
    DIST_ASYNC = "DIST_ASYNC"


class EvictionStrategy(str, Enum):
    NONE = "NONE"             # Unbounded
    LRU = "LRU"               # Least Recently Used
    FIFO = "FIFO"             # First In First Out
    UNORDERED = "UNORDERED"   # Arbitrary entry


def _parse_enum(enum_cls: Type[Enum], value: Any, key: str) -> Any:
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise CacheConfigFault(f"unknown {key} '{value}' (expected one of {allowed})", key=key) from None


@dataclass(frozen=True)
class CacheSettings:
    """Settings of one local cache. Durations are in milliseconds, -1 means never."""
    cache_mode: CacheMode = CacheMode.LOCAL
    invocation_batching_enabled: bool = False
    eviction_strategy: EvictionStrategy = EvictionStrategy.NONE
    eviction_max_entries: int = -1
    expiration_lifespan: int = -1
    expiration_max_idle: int = -1
    concurrency_level: int = 32
    lock_acquisition_timeout: int = 10000
    sync_repl_timeout: int = 15000
    expose_statistics: bool = False

    @classmethod
    def from_properties(cls, configuration: Optional[Mapping[str, Any]]) -> "CacheSettings":
        """
        Build settings from resolved properties.

        Raises:
            CacheConfigFault: Unknown cache mode or eviction strategy, or a
                value of the wrong type.
        """
        if configuration is None:
            return cls()
        if not isinstance(configuration, EffectiveConfiguration):
            configuration = EffectiveConfiguration(configuration, ConfigurationSource.EXPLICIT)

        defaults = cls()
        return cls(
            cache_mode=_parse_enum(
                CacheMode, configuration.get("cache_mode", defaults.cache_mode.value), "cache_mode"
            ),
            invocation_batching_enabled=configuration.get_bool(
                "invocation_batching_enabled", defaults.invocation_batching_enabled
            ),
            eviction_strategy=_parse_enum(
                EvictionStrategy,
                configuration.get("eviction.strategy", defaults.eviction_strategy.value),
                "eviction.strategy",
            ),
            eviction_max_entries=configuration.get_int("eviction.max_entries", defaults.eviction_max_entries),
            expiration_lifespan=configuration.get_int("expiration.lifespan", defaults.expiration_lifespan),
            expiration_max_idle=configuration.get_int("expiration.max_idle", defaults.expiration_max_idle),
            concurrency_level=configuration.get_int("concurrency_level", defaults.concurrency_level),
            lock_acquisition_timeout=configuration.get_int(
                "lock_acquisition_timeout", defaults.lock_acquisition_timeout
            ),
            sync_repl_timeout=configuration.get_int("sync_repl_timeout", defaults.sync_repl_timeout),
            expose_statistics=configuration.get_bool("expose_statistics", defaults.expose_statistics),
        )

    def to_properties(self) -> PropertyMap:
        """Serialize as string properties, using the same keys ``from_properties`` reads."""
        properties: PropertyMap = {}
        for attr, value in asdict(self).items():
            key = attr.replace("eviction_", "eviction.", 1).replace("expiration_", "expiration.", 1)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, bool):
                value = "true" if value else "false"
            properties[key] = str(value)
        return properties

    @property
    def is_bounded(self) -> bool:
        return self.eviction_strategy is not EvictionStrategy.NONE and self.eviction_max_entries > 0


# ============================================================================
# Local Cache
# ============================================================================

@dataclass(slots=True)
class _Entry:
    value: Any
    created_at: float
    last_accessed: float

    def is_expired(self, settings: CacheSettings, now: float) -> bool:
        if settings.expiration_lifespan >= 0 and now - self.created_at >= settings.expiration_lifespan / 1000.0:
            return True
        if settings.expiration_max_idle >= 0 and now - self.last_accessed >= settings.expiration_max_idle / 1000.0:
            return True
        return False


class LocalCache:
    """
    Named in-process cache.

    Compound operations (put-if-absent, compare-and-replace, ...) run
    under one lock acquisition, so they are atomic with respect to other
    coroutines on the same event loop.
    """

    __slots__ = ("_name", "_settings", "_store", "_lock", "_status")

    def __init__(self, name: str, settings: Optional[CacheSettings] = None):
        self._name = name
        self._settings = settings or CacheSettings()
        self._store: OrderedDict[Any, _Entry] = OrderedDict()
        self._lock = asyncio.Lock()
        self._status = ComponentStatus.UNINITIALIZED

    @property
    def name(self) -> str:
        return self._name

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    @property
    def status(self) -> ComponentStatus:
        return self._status

    def start(self) -> None:
        self._status = ComponentStatus.RUNNING

    async def stop(self) -> None:
        if self._status is ComponentStatus.TERMINATED:
            return
        self._status = ComponentStatus.STOPPING
        async with self._lock:
            self._store.clear()
        self._status = ComponentStatus.TERMINATED
        logger.debug(f"Local cache '{self._name}' stopped")

    def size(self) -> int:
        """Number of live (non-expired) entries."""
        now = time.monotonic()
        return sum(1 for entry in self._store.values() if not entry.is_expired(self._settings, now))

    # ── Store internals (call with the lock held) ─────────────────────

    def _require_running(self) -> None:
        if self._status is not ComponentStatus.RUNNING:
            raise InvalidStateFault(f"local cache '{self._name}'", self._status)

    def _live(self, key: Any) -> Optional[_Entry]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._settings, time.monotonic()):
            del self._store[key]
            return None
        return entry

    def _read(self, key: Any) -> Optional[_Entry]:
        entry = self._live(key)
        if entry is not None:
            entry.last_accessed = time.monotonic()
            if self._settings.eviction_strategy is EvictionStrategy.LRU:
                self._store.move_to_end(key)
        return entry

    def _write(self, key: Any, value: Any) -> None:
        existing = key in self._store
        now = time.monotonic()
        self._store[key] = _Entry(value, now, now)
        if existing and self._settings.eviction_strategy is EvictionStrategy.LRU:
            self._store.move_to_end(key)
        self._evict(keep=key)

    def _purge_expired(self) -> None:
        now = time.monotonic()
        expired = [k for k, entry in self._store.items() if entry.is_expired(self._settings, now)]
        for key in expired:
            del self._store[key]

    def _evict(self, keep: Any) -> None:
        if not self._settings.is_bounded or len(self._store) <= self._settings.eviction_max_entries:
            return
        self._purge_expired()
        while len(self._store) > self._settings.eviction_max_entries:
            if self._settings.eviction_strategy is EvictionStrategy.UNORDERED:
                victim = random.choice([k for k in self._store if k != keep])
                del self._store[victim]
            else:
                victim, _ = self._store.popitem(last=False)
            logger.debug(f"Evicted key {victim!r} from local cache '{self._name}'")

    # ── Cache operations ──────────────────────────────────────────────

    async def get(self, key: Any) -> Any:
        async with self._lock:
            self._require_running()
            entry = self._read(key)
            return entry.value if entry is not None else None

    async def put(self, key: Any, value: Any) -> Any:
        async with self._lock:
            self._require_running()
            entry = self._live(key)
            self._write(key, value)
            return entry.value if entry is not None else None

    async def put_if_absent(self, key: Any, value: Any) -> Any:
        async with self._lock:
            self._require_running()
            entry = self._read(key)
            if entry is not None:
                return entry.value
            self._write(key, value)
            return None

    async def remove(self, key: Any) -> Any:
        async with self._lock:
            self._require_running()
            entry = self._live(key)
            if entry is None:
                return None
            del self._store[key]
            return entry.value

    async def remove_if(self, key: Any, expected: Any) -> bool:
        async with self._lock:
            self._require_running()
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            del self._store[key]
            return True

    async def replace(self, key: Any, value: Any) -> Any:
        async with self._lock:
            self._require_running()
            entry = self._live(key)
            if entry is None:
                return None
            self._write(key, value)
            return entry.value

    async def replace_if(self, key: Any, expected: Any, value: Any) -> bool:
        async with self._lock:
            self._require_running()
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            self._write(key, value)
            return True

    async def contains_key(self, key: Any) -> bool:
        async with self._lock:
            self._require_running()
            return self._live(key) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._require_running()
            self._store.clear()

    def __repr__(self) -> str:
        return f"<LocalCache name={self._name!r} mode={self._settings.cache_mode.value} status={self._status.value}>"


# ============================================================================
# Local Cache Manager
# ============================================================================

class LocalCacheManager:
    """Owns named local caches; caches are created on first request."""

    __slots__ = ("_name", "_default_settings", "_definitions", "_caches", "_status")

    def __init__(self, configuration: Optional[Mapping[str, Any]] = None, name: str = "embedded-cache-manager"):
        self._name = name
        self._default_settings = CacheSettings.from_properties(configuration)
        self._definitions: Dict[str, CacheSettings] = {}
        self._caches: Dict[str, LocalCache] = {}
        self._status = ComponentStatus.UNINITIALIZED

    @property
    def name(self) -> str:
        return self._name

    @property
    def status(self) -> ComponentStatus:
        return self._status

    @property
    def default_settings(self) -> CacheSettings:
        return self._default_settings

    @property
    def cache_names(self) -> FrozenSet[str]:
        """Names of defined and created caches."""
        return frozenset(self._caches) | frozenset(self._definitions)

    def start(self) -> None:
        if self._status is ComponentStatus.RUNNING:
            return
        self._status = ComponentStatus.RUNNING
        logger.info(f"Local cache manager '{self._name}' started (mode={self._default_settings.cache_mode.value})")

    async def stop(self) -> None:
        if self._status is ComponentStatus.TERMINATED:
            return
        self._status = ComponentStatus.STOPPING
        for cache in list(self._caches.values()):
            await cache.stop()
        self._caches.clear()
        self._status = ComponentStatus.TERMINATED
        logger.info(f"Local cache manager '{self._name}' stopped")

    def define_configuration(self, name: str, configuration: Optional[Mapping[str, Any]]) -> CacheSettings:
        """Register settings for a cache; applies to the cache when it is next created."""
        settings = CacheSettings.from_properties(configuration)
        self._definitions[name] = settings
        return settings

    def get_cache(self, name: str) -> LocalCache:
        """
        Return the named cache, creating and starting it on first use.

        Raises:
            InvalidStateFault: If the manager is not RUNNING.
        """
        if self._status is not ComponentStatus.RUNNING:
            raise InvalidStateFault(f"local cache manager '{self._name}'", self._status)

        cache = self._caches.get(name)
        if cache is None or cache.status is ComponentStatus.TERMINATED:
            cache = LocalCache(name, self._definitions.get(name, self._default_settings))
            cache.start()
            self._caches[name] = cache
            logger.debug(f"Created local cache '{name}' in manager '{self._name}'")
        return cache

    def __repr__(self) -> str:
        return f"<LocalCacheManager name={self._name!r} status={self._status.value} caches={len(self._caches)}>"


# ============================================================================
# Engine
# ============================================================================

class EmbeddedEngine:
    """``EngineOps`` for the in-process engine; cache names are enumerable live."""

    name = "embedded"
    default_manager_name = "embedded-cache-manager"
    enumeration = LiveEnumeration()
    overrides_type = EmbeddedOverrides

    def default_properties(self) -> Optional[PropertyMap]:
        return CacheSettings().to_properties()

    def cache_configuration_fault(self) -> None:
        return None

    async def create_manager(
        self,
        configuration: Optional[EffectiveConfiguration],
        *,
        name: str,
        start: bool = True,
    ) -> LocalCacheManager:
        manager = LocalCacheManager(configuration, name=name)
        if start:
            manager.start()
        return manager

    async def create_cache(
        self,
        manager: LocalCacheManager,
        name: str,
        configuration: Optional[EffectiveConfiguration] = None,
    ) -> LocalCache:
        if configuration is not None:
            manager.define_configuration(name, configuration)
        return manager.get_cache(name)

    def get_status(self, handle: Any) -> ComponentStatus:
        return handle.status

    async def stop(self, handle: Any) -> None:
        await handle.stop()

    def cache_names(self, manager: LocalCacheManager) -> FrozenSet[str]:
        return manager.cache_names

    def __repr__(self) -> str:
        return "<EmbeddedEngine>"
