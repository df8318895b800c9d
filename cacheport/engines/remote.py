"""
CachePort Engines — Remote cache engine backed by Redis.

- ``RemoteCacheManager`` owns one ``redis.asyncio`` client
- ``RemoteCache`` maps a named cache onto the key space ``{prefix}{cache}:``
- ``RemoteEngine`` plugs both into the bridge

Single-key operations map onto atomic Redis commands; the conditional
ones run as Lua scripts comparing marshalled bytes:

    put            SET key value GET
    replace        SET key value XX GET
    remove         GETDEL key
    put_if_absent  / remove_if / replace_if   Lua

The server does not expose which named caches exist, so the remote
manager cannot enumerate them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import redis.asyncio as aioredis

from cacheport.bridge.adapters import NoEnumeration
from cacheport.bridge.core import (
    ComponentStatus,
    ConfigurationSource,
    EffectiveConfiguration,
    PropertyMap,
)
from cacheport.bridge.faults import (
    CacheConfigFault,
    InvalidStateFault,
    UnsupportedOperationFault,
)
from cacheport.bridge.overrides import RemoteOverrides

from .serializers import Marshaller, get_marshaller

logger = logging.getLogger("cacheport.engines.remote")

DEFAULT_PORT = 6379
SCAN_BATCH_SIZE = 500


PUT_IF_ABSENT_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current then
    return current
end
redis.call('SET', KEYS[1], ARGV[1])
return false
"""

REMOVE_IF_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

REPLACE_IF_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    redis.call('SET', KEYS[1], ARGV[2])
    return 1
end
return 0
"""


# ============================================================================
# Settings
# ============================================================================

def parse_server_list(value: Any) -> Tuple[Tuple[str, int], ...]:
    """Parse ``host:port;host:port`` (port defaults to 6379)."""
    servers = []
    for entry in str(value).split(";"):
        entry = entry.strip()
        if not entry:
            continue
        host, _, port = entry.rpartition(":") if ":" in entry else (entry, "", "")
        try:
            servers.append((host.strip(), int(port) if port else DEFAULT_PORT))
        except ValueError:
            raise CacheConfigFault(f"invalid server '{entry}' in server_list", key="server_list") from None
    if not servers:
        raise CacheConfigFault("server_list is empty", key="server_list")
    return tuple(servers)


@dataclass(frozen=True)
class RemoteSettings:
    """
    Client settings of the remote engine.

    ``force_return_values`` controls whether ``put`` / ``remove`` /
    ``replace`` fetch the previous value; when off they return ``None``.
    ``tcp_no_delay`` is recorded only, the Redis client always sets it.
    """
    servers: Tuple[Tuple[str, int], ...] = (("127.0.0.1", DEFAULT_PORT),)
    marshaller: str = "json"
    database: int = 0
    key_prefix: str = "cacheport:"
    socket_timeout: float = 5.0
    connect_timeout: float = 5.0
    max_connections: int = 10
    tcp_no_delay: bool = True
    ping_on_startup: bool = True
    force_return_values: bool = True

    @classmethod
    def from_properties(cls, configuration: Optional[Mapping[str, Any]]) -> "RemoteSettings":
        if configuration is None:
            return cls()
        if not isinstance(configuration, EffectiveConfiguration):
            configuration = EffectiveConfiguration(configuration, ConfigurationSource.EXPLICIT)

        defaults = cls()
        servers = defaults.servers
        if "server_list" in configuration:
            servers = parse_server_list(configuration["server_list"])

        settings = cls(
            servers=servers,
            marshaller=configuration.get_str("marshaller", defaults.marshaller),
            database=configuration.get_int("database", defaults.database),
            key_prefix=configuration.get_str("key_prefix", defaults.key_prefix),
            socket_timeout=configuration.get_float("socket_timeout", defaults.socket_timeout),
            connect_timeout=configuration.get_float("connect_timeout", defaults.connect_timeout),
            max_connections=configuration.get_int("max_connections", defaults.max_connections),
            tcp_no_delay=configuration.get_bool("tcp_no_delay", defaults.tcp_no_delay),
            ping_on_startup=configuration.get_bool("ping_on_startup", defaults.ping_on_startup),
            force_return_values=configuration.get_bool("force_return_values", defaults.force_return_values),
        )
        # Fail on an unknown marshaller at configuration time
        get_marshaller(settings.marshaller)
        return settings

    @property
    def primary_server(self) -> Tuple[str, int]:
        return self.servers[0]


ClientFactory = Callable[[RemoteSettings], Any]


def create_redis_client(settings: RemoteSettings) -> aioredis.Redis:
    """Build the asyncio Redis client for the primary server."""
    host, port = settings.primary_server
    return aioredis.Redis(
        host=host,
        port=port,
        db=settings.database,
        socket_timeout=settings.socket_timeout,
        socket_connect_timeout=settings.connect_timeout,
        max_connections=settings.max_connections,
        decode_responses=False,  # Values are marshalled bytes
    )


def _escape_glob(text: str) -> str:
    return re.sub(r"([*?\[\]\\])", r"\\\1", text)


# ============================================================================
# Remote Cache
# ============================================================================

class RemoteCache:
    """Named cache living in a key-prefixed region of the Redis key space."""

    __slots__ = ("_manager", "_name", "_prefix", "_stopped")

    def __init__(self, manager: "RemoteCacheManager", name: str):
        self._manager = manager
        self._name = name
        self._prefix = f"{manager.settings.key_prefix}{name}:"
        self._stopped = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def status(self) -> ComponentStatus:
        if self._stopped:
            return ComponentStatus.TERMINATED
        return self._manager.status

    async def stop(self) -> None:
        """Detach from the manager; entries on the server are left in place."""
        self._stopped = True

    def _key(self, key: Any) -> str:
        return f"{self._prefix}{key}"

    @property
    def _client(self) -> Any:
        if self.status is not ComponentStatus.RUNNING:
            raise InvalidStateFault(f"remote cache '{self._name}'", self.status)
        return self._manager.client

    @property
    def _marshaller(self) -> Marshaller:
        return self._manager.marshaller

    def _load(self, raw: Optional[bytes]) -> Any:
        if raw is None:
            return None
        return self._marshaller.deserialize(raw)

    async def get(self, key: Any) -> Any:
        return self._load(await self._client.get(self._key(key)))

    async def put(self, key: Any, value: Any) -> Any:
        data = self._marshaller.serialize(value)
        if self._manager.settings.force_return_values:
            return self._load(await self._client.set(self._key(key), data, get=True))
        await self._client.set(self._key(key), data)
        return None

    async def put_if_absent(self, key: Any, value: Any) -> Any:
        client = self._client
        raw = await self._manager.script("put_if_absent")(
            keys=[self._key(key)], args=[self._marshaller.serialize(value)], client=client
        )
        return self._load(raw)

    async def remove(self, key: Any) -> Any:
        if self._manager.settings.force_return_values:
            return self._load(await self._client.getdel(self._key(key)))
        await self._client.delete(self._key(key))
        return None

    async def remove_if(self, key: Any, expected: Any) -> bool:
        client = self._client
        removed = await self._manager.script("remove_if")(
            keys=[self._key(key)], args=[self._marshaller.serialize(expected)], client=client
        )
        return bool(removed)

    async def replace(self, key: Any, value: Any) -> Any:
        data = self._marshaller.serialize(value)
        if self._manager.settings.force_return_values:
            return self._load(await self._client.set(self._key(key), data, xx=True, get=True))
        await self._client.set(self._key(key), data, xx=True)
        return None

    async def replace_if(self, key: Any, expected: Any, value: Any) -> bool:
        client = self._client
        replaced = await self._manager.script("replace_if")(
            keys=[self._key(key)],
            args=[self._marshaller.serialize(expected), self._marshaller.serialize(value)],
            client=client,
        )
        return bool(replaced)

    async def contains_key(self, key: Any) -> bool:
        return bool(await self._client.exists(self._key(key)))

    async def clear(self) -> None:
        client = self._client
        batch = []
        async for raw_key in client.scan_iter(match=f"{_escape_glob(self._prefix)}*", count=SCAN_BATCH_SIZE):
            batch.append(raw_key)
            if len(batch) >= SCAN_BATCH_SIZE:
                await client.delete(*batch)
                batch = []
        if batch:
            await client.delete(*batch)

    def __repr__(self) -> str:
        return f"<RemoteCache name={self._name!r} status={self.status.value}>"


# ============================================================================
# Remote Cache Manager
# ============================================================================

class RemoteCacheManager:
    """Owns the Redis client shared by all named remote caches."""

    __slots__ = (
        "_name",
        "_settings",
        "_client_factory",
        "_client",
        "_marshaller",
        "_scripts",
        "_caches",
        "_status",
    )

    def __init__(
        self,
        settings: Optional[RemoteSettings] = None,
        name: str = "remote-cache-manager",
        client_factory: Optional[ClientFactory] = None,
    ):
        self._name = name
        self._settings = settings or RemoteSettings()
        self._client_factory = client_factory or create_redis_client
        self._client: Any = None
        self._marshaller = get_marshaller(self._settings.marshaller)
        self._scripts: Dict[str, Any] = {}
        self._caches: Dict[str, RemoteCache] = {}
        self._status = ComponentStatus.UNINITIALIZED

    @property
    def name(self) -> str:
        return self._name

    @property
    def settings(self) -> RemoteSettings:
        return self._settings

    @property
    def status(self) -> ComponentStatus:
        return self._status

    @property
    def marshaller(self) -> Marshaller:
        return self._marshaller

    @property
    def client(self) -> Any:
        if self._client is None:
            raise InvalidStateFault(f"remote cache manager '{self._name}'", self._status)
        return self._client

    def script(self, name: str) -> Any:
        return self._scripts[name]

    async def start(self) -> None:
        """Connect to the primary server, pinging it when ``ping_on_startup`` is set."""
        if self._status is ComponentStatus.RUNNING:
            return

        host, port = self._settings.primary_server
        if len(self._settings.servers) > 1:
            logger.warning(
                f"Remote cache manager '{self._name}' connects to {host}:{port} only; "
                f"{len(self._settings.servers) - 1} further server(s) ignored"
            )

        client = self._client_factory(self._settings)
        try:
            if self._settings.ping_on_startup:
                await client.ping()
        except Exception as e:
            logger.error(f"Failed to connect to remote cache server {host}:{port}: {e}")
            self._status = ComponentStatus.FAILED
            await client.aclose()
            raise

        self._client = client
        self._scripts = {
            "put_if_absent": client.register_script(PUT_IF_ABSENT_SCRIPT),
            "remove_if": client.register_script(REMOVE_IF_SCRIPT),
            "replace_if": client.register_script(REPLACE_IF_SCRIPT),
        }
        self._status = ComponentStatus.RUNNING
        logger.info(f"Remote cache manager '{self._name}' connected: {host}:{port}/{self._settings.database}")

    async def stop(self) -> None:
        if self._status is ComponentStatus.TERMINATED:
            return
        self._status = ComponentStatus.STOPPING
        for cache in self._caches.values():
            await cache.stop()
        self._caches.clear()
        client, self._client = self._client, None
        self._scripts = {}
        self._status = ComponentStatus.TERMINATED
        if client is not None:
            await client.aclose()
        logger.info(f"Remote cache manager '{self._name}' stopped")

    def get_cache(self, name: str) -> RemoteCache:
        """
        Return the named remote cache.

        Raises:
            InvalidStateFault: If the manager is not RUNNING.
        """
        if self._status is not ComponentStatus.RUNNING:
            raise InvalidStateFault(f"remote cache manager '{self._name}'", self._status)

        cache = self._caches.get(name)
        if cache is None or cache.status is ComponentStatus.TERMINATED:
            cache = RemoteCache(self, name)
            self._caches[name] = cache
        return cache

    def __repr__(self) -> str:
        host, port = self._settings.primary_server
        return f"<RemoteCacheManager name={self._name!r} server={host}:{port} status={self._status.value}>"


# ============================================================================
# Engine
# ============================================================================

class RemoteEngine:
    """``EngineOps`` for the Redis-backed engine; cache names cannot be enumerated."""

    name = "remote"
    default_manager_name = "remote-cache-manager"
    enumeration = NoEnumeration()
    overrides_type = RemoteOverrides

    def __init__(self, client_factory: Optional[ClientFactory] = None):
        self._client_factory = client_factory

    def default_properties(self) -> Optional[PropertyMap]:
        # Overrides apply onto an empty property set
        return None

    def cache_configuration_fault(self) -> UnsupportedOperationFault:
        return UnsupportedOperationFault(
            "create_cache",
            self.name,
            reason="remote caches are configured on the server, not per client",
        )

    async def create_manager(
        self,
        configuration: Optional[EffectiveConfiguration],
        *,
        name: str,
        start: bool = True,
    ) -> RemoteCacheManager:
        settings = RemoteSettings.from_properties(configuration)
        manager = RemoteCacheManager(settings, name=name, client_factory=self._client_factory)
        if start:
            await manager.start()
        return manager

    async def create_cache(
        self,
        manager: RemoteCacheManager,
        name: str,
        configuration: Optional[EffectiveConfiguration] = None,
    ) -> RemoteCache:
        if configuration is not None:
            raise self.cache_configuration_fault()
        return manager.get_cache(name)

    def get_status(self, handle: Any) -> ComponentStatus:
        return handle.status

    async def stop(self, handle: Any) -> None:
        await handle.stop()

    def cache_names(self, manager: RemoteCacheManager) -> Any:
        raise UnsupportedOperationFault(
            "cache_names", self.name, reason="the server does not expose its named caches"
        )

    def __repr__(self) -> str:
        return "<RemoteEngine>"
