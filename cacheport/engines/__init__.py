"""
CachePort Engines — Native cache engines plugged into the bridge.

- ``EmbeddedEngine``: in-process caches
- ``RemoteEngine``: caches on a Redis server
"""

from .embedded import (
    CacheMode,
    CacheSettings,
    EmbeddedEngine,
    EvictionStrategy,
    LocalCache,
    LocalCacheManager,
)
from .remote import RemoteCache, RemoteCacheManager, RemoteEngine, RemoteSettings
from .serializers import (
    JsonMarshaller,
    Marshaller,
    MsgpackMarshaller,
    PickleMarshaller,
    get_marshaller,
)

__all__ = [
    "CacheMode",
    "CacheSettings",
    "EmbeddedEngine",
    "EvictionStrategy",
    "LocalCache",
    "LocalCacheManager",
    "RemoteCache",
    "RemoteCacheManager",
    "RemoteEngine",
    "RemoteSettings",
    "JsonMarshaller",
    "Marshaller",
    "MsgpackMarshaller",
    "PickleMarshaller",
    "get_marshaller",
]
