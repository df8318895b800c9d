"""
CachePort Bridge — Configuration-and-lifecycle layer over cache engines.

Provides:
- **Resolution**: ``ConfigurationResolver`` (explicit / file / overrides),
  ``NamedResourceResolver`` (custom name or container-assigned fallback)
- **Overrides**: ``OverrideSet`` and the typed ``EmbeddedOverrides`` /
  ``RemoteOverrides`` setters
- **Lifecycle**: ``LifecycleGuard`` (RUNNING checks, idempotent stop)
- **Factories**: ``ResourceFactory`` for cache managers, named caches and
  caches in a container of their own
- **Adapters**: ``CacheAdapter`` / ``CacheManagerAdapter``
- **Faults**: typed faults in the ``cache`` domain

Usage::

    from cacheport.bridge import FactoryKind, ResourceFactory
    from cacheport.engines import EmbeddedEngine

    factory = ResourceFactory(EmbeddedEngine(), FactoryKind.CACHE_MANAGER)
    factory.overrides.set_cache_mode("REPL_ASYNC")
    manager = await factory.activate()
    users = await manager.get_cache("users")
"""

from .faults import (
    AlreadyActivatedFault,
    CacheBridgeFault,
    CacheConfigFault,
    ConfigurationLoadFault,
    ConflictingOverrideFault,
    InvalidStateFault,
    MissingContainerFault,
    MissingNameFault,
    MutuallyExclusiveSourcesFault,
    NotActivatedFault,
    UnsupportedOperationFault,
)

from .core import (
    ComponentStatus,
    ConfigurationSource,
    EffectiveConfiguration,
    EngineOps,
    NativeCache,
    PropertyMap,
    flatten_properties,
)

from .overrides import EmbeddedOverrides, OverrideSet, RemoteOverrides
from .resolver import ConfigurationResolver, NamedResourceResolver, Resolution
from .lifecycle import LifecycleGuard
from .adapters import CacheAdapter, CacheManagerAdapter, LiveEnumeration, NoEnumeration
from .factory import FactoryKind, FactoryState, ResourceFactory
from .builders import build_factories, build_factory, create_engine

__all__ = [
    # Faults
    "AlreadyActivatedFault",
    "CacheBridgeFault",
    "CacheConfigFault",
    "ConfigurationLoadFault",
    "ConflictingOverrideFault",
    "InvalidStateFault",
    "MissingContainerFault",
    "MissingNameFault",
    "MutuallyExclusiveSourcesFault",
    "NotActivatedFault",
    "UnsupportedOperationFault",
    # Core
    "ComponentStatus",
    "ConfigurationSource",
    "EffectiveConfiguration",
    "EngineOps",
    "NativeCache",
    "PropertyMap",
    "flatten_properties",
    # Overrides
    "EmbeddedOverrides",
    "OverrideSet",
    "RemoteOverrides",
    # Resolution
    "ConfigurationResolver",
    "NamedResourceResolver",
    "Resolution",
    # Lifecycle
    "LifecycleGuard",
    # Adapters
    "CacheAdapter",
    "CacheManagerAdapter",
    "LiveEnumeration",
    "NoEnumeration",
    # Factories
    "FactoryKind",
    "FactoryState",
    "ResourceFactory",
    "build_factories",
    "build_factory",
    "create_engine",
]
