"""
CachePort — configuration and lifecycle adapters for cache engines.

Resolve a cache's configuration from exactly one source, create the
native cache manager or cache under a resolved name, check that it is
running, and hand it out behind a uniform async interface.
"""

__version__ = "0.1.0"

from .bridge import (
    CacheAdapter,
    CacheManagerAdapter,
    ConfigurationResolver,
    EffectiveConfiguration,
    FactoryKind,
    NamedResourceResolver,
    OverrideSet,
    ResourceFactory,
    build_factories,
    build_factory,
)
from .config import ConfigLoader, load_configuration, load_properties
from .engines import EmbeddedEngine, RemoteEngine
from .faults import Fault, FaultDomain, Severity

__all__ = [
    "__version__",
    "CacheAdapter",
    "CacheManagerAdapter",
    "ConfigurationResolver",
    "EffectiveConfiguration",
    "FactoryKind",
    "NamedResourceResolver",
    "OverrideSet",
    "ResourceFactory",
    "build_factories",
    "build_factory",
    "ConfigLoader",
    "load_configuration",
    "load_properties",
    "EmbeddedEngine",
    "RemoteEngine",
    "Fault",
    "FaultDomain",
    "Severity",
]
