"""
CachePort Bridge — Build factories from declarations.

Turns the ``caches`` section of a workspace configuration into
configured, not yet activated ``ResourceFactory`` instances::

    caches:
      app:
        engine: embedded
        kind: cache_manager
        overrides:
          cache_mode: REPL_ASYNC
      users:
        engine: embedded
        kind: named_cache
        container: app
        location: config/users-cache.yaml
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from .core import EngineOps, flatten_properties
from .faults import CacheConfigFault
from .factory import FactoryKind, ResourceFactory

logger = logging.getLogger("cacheport.bridge.builders")

DECLARATION_KEYS = frozenset(
    {"engine", "kind", "name", "configuration", "location", "overrides", "container"}
)


def create_engine(kind: str) -> EngineOps:
    """
    Factory: create an engine by name.

    Args:
        kind: "embedded" or "remote"

    Raises:
        CacheConfigFault: Unknown engine.
    """
    engine_type = str(kind).strip().lower()

    if engine_type == "embedded":
        from cacheport.engines.embedded import EmbeddedEngine
        return EmbeddedEngine()

    elif engine_type == "remote":
        from cacheport.engines.remote import RemoteEngine
        return RemoteEngine()

    else:
        raise CacheConfigFault(f"unknown cache engine '{kind}' (options: embedded, remote)", key="engine")


def build_factory(
    name: str,
    declaration: Mapping[str, Any],
    container: Any = None,
    engine: Optional[EngineOps] = None,
) -> ResourceFactory:
    """
    Build a configured factory from one declaration.

    ``name`` becomes the factory's fallback name; a ``name`` key in the
    declaration is the custom name. Validation of the configuration
    sources is left to activation.

    Args:
        name: Declaration name (container-assigned)
        declaration: Raw declaration mapping
        container: Cache manager for ``named_cache`` declarations
        engine: Engine to use instead of the declared one

    Raises:
        CacheConfigFault: Unknown keys, engine or kind.
    """
    unknown = set(declaration) - DECLARATION_KEYS
    if unknown:
        raise CacheConfigFault(
            f"unknown keys in cache declaration '{name}': {', '.join(sorted(unknown))}",
            key=name,
        )

    if engine is None:
        engine = create_engine(declaration.get("engine", "embedded"))

    try:
        kind = FactoryKind(str(declaration.get("kind", FactoryKind.CACHE_MANAGER.value)).lower())
    except ValueError:
        raise CacheConfigFault(
            f"unknown factory kind '{declaration.get('kind')}' in cache declaration '{name}'",
            key=f"{name}.kind",
        ) from None

    factory = ResourceFactory(engine, kind, fallback_name=name, container=container)

    if declaration.get("name") is not None:
        factory.set_name(str(declaration["name"]))
    if declaration.get("configuration") is not None:
        factory.set_configuration(declaration["configuration"])
    if declaration.get("location") is not None:
        factory.set_configuration_location(declaration["location"])

    overrides = declaration.get("overrides") or {}
    if not isinstance(overrides, Mapping):
        raise CacheConfigFault(f"overrides of cache declaration '{name}' must be a mapping", key=f"{name}.overrides")
    for key, value in flatten_properties(overrides).items():
        factory.set_override(key, value)

    logger.debug(f"Built {engine.name} {kind.value} factory '{name}'")
    return factory


def build_factories(declarations: Mapping[str, Mapping[str, Any]]) -> Dict[str, ResourceFactory]:
    """
    Build factories for a whole ``caches`` section.

    A ``named_cache`` declaration names its container with a ``container``
    key; the container's factory is handed over and the named cache
    factory pulls the manager from it at activation, so activate
    containers first (declaration order is kept).

    Raises:
        CacheConfigFault: Unknown or non-manager container reference.
    """
    factories: Dict[str, ResourceFactory] = {}
    for name, declaration in declarations.items():
        if not isinstance(declaration, Mapping):
            raise CacheConfigFault(f"cache declaration '{name}' must be a mapping", key=name)

        container = None
        container_ref = declaration.get("container")
        if container_ref is not None:
            container = factories.get(container_ref)
            if container is None or container.kind is not FactoryKind.CACHE_MANAGER:
                raise CacheConfigFault(
                    f"cache declaration '{name}' references unknown cache manager '{container_ref}'",
                    key=f"{name}.container",
                )

        factories[name] = build_factory(name, declaration, container=container)

    logger.info(f"Built {len(factories)} cache factories")
    return factories
