"""
CachePort Bridge — ResourceFactory: two-phase creation of one cache resource.

A factory is configured first (any setters, any order, no validation),
then activated once::

    configure ──► activate ──► product ──► teardown
                    │
                    ├─ resolve configuration  (ConfigurationResolver)
                    ├─ resolve name           (NamedResourceResolver)
                    ├─ create native resource (EngineOps)
                    ├─ require RUNNING        (LifecycleGuard)
                    └─ wrap                   (CacheAdapter / CacheManagerAdapter)

Embedded and remote factories are the same class; they differ only in
the ``EngineOps`` plugged in.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .adapters import CacheAdapter, CacheManagerAdapter
from .core import EffectiveConfiguration, EngineOps
from .faults import (
    AlreadyActivatedFault,
    CacheBridgeFault,
    MissingContainerFault,
    MissingNameFault,
    NotActivatedFault,
)
from .lifecycle import LifecycleGuard
from .overrides import OverrideSet
from .resolver import ConfigurationResolver, Loader, NamedResourceResolver

logger = logging.getLogger("cacheport.bridge.factory")


class FactoryKind(str, Enum):
    """What a factory produces."""
    CACHE_MANAGER = "cache_manager"        # A cache manager
    NAMED_CACHE = "named_cache"            # A named cache from a supplied container
    CONTAINED_CACHE = "contained_cache"    # A named cache in a container of its own


class FactoryState(str, Enum):
    CONFIGURING = "configuring"
    ACTIVE = "active"
    TORN_DOWN = "torn_down"


Product = Union[CacheAdapter, CacheManagerAdapter]


class ResourceFactory:
    """
    Creates exactly one cache resource and owns it until teardown.

    Usage::

        factory = ResourceFactory(EmbeddedEngine(), FactoryKind.CONTAINED_CACHE)
        factory.set_fallback_name("users")
        factory.set_configuration_location("config/users-cache.yaml")
        factory.overrides.set_eviction_max_entries(500)

        await factory.activate()
        users = factory.product
        ...
        await factory.teardown()

    Or as an async context manager::

        async with ResourceFactory(RemoteEngine(), fallback_name="sessions") as factory:
            sessions = await factory.product.get_cache("sessions")
    """

    def __init__(
        self,
        engine: EngineOps,
        kind: FactoryKind = FactoryKind.CACHE_MANAGER,
        *,
        fallback_name: Optional[str] = None,
        container: Any = None,
        loader: Optional[Loader] = None,
    ):
        self._engine = engine
        self._kind = FactoryKind(kind)
        self._loader = loader

        # Configure phase inputs
        self._explicit: Optional[Mapping[str, Any]] = None
        self._location: Any = None
        self._overrides: OverrideSet = engine.overrides_type()
        self._name: Optional[str] = None
        if fallback_name is None and self._kind is FactoryKind.CACHE_MANAGER:
            fallback_name = engine.default_manager_name
        self._fallback_name = fallback_name
        self._container = container

        # Activation results
        self._state = FactoryState.CONFIGURING
        self._configuration: Optional[EffectiveConfiguration] = None
        self._effective_name: Optional[str] = None
        self._product: Optional[Product] = None
        self._native: Any = None
        self._owned_container: Any = None

        self._names = NamedResourceResolver(logger)
        self._guard = LifecycleGuard(logger)

    # ── Introspection ────────────────────────────────────────────────

    @property
    def engine(self) -> EngineOps:
        return self._engine

    @property
    def kind(self) -> FactoryKind:
        return self._kind

    @property
    def state(self) -> FactoryState:
        return self._state

    @property
    def label(self) -> str:
        return self._name or self._fallback_name or f"{self._engine.name}:{self._kind.value}"

    @property
    def effective_configuration(self) -> Optional[EffectiveConfiguration]:
        self._require_active()
        return self._configuration

    @property
    def effective_name(self) -> str:
        self._require_active()
        return self._effective_name

    def is_singleton(self) -> bool:
        return True

    # ── Configure phase ──────────────────────────────────────────────

    @property
    def overrides(self) -> OverrideSet:
        """Typed override setters of the engine (``EmbeddedOverrides`` / ``RemoteOverrides``)."""
        return self._overrides

    def set_configuration(self, configuration: Optional[Mapping[str, Any]]) -> None:
        self._require_configuring("set configuration")
        self._explicit = configuration

    def set_configuration_location(self, location: Any) -> None:
        self._require_configuring("set configuration location")
        self._location = location

    def set_override(self, key: str, value: Any) -> None:
        self._require_configuring("set override")
        self._overrides.set(key, value)

    def set_name(self, name: Optional[str]) -> None:
        self._require_configuring("set name")
        self._name = name

    def set_fallback_name(self, name: Optional[str]) -> None:
        """Name assigned by the container the factory is registered in."""
        self._require_configuring("set fallback name")
        self._fallback_name = name

    def set_container(self, container: Any) -> None:
        """Cache manager (adapter, native, or its factory) a NAMED_CACHE factory pulls its cache from."""
        self._require_configuring("set container")
        self._container = container

    def validate(self) -> Optional[CacheBridgeFault]:
        """
        Check the configure-phase inputs without creating anything.

        Loads a configured location. Returns the fault activation would
        raise for the configuration, the name, a missing container or a
        cache configuration the engine cannot apply, or ``None``.
        """
        resolution = self._resolver().try_resolve()
        fault = resolution.fault
        if fault is None:
            try:
                self._names.resolve(self._name, self._fallback_name)
            except MissingNameFault as e:
                fault = e
        if fault is None and self._kind is FactoryKind.NAMED_CACHE:
            if self._container is None:
                fault = MissingContainerFault(self._engine.name)
            elif resolution.configuration is not None:
                fault = self._engine.cache_configuration_fault()
        return fault

    # ── Activate phase ───────────────────────────────────────────────

    async def activate(self) -> Product:
        """
        Create, check and wrap the resource.

        Either fully succeeds or leaves no product behind.

        Raises:
            AlreadyActivatedFault: Called a second time.
            MissingContainerFault: NAMED_CACHE without a container.
            MutuallyExclusiveSourcesFault, ConflictingOverrideFault,
            ConfigurationLoadFault, MissingNameFault, InvalidStateFault
            UnsupportedOperationFault: The engine cannot apply a per-cache configuration.
        """
        if self._state is not FactoryState.CONFIGURING:
            raise AlreadyActivatedFault(self.label)

        logger.info(f"Initializing {self._engine.name} {self._kind.value} '{self.label}' ...")

        configuration = self._resolver().resolve()
        name = self._names.resolve(self._name, self._fallback_name)

        if self._kind is FactoryKind.CACHE_MANAGER:
            product = await self._create_manager(configuration, name)
        elif self._kind is FactoryKind.NAMED_CACHE:
            product = await self._create_named_cache(self._native_container(), configuration, name)
        else:
            product = await self._create_contained_cache(configuration, name)

        self._configuration = configuration
        self._effective_name = name
        self._product = product
        self._state = FactoryState.ACTIVE
        logger.info(f"Successfully initialized {self._engine.name} {self._kind.value} [{product!r}]")
        return product

    def _resolver(self) -> ConfigurationResolver:
        return ConfigurationResolver(
            self._explicit,
            self._location,
            self._overrides,
            loader=self._loader,
            defaults=self._engine.default_properties,
        )

    def _native_container(self) -> Any:
        container = self._container
        if container is None:
            raise MissingContainerFault(self._engine.name)
        if isinstance(container, ResourceFactory):
            container = container.product
        if isinstance(container, CacheManagerAdapter):
            container = container.native_manager
        self._guard.require_running(
            container, self._engine.get_status, what=f"{self._engine.name} cache container"
        )
        return container

    async def _create_manager(
        self, configuration: Optional[EffectiveConfiguration], name: str
    ) -> CacheManagerAdapter:
        native = await self._engine.create_manager(configuration, name=name)
        try:
            product = CacheManagerAdapter(native, self._engine, name)
        except Exception:
            await self._discard(native)
            raise
        self._native = native
        return product

    async def _create_named_cache(
        self,
        native_manager: Any,
        configuration: Optional[EffectiveConfiguration],
        name: str,
    ) -> CacheAdapter:
        native = await self._engine.create_cache(native_manager, name, configuration)
        try:
            product = CacheAdapter(native, self._engine)
        except Exception:
            await self._discard(native)
            raise
        self._native = native
        return product

    async def _create_contained_cache(
        self, configuration: Optional[EffectiveConfiguration], name: str
    ) -> CacheAdapter:
        container = await self._engine.create_manager(configuration, name=f"{name}-container")
        try:
            self._guard.require_running(
                container, self._engine.get_status, what=f"{self._engine.name} cache container"
            )
            native = await self._engine.create_cache(container, name)
            product = CacheAdapter(native, self._engine)
        except Exception:
            await self._discard(container)
            raise
        self._native = native
        self._owned_container = container
        return product

    async def _discard(self, handle: Any) -> None:
        """Stop a half-built resource; the activation error is what propagates."""
        try:
            await self._engine.stop(handle)
        except Exception as e:
            logger.warning(f"Failed to stop [{handle!r}] after failed activation: {e}")

    # ── Product ──────────────────────────────────────────────────────

    @property
    def product(self) -> Product:
        self._require_active()
        return self._product

    def get_product(self) -> Product:
        """
        The singleton product.

        Raises:
            NotActivatedFault: Before activation or after teardown.
        """
        return self.product

    # ── Teardown ─────────────────────────────────────────────────────

    async def teardown(self) -> None:
        """
        Stop the native resource (and an owned container).

        A no-op before activation and on repeated calls. Stop failures
        propagate.
        """
        native, container = self._native, self._owned_container
        self._native = None
        self._owned_container = None
        self._product = None
        if self._state is FactoryState.ACTIVE:
            self._state = FactoryState.TORN_DOWN

        if native is None and container is None:
            return

        logger.info(f"Stopping {self._engine.name} {self._kind.value} '{self.label}' ...")
        try:
            await self._guard.stop(native, self._engine.stop)
        finally:
            await self._guard.stop(container, self._engine.stop)
        logger.info(f"Stopped {self._engine.name} {self._kind.value} '{self.label}'")

    async def __aenter__(self) -> "ResourceFactory":
        await self.activate()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.teardown()

    # ── Helpers ──────────────────────────────────────────────────────

    def _require_configuring(self, operation: str) -> None:
        if self._state is not FactoryState.CONFIGURING:
            raise AlreadyActivatedFault(self.label, operation=operation)

    def _require_active(self) -> None:
        if self._state is FactoryState.CONFIGURING:
            raise NotActivatedFault(self.label)
        if self._state is FactoryState.TORN_DOWN:
            raise NotActivatedFault(self.label, reason="has been torn down")

    def __repr__(self) -> str:
        return (
            f"<ResourceFactory engine={self._engine.name} kind={self._kind.value} "
            f"name={self.label!r} state={self._state.value}>"
        )
