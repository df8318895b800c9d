"""
CachePort Bridge — Configuration and name resolution.

``ConfigurationResolver`` turns up to three mutually exclusive
configuration inputs into one effective configuration:

    explicit configuration  ─┐
    configuration location  ─┼─► validate ─► merge (overrides win) ─► EffectiveConfiguration | None
    overrides               ─┘

``NamedResourceResolver`` picks the name a resource is created under:
an explicit name when one is set, otherwise the name the container
assigned to the factory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .core import (
    ConfigurationSource,
    EffectiveConfiguration,
    PropertyMap,
    flatten_properties,
)
from .faults import (
    CacheBridgeFault,
    ConfigurationLoadFault,
    ConflictingOverrideFault,
    MissingNameFault,
    MutuallyExclusiveSourcesFault,
)
from .overrides import OverrideSet

logger = logging.getLogger("cacheport.bridge.resolver")

Loader = Callable[[Any], PropertyMap]
DefaultsProvider = Callable[[], Optional[PropertyMap]]


def _no_defaults() -> Optional[PropertyMap]:
    return None


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of a configuration resolution.

    Exactly one of ``fault`` and a successful outcome is meaningful;
    ``configuration`` is ``None`` both on failure and when nothing was
    configured, so check ``ok`` first.
    """
    configuration: Optional[EffectiveConfiguration] = None
    fault: Optional[CacheBridgeFault] = None

    @property
    def ok(self) -> bool:
        return self.fault is None

    def unwrap(self) -> Optional[EffectiveConfiguration]:
        """Return the configuration, raising the fault if resolution failed."""
        if self.fault is not None:
            raise self.fault
        return self.configuration


class ConfigurationResolver:
    """
    Resolves the effective configuration of one cache resource.

    Args:
        explicit: Ready-made configuration mapping (may be nested)
        location: Configuration file location
        overrides: Explicitly set overrides
        loader: Loads raw properties from ``location``
        defaults: Base properties used when only overrides are set;
            returning ``None`` means "start from an empty map"

    Validation happens here, never in the setters that collected the
    inputs, and in this order:

    1. ``explicit`` and ``location`` both set → ``MutuallyExclusiveSourcesFault``
    2. ``explicit`` set with non-empty overrides → ``ConflictingOverrideFault``
    """

    __slots__ = ("_explicit", "_location", "_overrides", "_loader", "_defaults")

    def __init__(
        self,
        explicit: Optional[Mapping[str, Any]] = None,
        location: Any = None,
        overrides: Optional[OverrideSet] = None,
        *,
        loader: Optional[Loader] = None,
        defaults: Optional[DefaultsProvider] = None,
    ):
        if loader is None:
            from cacheport.config import load_configuration
            loader = load_configuration

        self._explicit = explicit
        self._location = location
        self._overrides = overrides if overrides is not None else OverrideSet()
        self._loader = loader
        self._defaults = defaults or _no_defaults

    @property
    def source(self) -> ConfigurationSource:
        """The source resolution selects (assuming validation passes)."""
        if self._explicit is not None:
            return ConfigurationSource.EXPLICIT
        if self._location is not None:
            return ConfigurationSource.FILE
        if not self._overrides.is_empty():
            return ConfigurationSource.OVERRIDES
        return ConfigurationSource.DEFAULTS

    def validate(self) -> Optional[CacheBridgeFault]:
        """Check source exclusivity, returning the fault instead of raising it."""
        if self._explicit is not None and self._location is not None:
            return MutuallyExclusiveSourcesFault(location=self._location)
        if self._explicit is not None and not self._overrides.is_empty():
            return ConflictingOverrideFault(override_keys=self._overrides.keys())
        return None

    def try_resolve(self) -> Resolution:
        """Resolve without raising; faults are returned in the ``Resolution``."""
        try:
            return Resolution(configuration=self.resolve())
        except CacheBridgeFault as fault:
            return Resolution(fault=fault)

    def resolve(self) -> Optional[EffectiveConfiguration]:
        """
        Resolve the effective configuration.

        Returns:
            The effective configuration, or ``None`` when nothing was
            configured and the engine's built-in defaults apply.

        Raises:
            MutuallyExclusiveSourcesFault, ConflictingOverrideFault,
            ConfigurationLoadFault
        """
        fault = self.validate()
        if fault is not None:
            raise fault

        overrides = self._overrides
        source = self.source

        if source is ConfigurationSource.EXPLICIT:
            properties = overrides.apply(flatten_properties(self._explicit))
            logger.debug(f"Using user-defined configuration with {len(properties)} properties")
        elif source is ConfigurationSource.FILE:
            try:
                loaded = self._loader(self._location)
            except CacheBridgeFault:
                raise
            except (OSError, ValueError) as e:
                raise ConfigurationLoadFault(self._location, str(e)) from e
            properties = overrides.apply(loaded)
            logger.debug(
                f"Loaded configuration from [{self._location}] "
                f"({len(loaded)} properties, {len(overrides)} overrides)"
            )
        elif source is ConfigurationSource.OVERRIDES:
            properties = overrides.apply(self._defaults() or {})
            logger.debug(f"Using explicitly set configuration settings {dict(overrides.snapshot())}")
        else:
            logger.debug("No configuration set. Engine will use its default configuration.")
            return None

        return EffectiveConfiguration(properties, source)


class NamedResourceResolver:
    """Resolves the effective name of a resource to create."""

    __slots__ = ("_logger",)

    def __init__(self, log: Optional[logging.Logger] = None):
        self._logger = log or logger

    def resolve(self, explicit_name: Optional[str], fallback_name: Optional[str]) -> str:
        """
        Return ``explicit_name`` if it is non-blank, else ``fallback_name``.

        Raises:
            MissingNameFault: If both are blank or missing.
        """
        if explicit_name and explicit_name.strip():
            self._logger.debug(f"Using custom name [{explicit_name}]")
            return explicit_name
        if fallback_name and fallback_name.strip():
            self._logger.debug(f"Using fallback name [{fallback_name}]")
            return fallback_name
        raise MissingNameFault()
