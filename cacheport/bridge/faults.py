"""
CachePort Bridge — Fault domain integration.

Typed faults raised (or returned) while resolving configuration,
resolving resource names, creating, adopting and tearing down
cache resources.
"""

from __future__ import annotations

from typing import Any, Optional

from cacheport.faults.core import DOMAIN_DEFAULTS, Fault, FaultDomain, Severity


# Register cache fault domain
FaultDomain.CACHE = FaultDomain("cache", "Cache bridge faults")
DOMAIN_DEFAULTS[FaultDomain.CACHE] = {"severity": Severity.ERROR, "retryable": False}


class CacheBridgeFault(Fault):
    """Base class for all cache bridge faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CACHE,
            severity=severity,
            retryable=retryable,
            metadata=metadata,
        )


class MutuallyExclusiveSourcesFault(CacheBridgeFault):
    """Both an explicit configuration and a configuration location were set."""

    def __init__(self, location: Any = None, **kwargs):
        super().__init__(
            code="CONFIG_SOURCES_EXCLUSIVE",
            message=(
                "You may only use either an explicit configuration or a "
                "configuration location to configure a cache resource, not both"
            ),
            severity=Severity.FATAL,
            metadata={"location": str(location) if location is not None else None},
        )


class ConflictingOverrideFault(CacheBridgeFault):
    """An explicit configuration was combined with scalar overrides."""

    def __init__(self, override_keys: tuple[str, ...] = (), **kwargs):
        super().__init__(
            code="CONFIG_OVERRIDE_CONFLICT",
            message=(
                "You may only use either an explicit configuration or override "
                f"setters to configure a cache resource, not both (overrides: {', '.join(override_keys)})"
            ),
            severity=Severity.FATAL,
            metadata={"override_keys": list(override_keys)},
        )


class ConfigurationLoadFault(CacheBridgeFault):
    """Configuration could not be loaded from its location."""

    def __init__(self, location: Any, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_LOAD_FAILED",
            message=f"Failed to load configuration from '{location}': {reason}",
            severity=Severity.FATAL,
            metadata={"location": str(location), "reason": reason},
        )


class CacheConfigFault(CacheBridgeFault):
    """A configuration value is not understood by the engine."""

    def __init__(self, reason: str, key: Optional[str] = None, **kwargs):
        super().__init__(
            code="CACHE_CONFIG_INVALID",
            message=f"Invalid cache configuration: {reason}",
            severity=Severity.FATAL,
            metadata={"reason": reason, "key": key},
        )


class MissingNameFault(CacheBridgeFault):
    """Neither an explicit nor a fallback name was provided."""

    def __init__(self, **kwargs):
        super().__init__(
            code="RESOURCE_NAME_MISSING",
            message="Neither an explicit name nor a fallback name has been set",
            severity=Severity.FATAL,
        )


class MissingContainerFault(CacheBridgeFault):
    """A named cache was requested without a cache container to pull it from."""

    def __init__(self, engine: str = "unknown", **kwargs):
        super().__init__(
            code="CONTAINER_MISSING",
            message=f"No {engine} cache container has been set",
            severity=Severity.FATAL,
            metadata={"engine": engine},
        )


class InvalidStateFault(CacheBridgeFault):
    """A native resource was required to be RUNNING but was not."""

    def __init__(self, resource: str, status: Any, **kwargs):
        status_value = getattr(status, "value", status)
        super().__init__(
            code="RESOURCE_NOT_RUNNING",
            message=(
                f"The supplied {resource} is required to be in state RUNNING. "
                f"Actual state: {status_value}"
            ),
            metadata={"resource": resource, "status": status_value},
        )


class UnsupportedOperationFault(CacheBridgeFault):
    """The current engine variant structurally cannot perform an operation."""

    def __init__(self, operation: str, engine: str, reason: str = "", **kwargs):
        suffix = f": {reason}" if reason else ""
        super().__init__(
            code="OPERATION_UNSUPPORTED",
            message=f"Operation '{operation}' is not supported by the {engine} engine{suffix}",
            metadata={"operation": operation, "engine": engine},
        )


class NotActivatedFault(CacheBridgeFault):
    """The product of a factory was requested before activation."""

    def __init__(self, factory: str, reason: str = "has not been activated", **kwargs):
        super().__init__(
            code="FACTORY_NOT_ACTIVATED",
            message=f"Resource factory '{factory}' {reason}",
            metadata={"factory": factory},
        )


class AlreadyActivatedFault(CacheBridgeFault):
    """A factory was activated, or reconfigured, after activation."""

    def __init__(self, factory: str, operation: str = "activate", **kwargs):
        super().__init__(
            code="FACTORY_ALREADY_ACTIVATED",
            message=f"Cannot {operation}: resource factory '{factory}' has already been activated",
            metadata={"factory": factory, "operation": operation},
        )
