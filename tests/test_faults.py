"""
Tests for the fault base class and the cache bridge faults.
"""

import pytest

from cacheport.bridge.core import ComponentStatus
from cacheport.bridge.faults import (
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
from cacheport.faults import DOMAIN_DEFAULTS, Fault, FaultDomain, Severity


class TestFault:

    def test_requires_code_message_and_domain(self):
        with pytest.raises(TypeError):
            Fault(code="X", message="no domain")

    def test_registered_domain_defaults(self, monkeypatch):
        io = FaultDomain("io", "I/O operations")
        monkeypatch.setitem(DOMAIN_DEFAULTS, io, {"severity": Severity.WARN, "retryable": True})
        fault = Fault(code="X", message="m", domain=io)
        assert fault.severity == Severity.WARN
        assert fault.retryable is True

    def test_unknown_domain_defaults_to_error(self):
        fault = Fault(code="X", message="m", domain=FaultDomain("custom"))
        assert fault.severity == Severity.ERROR
        assert fault.retryable is False

    def test_str_and_repr(self):
        fault = Fault(code="X", message="broken", domain=FaultDomain("config"))
        assert str(fault) == "[X] broken"
        assert "code='X'" in repr(fault)
        assert "domain=config" in repr(fault)

    def test_to_dict_hides_private_metadata(self):
        fault = Fault(
            code="X",
            message="m",
            domain=FaultDomain.CACHE,
            severity=Severity.FATAL,
            metadata={"visible": 1, "_secret": 2},
        )
        data = fault.to_dict()
        assert data["code"] == "X"
        assert data["domain"] == "cache"
        assert data["severity"] == "fatal"
        assert data["metadata"] == {"visible": 1}

    def test_domain_equality(self):
        assert FaultDomain("cache") == FaultDomain.CACHE
        assert FaultDomain.CACHE == "cache"
        assert hash(FaultDomain("cache")) == hash(FaultDomain.CACHE)


class TestCacheBridgeFaults:

    @pytest.mark.parametrize("fault, code", [
        (MutuallyExclusiveSourcesFault(location="a.yaml"), "CONFIG_SOURCES_EXCLUSIVE"),
        (ConflictingOverrideFault(override_keys=("cache_mode",)), "CONFIG_OVERRIDE_CONFLICT"),
        (ConfigurationLoadFault("a.yaml", "missing"), "CONFIG_LOAD_FAILED"),
        (CacheConfigFault("bad", key="cache_mode"), "CACHE_CONFIG_INVALID"),
        (MissingNameFault(), "RESOURCE_NAME_MISSING"),
        (MissingContainerFault("embedded"), "CONTAINER_MISSING"),
        (InvalidStateFault("cache", ComponentStatus.TERMINATED), "RESOURCE_NOT_RUNNING"),
        (UnsupportedOperationFault("get_cache_names", "remote"), "OPERATION_UNSUPPORTED"),
        (NotActivatedFault("users"), "FACTORY_NOT_ACTIVATED"),
        (AlreadyActivatedFault("users"), "FACTORY_ALREADY_ACTIVATED"),
    ])
    def test_codes_and_domain(self, fault, code):
        assert isinstance(fault, CacheBridgeFault)
        assert isinstance(fault, Exception)
        assert fault.code == code
        assert fault.domain == FaultDomain.CACHE
        assert fault.retryable is False

    def test_configuration_faults_are_fatal(self):
        assert MutuallyExclusiveSourcesFault().severity == Severity.FATAL
        assert ConflictingOverrideFault().severity == Severity.FATAL
        assert MissingNameFault().severity == Severity.FATAL

    def test_invalid_state_reports_status_value(self):
        fault = InvalidStateFault("local cache 'users'", ComponentStatus.STOPPING)
        assert fault.metadata["status"] == "stopping"
        assert "RUNNING" in fault.message
        assert "stopping" in fault.message

    def test_conflicting_override_lists_keys(self):
        fault = ConflictingOverrideFault(override_keys=("cache_mode", "eviction.max_entries"))
        assert fault.metadata["override_keys"] == ["cache_mode", "eviction.max_entries"]
        assert "eviction.max_entries" in fault.message

    def test_unsupported_operation_reason(self):
        fault = UnsupportedOperationFault("cache_names", "remote", reason="not exposed")
        assert fault.message.endswith(": not exposed")
        assert fault.metadata == {"operation": "cache_names", "engine": "remote"}

    def test_can_be_raised_and_caught_as_bridge_fault(self):
        with pytest.raises(CacheBridgeFault) as exc_info:
            raise NotActivatedFault("users", reason="has been torn down")
        assert "torn down" in str(exc_info.value)

    def test_cache_domain_defaults_registered(self):
        assert DOMAIN_DEFAULTS[FaultDomain.CACHE] == {"severity": Severity.ERROR, "retryable": False}
        fault = CacheBridgeFault("X", "m")
        assert fault.severity == Severity.ERROR
        assert fault.retryable is False
