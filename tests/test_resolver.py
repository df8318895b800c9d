"""
Tests for configuration and name resolution.
"""

import logging
from unittest.mock import MagicMock

import pytest

from cacheport.bridge.core import ConfigurationSource, EffectiveConfiguration
from cacheport.bridge.faults import (
    CacheConfigFault,
    ConfigurationLoadFault,
    ConflictingOverrideFault,
    MissingNameFault,
    MutuallyExclusiveSourcesFault,
)
from cacheport.bridge.overrides import EmbeddedOverrides, OverrideSet
from cacheport.bridge.resolver import ConfigurationResolver, NamedResourceResolver, Resolution
from cacheport.engines.embedded import CacheMode, CacheSettings


def _loader(properties):
    return MagicMock(return_value=dict(properties))


# ============================================================================
# Source exclusivity
# ============================================================================


class TestSourceValidation:

    def test_explicit_and_location_are_exclusive(self):
        loader = _loader({})
        resolver = ConfigurationResolver({"cache_mode": "LOCAL"}, "cache.yaml", loader=loader)
        with pytest.raises(MutuallyExclusiveSourcesFault):
            resolver.resolve()
        loader.assert_not_called()

    def test_explicit_and_overrides_conflict(self):
        resolver = ConfigurationResolver(
            {"cache_mode": "LOCAL"}, overrides=OverrideSet({"cache_mode": "DIST_SYNC"})
        )
        with pytest.raises(ConflictingOverrideFault) as exc_info:
            resolver.resolve()
        assert exc_info.value.metadata["override_keys"] == ["cache_mode"]

    def test_exclusive_sources_checked_first(self):
        resolver = ConfigurationResolver(
            {"cache_mode": "LOCAL"},
            "cache.yaml",
            OverrideSet({"cache_mode": "DIST_SYNC"}),
            loader=_loader({}),
        )
        with pytest.raises(MutuallyExclusiveSourcesFault):
            resolver.resolve()

    def test_validate_returns_fault(self):
        resolver = ConfigurationResolver({"a": 1}, "cache.yaml", loader=_loader({}))
        fault = resolver.validate()
        assert isinstance(fault, MutuallyExclusiveSourcesFault)

    def test_validate_returns_none_when_valid(self):
        assert ConfigurationResolver(location="cache.yaml", loader=_loader({})).validate() is None

    def test_try_resolve_returns_fault(self):
        resolution = ConfigurationResolver({"a": 1}, overrides=OverrideSet({"b": 2})).try_resolve()
        assert not resolution.ok
        assert isinstance(resolution.fault, ConflictingOverrideFault)
        with pytest.raises(ConflictingOverrideFault):
            resolution.unwrap()

    def test_try_resolve_success(self):
        resolution = ConfigurationResolver({"a": 1}).try_resolve()
        assert resolution.ok
        assert resolution.unwrap() == {"a": 1}

    def test_empty_resolution_is_ok(self):
        assert Resolution().ok
        assert Resolution().unwrap() is None


# ============================================================================
# Resolution
# ============================================================================


class TestResolution:

    def test_nothing_configured(self):
        resolver = ConfigurationResolver()
        assert resolver.source is ConfigurationSource.DEFAULTS
        assert resolver.resolve() is None

    def test_explicit_configuration_is_flattened(self):
        resolver = ConfigurationResolver({"cache_mode": "LOCAL", "eviction": {"max_entries": 10}})
        configuration = resolver.resolve()
        assert configuration.source is ConfigurationSource.EXPLICIT
        assert configuration == {"cache_mode": "LOCAL", "eviction.max_entries": 10}

    def test_explicit_configuration_is_copied(self):
        explicit = {"cache_mode": "LOCAL"}
        configuration = ConfigurationResolver(explicit).resolve()
        explicit["cache_mode"] = "DIST_SYNC"
        assert configuration["cache_mode"] == "LOCAL"

    def test_location_loaded_once_and_overrides_win(self):
        loader = _loader({"cache_mode": "LOCAL", "concurrency_level": "16"})
        overrides = OverrideSet({"cache_mode": "DIST_ASYNC"})

        configuration = ConfigurationResolver(location="cache.yaml", overrides=overrides, loader=loader).resolve()

        loader.assert_called_once_with("cache.yaml")
        assert configuration.source is ConfigurationSource.FILE
        assert configuration == {"cache_mode": "DIST_ASYNC", "concurrency_level": "16"}

    def test_overrides_apply_onto_defaults(self):
        resolver = ConfigurationResolver(
            overrides=OverrideSet({"cache_mode": "REPL_SYNC"}),
            defaults=lambda: {"cache_mode": "LOCAL", "concurrency_level": "32"},
        )
        configuration = resolver.resolve()
        assert configuration.source is ConfigurationSource.OVERRIDES
        assert configuration == {"cache_mode": "REPL_SYNC", "concurrency_level": "32"}

    def test_overrides_without_defaults(self):
        configuration = ConfigurationResolver(overrides=OverrideSet({"database": 3})).resolve()
        assert configuration == {"database": "3"}

    def test_loader_os_error_becomes_load_fault(self):
        loader = MagicMock(side_effect=FileNotFoundError("no such file"))
        with pytest.raises(ConfigurationLoadFault) as exc_info:
            ConfigurationResolver(location="missing.yaml", loader=loader).resolve()
        assert exc_info.value.metadata["location"] == "missing.yaml"

    def test_loader_faults_propagate_unchanged(self):
        fault = ConfigurationLoadFault("x.yaml", "parse error")
        loader = MagicMock(side_effect=fault)
        with pytest.raises(ConfigurationLoadFault) as exc_info:
            ConfigurationResolver(location="x.yaml", loader=loader).resolve()
        assert exc_info.value is fault

    def test_missing_file_with_default_loader(self, tmp_path):
        with pytest.raises(ConfigurationLoadFault):
            ConfigurationResolver(location=tmp_path / "absent.yaml").resolve()

    def test_async_cache_file_with_batching_override(self, async_cache_file):
        overrides = EmbeddedOverrides()
        overrides.set_invocation_batching_enabled(True)

        configuration = ConfigurationResolver(location=async_cache_file, overrides=overrides).resolve()

        assert configuration["cache_mode"] == "REPL_ASYNC"
        assert configuration["invocation_batching_enabled"] == "true"
        settings = CacheSettings.from_properties(configuration)
        assert settings.cache_mode is CacheMode.REPL_ASYNC
        assert settings.invocation_batching_enabled is True
        assert settings.eviction_max_entries == 100

    def test_async_cache_file_without_overrides(self, async_cache_file):
        configuration = ConfigurationResolver(location=async_cache_file).resolve()
        assert configuration.source is ConfigurationSource.FILE
        assert configuration["cache_mode"] == "REPL_ASYNC"

    def test_async_cache_file_with_batching_disabled(self, async_cache_file):
        overrides = EmbeddedOverrides()
        overrides.set_invocation_batching_enabled(False)

        configuration = ConfigurationResolver(location=async_cache_file, overrides=overrides).resolve()

        settings = CacheSettings.from_properties(configuration)
        assert settings.cache_mode is CacheMode.REPL_ASYNC
        assert settings.invocation_batching_enabled is False


class TestEffectiveConfiguration:

    def test_read_only(self):
        configuration = EffectiveConfiguration({"a": "1"}, ConfigurationSource.FILE)
        with pytest.raises(TypeError):
            configuration["a"] = "2"

    def test_typed_accessors(self):
        configuration = EffectiveConfiguration(
            {"flag": "yes", "count": "12", "ratio": "0.5", "name": 7},
            ConfigurationSource.OVERRIDES,
        )
        assert configuration.get_bool("flag") is True
        assert configuration.get_int("count") == 12
        assert configuration.get_float("ratio") == 0.5
        assert configuration.get_str("name") == "7"
        assert configuration.get_int("absent", 4) == 4

    def test_bad_values_raise_config_fault(self):
        configuration = EffectiveConfiguration({"flag": "maybe", "count": "many"}, ConfigurationSource.FILE)
        with pytest.raises(CacheConfigFault):
            configuration.get_bool("flag")
        with pytest.raises(CacheConfigFault) as exc_info:
            configuration.get_int("count")
        assert exc_info.value.metadata["key"] == "count"

    def test_to_dict_is_independent(self):
        configuration = EffectiveConfiguration({"a": "1"}, ConfigurationSource.FILE)
        data = configuration.to_dict()
        data["a"] = "2"
        assert configuration["a"] == "1"


# ============================================================================
# Names
# ============================================================================


class TestNamedResourceResolver:

    def test_custom_name_wins(self):
        assert NamedResourceResolver().resolve("custom", "fallback") == "custom"

    def test_fallback_used(self):
        assert NamedResourceResolver().resolve(None, "fallback") == "fallback"

    def test_blank_custom_name_falls_back(self):
        assert NamedResourceResolver().resolve("   ", "fallback") == "fallback"

    @pytest.mark.parametrize("explicit, fallback", [(None, None), ("", ""), (" ", None)])
    def test_missing_name(self, explicit, fallback):
        with pytest.raises(MissingNameFault):
            NamedResourceResolver().resolve(explicit, fallback)

    def test_logs_chosen_name(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="cacheport.bridge.resolver"):
            NamedResourceResolver().resolve(None, "users")
        assert "Using fallback name [users]" in caplog.text
