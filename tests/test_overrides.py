"""
Tests for override sets and their typed setters.
"""

import pytest

from cacheport.bridge.faults import CacheConfigFault
from cacheport.bridge.overrides import EmbeddedOverrides, OverrideSet, RemoteOverrides


class TestOverrideSet:

    def test_empty(self):
        overrides = OverrideSet()
        assert overrides.is_empty()
        assert len(overrides) == 0
        assert overrides.keys() == ()

    def test_values_are_recorded_as_strings(self):
        overrides = OverrideSet()
        overrides.set("eviction.max_entries", 500)
        overrides.set("expose_statistics", True)
        overrides.set("invocation_batching_enabled", False)
        assert dict(overrides.snapshot()) == {
            "eviction.max_entries": "500",
            "expose_statistics": "true",
            "invocation_batching_enabled": "false",
        }

    def test_last_set_wins(self):
        overrides = OverrideSet()
        overrides.set("cache_mode", "LOCAL")
        overrides.set("cache_mode", "DIST_SYNC")
        assert overrides.snapshot()["cache_mode"] == "DIST_SYNC"
        assert len(overrides) == 1

    def test_apply_overrides_win_and_base_untouched(self):
        base = {"cache_mode": "LOCAL", "concurrency_level": "32"}
        overrides = OverrideSet({"cache_mode": "REPL_ASYNC", "expose_statistics": True})

        merged = overrides.apply(base)

        assert merged == {
            "cache_mode": "REPL_ASYNC",
            "concurrency_level": "32",
            "expose_statistics": "true",
        }
        assert base == {"cache_mode": "LOCAL", "concurrency_level": "32"}
        assert merged is not base

    def test_mapping_value_rejected(self):
        with pytest.raises(CacheConfigFault) as exc_info:
            OverrideSet().set("eviction", {"max_entries": 5})
        assert exc_info.value.metadata["key"] == "eviction"

    def test_apply_to_none(self):
        assert OverrideSet({"a": 1}).apply(None) == {"a": "1"}

    def test_snapshot_is_read_only(self):
        overrides = OverrideSet({"a": 1})
        snapshot = overrides.snapshot()
        with pytest.raises(TypeError):
            snapshot["a"] = "2"
        overrides.set("b", 2)
        assert "b" not in snapshot

    def test_container_protocol(self):
        overrides = OverrideSet({"a": 1, "b": 2})
        assert "a" in overrides
        assert "c" not in overrides
        assert list(overrides) == ["a", "b"]


class TestEmbeddedOverrides:

    def test_typed_setters_use_property_keys(self):
        overrides = EmbeddedOverrides()
        overrides.set_cache_mode("repl_async")
        overrides.set_invocation_batching_enabled(True)
        overrides.set_eviction_strategy("lru")
        overrides.set_eviction_max_entries(100)
        overrides.set_expiration_lifespan(60000)
        overrides.set_expiration_max_idle(30000)

        assert dict(overrides.snapshot()) == {
            "cache_mode": "REPL_ASYNC",
            "invocation_batching_enabled": "true",
            "eviction.strategy": "LRU",
            "eviction.max_entries": "100",
            "expiration.lifespan": "60000",
            "expiration.max_idle": "30000",
        }


class TestRemoteOverrides:

    def test_server_list(self):
        overrides = RemoteOverrides()
        overrides.set_server_list([("cache-1", 6379), ("cache-2", 6380)])
        assert overrides.snapshot()["server_list"] == "cache-1:6379;cache-2:6380"

    def test_empty_server_list_rejected(self):
        with pytest.raises(ValueError):
            RemoteOverrides().set_server_list([])

    def test_client_settings(self):
        overrides = RemoteOverrides()
        overrides.set_marshaller("msgpack")
        overrides.set_ping_on_startup(False)
        overrides.set_socket_timeout(2.5)
        overrides.set_force_return_values(False)
        assert dict(overrides.snapshot()) == {
            "marshaller": "msgpack",
            "ping_on_startup": "false",
            "socket_timeout": "2.5",
            "force_return_values": "false",
        }
