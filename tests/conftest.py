"""
Shared test fixtures for the CachePort test suite.
"""

import pytest

from cacheport.engines.embedded import EmbeddedEngine
from cacheport.testing import MockEngine


@pytest.fixture
def mock_engine():
    """Recording engine whose managers and caches start RUNNING."""
    return MockEngine()


@pytest.fixture
def embedded_engine():
    return EmbeddedEngine()


@pytest.fixture
def async_cache_file(tmp_path):
    """YAML configuration of an asynchronously replicated cache."""
    path = tmp_path / "async-cache.yaml"
    path.write_text(
        "cache_mode: REPL_ASYNC\n"
        "invocation_batching_enabled: true\n"
        "eviction:\n"
        "  strategy: LRU\n"
        "  max_entries: 100\n",
        encoding="utf-8",
    )
    return path
