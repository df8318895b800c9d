"""
CachePort Testing - Test doubles for engines and native resources.

Provides :class:`MockEngine`, :class:`MockNativeManager` and
:class:`MockNativeCache`.
"""

from .engine import MockEngine, MockNativeCache, MockNativeManager

__all__ = [
    "MockEngine",
    "MockNativeCache",
    "MockNativeManager",
]
