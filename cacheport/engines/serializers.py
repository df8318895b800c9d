"""
CachePort Engines — Value marshallers for the remote engine.

Supports JSON (default), pickle (fast, Python-only), and msgpack
(compact, cross-language). The remote engine compares marshalled bytes
for its compare-and-set operations, so marshalling must be
deterministic: JSON output is written with sorted keys.
"""

from __future__ import annotations

import json
import logging
import pickle
from typing import Any, Dict, Protocol, runtime_checkable

import msgpack

from cacheport.bridge.faults import CacheConfigFault

logger = logging.getLogger("cacheport.engines.serializers")


@runtime_checkable
class Marshaller(Protocol):
    """Protocol for cache value marshalling."""

    name: str

    def serialize(self, value: Any) -> bytes:
        ...

    def deserialize(self, data: bytes) -> Any:
        ...


class JsonMarshaller:
    """
    JSON marshaller — safe, human-readable, cross-language.

    Handles Python primitives and containers (dict, list, str, int,
    float, bool, None). Non-serializable types are rejected.
    """

    name = "json"

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"JSON serialization failed: {e}")
            raise

    def deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"JSON deserialization failed: {e}")
            raise


class PickleMarshaller:
    """
    Pickle marshaller — supports arbitrary Python objects.

    WARNING: Only use with trusted data. Pickle can execute
    arbitrary code during deserialization.
    """

    name = "pickle"

    def serialize(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            logger.warning(f"Pickle serialization failed: {e}")
            raise

    def deserialize(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)
        except (pickle.UnpicklingError, EOFError) as e:
            logger.warning(f"Pickle deserialization failed: {e}")
            raise


class MsgpackMarshaller:
    """MessagePack marshaller — compact binary, cross-language."""

    name = "msgpack"

    def serialize(self, value: Any) -> bytes:
        try:
            return msgpack.packb(value, use_bin_type=True)
        except (TypeError, ValueError) as e:
            logger.warning(f"Msgpack serialization failed: {e}")
            raise

    def deserialize(self, data: bytes) -> Any:
        try:
            return msgpack.unpackb(data, raw=False)
        except (msgpack.UnpackException, ValueError) as e:
            logger.warning(f"Msgpack deserialization failed: {e}")
            raise


_MARSHALLERS: Dict[str, type] = {
    "json": JsonMarshaller,
    "pickle": PickleMarshaller,
    "msgpack": MsgpackMarshaller,
}


def get_marshaller(name: str = "json") -> Marshaller:
    """
    Factory for marshaller instances.

    Args:
        name: "json", "pickle", or "msgpack"

    Raises:
        CacheConfigFault: Unknown marshaller name.
    """
    cls = _MARSHALLERS.get(name.strip().lower())
    if cls is None:
        raise CacheConfigFault(
            f"unknown marshaller '{name}' (options: {', '.join(_MARSHALLERS)})", key="marshaller"
        )
    return cls()
