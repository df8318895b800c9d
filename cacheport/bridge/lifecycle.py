"""
CachePort Bridge — Lifecycle guard for native resources.

The guard enforces that a native cache or cache manager is RUNNING
before it is wrapped, and stops it on teardown. It only accepts or
rejects; it does not care why a resource is not running.

Observed state machine::

    UNINITIALIZED → RUNNING → STOPPING → TERMINATED
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Optional

from .core import ComponentStatus
from .faults import InvalidStateFault

logger = logging.getLogger("cacheport.bridge.lifecycle")

StatusGetter = Callable[[Any], ComponentStatus]
StopFunction = Callable[[Any], Any]


class LifecycleGuard:
    """Validates run state on adoption and stops resources on teardown."""

    __slots__ = ("_logger",)

    def __init__(self, log: Optional[logging.Logger] = None):
        self._logger = log or logger

    def is_running(self, handle: Any, get_status: StatusGetter) -> bool:
        if handle is None:
            return False
        return get_status(handle) == ComponentStatus.RUNNING

    def require_running(
        self,
        handle: Any,
        get_status: StatusGetter,
        *,
        what: str = "native resource",
    ) -> None:
        """
        Raise unless ``handle`` is RUNNING.

        Raises:
            InvalidStateFault: If the handle is missing or in any other state.
        """
        if handle is None:
            raise InvalidStateFault(what, "missing")

        status = get_status(handle)
        if status != ComponentStatus.RUNNING:
            raise InvalidStateFault(f"{what} [{handle!r}]", status)

    async def stop(self, handle: Any, stop_fn: StopFunction) -> None:
        """
        Stop ``handle`` if one exists.

        ``stop_fn`` may be a plain function or a coroutine function.
        Failures are logged and re-raised.
        """
        # Probably being paranoid here ...
        if handle is None:
            return

        try:
            result = stop_fn(handle)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._logger.warning(f"Failed to stop [{handle!r}]: {e}")
            raise
