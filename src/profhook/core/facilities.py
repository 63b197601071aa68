"""Exclusive ownership of process-wide instrumentation facilities.

The CPU profiler and the execution tracer hook into the interpreter for
the whole process, so only one owner may hold each of them at a time.
Channels acquire a facility from the registry before installing their
hooks and release it once the hooks are removed.

Example
-------
::

    from profhook.core.facilities import TRACER, facilities

    facilities.acquire(TRACER, owner=self)
    try:
        ...
    finally:
        facilities.release(TRACER, owner=self)
"""
from __future__ import annotations

import logging
import threading

from profhook.core.errors import FacilityBusyError

logger = logging.getLogger(__name__)

CPU_PROFILER = "cpu profiler"
TRACER = "execution tracer"


class FacilityRegistry:
    """Thread-safe map of facility name to its current owner."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owners: dict[str, object] = {}

    def acquire(self, facility: str, owner: object) -> None:
        """Mark ``facility`` as held by ``owner``.

        Raises
        ------
        FacilityBusyError
            If any owner, including ``owner`` itself, already holds it.
        """
        with self._lock:
            if facility in self._owners:
                raise FacilityBusyError(facility)
            self._owners[facility] = owner
        logger.debug("Acquired %s for %r", facility, owner)

    def release(self, facility: str, owner: object) -> None:
        """Release ``facility`` if ``owner`` holds it; otherwise do nothing."""
        with self._lock:
            if self._owners.get(facility) is not owner:
                return
            del self._owners[facility]
        logger.debug("Released %s from %r", facility, owner)

    def owner_of(self, facility: str) -> object | None:
        with self._lock:
            return self._owners.get(facility)

    def is_active(self, facility: str) -> bool:
        with self._lock:
            return facility in self._owners

    def clear(self) -> None:
        """Forget every owner. Intended for test isolation."""
        with self._lock:
            self._owners.clear()

    def __repr__(self) -> str:
        with self._lock:
            held = sorted(self._owners)
        return f"FacilityRegistry(active={held})"


# The registry shared by every session in the process.
facilities = FacilityRegistry()
