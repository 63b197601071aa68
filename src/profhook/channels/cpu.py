"""CPU profiling channel backed by ``cProfile``.

The output is the marshal format written by ``cProfile.Profile.dump_stats``
and can be loaded with ``pstats.Stats(path)`` or opened in snakeviz.
"""
from __future__ import annotations

import cProfile
import logging
import marshal
import sys
from typing import BinaryIO

from profhook.core.errors import FacilityBusyError
from profhook.core.facilities import CPU_PROFILER, FacilityRegistry, facilities

logger = logging.getLogger(__name__)


class CpuProfiler:
    """Profile the interpreter into an open binary file handle.

    The handle is owned by the profiler from construction until ``stop``
    returns; ``stop`` always closes it.

    Parameters
    ----------
    output:
        Binary file handle the stats are written into.
    registry:
        Facility registry used to claim the process-wide profiler.
    """

    def __init__(self, output: BinaryIO, registry: FacilityRegistry | None = None) -> None:
        self._output = output
        self._registry = registry if registry is not None else facilities
        self._profile = cProfile.Profile()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Claim the CPU profiler facility and enable profiling.

        Raises
        ------
        FacilityBusyError
            If another owner already profiles this process, including a
            profiler installed outside profhook.
        """
        self._registry.acquire(CPU_PROFILER, self)
        if sys.getprofile() is not None:
            self._registry.release(CPU_PROFILER, self)
            raise FacilityBusyError(CPU_PROFILER)
        try:
            self._profile.enable()
        except ValueError as exc:
            # Python 3.12+ refuses a second profiling tool.
            self._registry.release(CPU_PROFILER, self)
            raise FacilityBusyError(CPU_PROFILER) from exc
        except Exception:
            self._registry.release(CPU_PROFILER, self)
            raise
        self._running = True
        logger.debug("CPU profiling started -> %s", getattr(self._output, "name", "<stream>"))

    def stop(self) -> None:
        """Disable profiling, write the stats and close the output."""
        if not self._running:
            return
        self._running = False
        try:
            self._profile.disable()
            self._profile.create_stats()
            marshal.dump(self._profile.stats, self._output)
        finally:
            self._registry.release(CPU_PROFILER, self)
            self._output.close()
        logger.debug("CPU profiling stopped")
