"""Profiling session orchestrator.

A ``ProfilingSession`` enables the channels named by a ``ProfileConfig``
before a unit of work runs and tears them down afterwards.

Start order is debug endpoint, CPU profiler, execution tracer, heap
tracking. The first failure aborts ``start`` and channels already
enabled keep running. ``stop`` attempts every step and then raises the
first error it met.

The heap snapshot taken by ``stop`` does not depend on ``start``: it is
written whenever ``mem_profile_path`` is set, even if ``start`` never
ran or failed. The debug endpoint, once launched, lives for the rest of
the process.

Example
-------
::

    from profhook import ProfileConfig, ProfilingSession

    session = ProfilingSession(ProfileConfig(cpu_profile_path="cpu.out"))
    session.start()
    run_command()
    session.stop()
"""
from __future__ import annotations

import logging
from typing import IO

from profhook.channels.cpu import CpuProfiler
from profhook.channels.debugvars import DebugEndpoint
from profhook.channels.heap import HeapTracker, write_heap_snapshot
from profhook.channels.trace import ExecutionTracer
from profhook.core.config import ProfileConfig
from profhook.core.errors import ChannelOpenError, FacilityBusyError, ProfilingError
from profhook.core.facilities import CPU_PROFILER, TRACER, FacilityRegistry, facilities

logger = logging.getLogger(__name__)


def _open_output(channel: str, path: str, mode: str) -> IO:
    try:
        if "b" in mode:
            return open(path, mode)
        return open(path, mode, encoding="utf-8")
    except OSError as exc:
        raise ChannelOpenError(channel, path, exc) from exc


class ProfilingSession:
    """Own the instrumentation channels of one command invocation.

    Parameters
    ----------
    config:
        Which channels to enable and where their output goes.
    registry:
        Facility registry guarding the process-wide profiler and tracer.
        Defaults to the shared process registry.
    """

    def __init__(self, config: ProfileConfig, registry: FacilityRegistry | None = None) -> None:
        self.config = config
        self._registry = registry if registry is not None else facilities
        self._endpoint: DebugEndpoint | None = None
        self._cpu: CpuProfiler | None = None
        self._tracer: ExecutionTracer | None = None
        self._heap: HeapTracker | None = None

    @property
    def endpoint(self) -> DebugEndpoint | None:
        """The debug endpoint launched by ``start``, if any."""
        return self._endpoint

    def active_channels(self) -> list[str]:
        """Return the names of channels currently enabled by this session."""
        active = []
        if self._endpoint is not None:
            active.append("debug-endpoint")
        if self._cpu is not None:
            active.append("cpu")
        if self._tracer is not None:
            active.append("trace")
        if self._heap is not None:
            active.append("heap")
        return active

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Enable every configured channel, stopping at the first failure.

        Raises
        ------
        ChannelOpenError
            If the CPU or trace output file cannot be created.
        FacilityBusyError
            If the CPU profiler or tracer is already held in this process.
        """
        config = self.config
        logger.debug("Starting profiling session: %r", config)

        if config.debug_endpoint_enabled and self._endpoint is None:
            self._endpoint = DebugEndpoint(config.expvar_bind)
            self._endpoint.start()

        if config.cpu_enabled and self._cpu is None:
            # Must precede the open: the current owner may be writing the same path.
            if self._registry.is_active(CPU_PROFILER):
                raise FacilityBusyError(CPU_PROFILER)
            output = _open_output("cpu", config.cpu_profile_path, "wb")
            cpu = CpuProfiler(output, registry=self._registry)
            try:
                cpu.start()
            except Exception:
                output.close()
                raise
            self._cpu = cpu

        if config.trace_enabled and self._tracer is None:
            if self._registry.is_active(TRACER):
                raise FacilityBusyError(TRACER)
            output = _open_output("trace", config.trace_profile_path, "w")
            tracer = ExecutionTracer(output, registry=self._registry)
            try:
                tracer.start()
            except Exception:
                output.close()
                raise
            self._tracer = tracer

        if config.heap_enabled and self._heap is None:
            heap = HeapTracker()
            heap.start()
            self._heap = heap

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Flush and close all file-backed channels.

        Every step runs even if an earlier one failed.

        Raises
        ------
        ProfilingError or OSError
            The first failure met; later ones are logged.
        """
        errors: list[Exception] = []

        if self._cpu is not None:
            cpu, self._cpu = self._cpu, None
            try:
                cpu.stop()
            except (ProfilingError, OSError) as exc:
                errors.append(exc)

        if self.config.heap_enabled:
            try:
                write_heap_snapshot(self.config.mem_profile_path)
            except ProfilingError as exc:
                errors.append(exc)
        if self._heap is not None:
            heap, self._heap = self._heap, None
            heap.stop()

        if self._tracer is not None:
            tracer, self._tracer = self._tracer, None
            try:
                tracer.stop()
            except (ProfilingError, OSError) as exc:
                errors.append(exc)

        if not errors:
            logger.debug("Profiling session stopped")
            return
        for extra in errors[1:]:
            logger.error("Additional profiling teardown failure: %s", extra)
        raise errors[0]

    def __repr__(self) -> str:
        return f"ProfilingSession(active={self.active_channels()})"
