"""Execution trace channel.

Records every Python function call and return as Chrome trace events
(``ph`` ``"B"``/``"E"``) using ``sys.settrace``. The file is a JSON
array that Perfetto and ``chrome://tracing`` open directly, and that
``json.load`` parses once the tracer has been stopped.

Threads started while tracing is active are traced as well through
``threading.settrace``.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import threading
import time
from types import CodeType, FrameType
from typing import Any, TextIO

from profhook.core.facilities import TRACER, FacilityRegistry, facilities

logger = logging.getLogger(__name__)


def _qualname(code: CodeType) -> str:
    return getattr(code, "co_qualname", code.co_name)


class ExecutionTracer:
    """Stream call/return events of the process into a text file handle.

    Parameters
    ----------
    output:
        Text file handle the JSON array is written into. ``stop`` closes it.
    registry:
        Facility registry used to claim the process-wide tracer.
    """

    def __init__(self, output: TextIO, registry: FacilityRegistry | None = None) -> None:
        self._output = output
        self._registry = registry if registry is not None else facilities
        self._lock = threading.Lock()
        self._running = False
        self._origin_ns = 0
        self._pid = os.getpid()
        self._seen_threads: set[int] = set()
        self._event_count = 0
        self._write_error: OSError | None = None
        self._previous_trace: Any = None
        self._previous_thread_trace: Any = None
        self._open_frames: dict[int, int] = {}

    @property
    def running(self) -> bool:
        return self._running

    @property
    def event_count(self) -> int:
        return self._event_count

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Claim the tracer facility and install the trace hooks.

        Raises
        ------
        FacilityBusyError
            If another tracer is already active in this process.
        """
        self._registry.acquire(TRACER, self)
        try:
            self._origin_ns = time.perf_counter_ns()
            self._output.write("[\n")
            self._output.write(
                json.dumps(
                    {
                        "name": "process_name",
                        "ph": "M",
                        "pid": self._pid,
                        "args": {"name": " ".join(sys.argv) or "python"},
                    }
                )
            )
        except Exception:
            self._registry.release(TRACER, self)
            raise
        self._running = True
        self._previous_trace = sys.gettrace()
        self._previous_thread_trace = threading.gettrace()
        threading.settrace(self._trace)
        sys.settrace(self._trace)
        logger.debug("Execution tracing started -> %s", getattr(self._output, "name", "<stream>"))

    def stop(self) -> None:
        """Remove the hooks, terminate the JSON array and close the output.

        Frames still running at this point, such as the caller of ``stop``,
        get a closing ``"E"`` event so every ``"B"`` is matched.

        Raises
        ------
        OSError
            If writing an event or the closing bracket failed.
        """
        if not self._running:
            return
        sys.settrace(self._previous_trace)
        threading.settrace(self._previous_thread_trace)
        with self._lock:
            self._running = False
            self._close_open_frames()
        try:
            if self._write_error is None:
                self._output.write("\n]\n")
        finally:
            self._registry.release(TRACER, self)
            self._output.close()
        logger.debug("Execution tracing stopped after %d event(s)", self._event_count)
        if self._write_error is not None:
            raise self._write_error

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _trace(self, frame: FrameType, event: str, arg: Any) -> Any:
        if not self._running:
            return None
        if event == "call":
            frame.f_trace_lines = False
            code = frame.f_code
            self._emit(
                {
                    "name": _qualname(code),
                    "cat": "python",
                    "ph": "B",
                    "args": {"file": code.co_filename, "line": code.co_firstlineno},
                }
            )
        elif event == "return":
            self._emit({"ph": "E"})
        return self._trace

    def _emit(self, event: dict[str, Any]) -> None:
        tid = threading.get_ident()
        event["ts"] = (time.perf_counter_ns() - self._origin_ns) / 1000.0
        event["pid"] = self._pid
        event["tid"] = tid
        with self._lock:
            if not self._running or self._write_error is not None:
                return
            try:
                if tid not in self._seen_threads:
                    self._seen_threads.add(tid)
                    self._write(
                        {
                            "name": "thread_name",
                            "ph": "M",
                            "pid": self._pid,
                            "tid": tid,
                            "args": {"name": threading.current_thread().name},
                        }
                    )
                depth = self._open_frames.get(tid, 0)
                if event["ph"] == "E":
                    if depth == 0:
                        return
                    self._open_frames[tid] = depth - 1
                else:
                    self._open_frames[tid] = depth + 1
                self._write(event)
            except OSError as exc:
                self._write_error = exc
                logger.error("Execution trace write failed; dropping further events: %s", exc)

    def _close_open_frames(self) -> None:
        # Caller holds self._lock.
        if self._write_error is not None:
            return
        ts = (time.perf_counter_ns() - self._origin_ns) / 1000.0
        try:
            for tid, depth in self._open_frames.items():
                for _ in range(depth):
                    self._write({"ph": "E", "ts": ts, "pid": self._pid, "tid": tid})
        except OSError as exc:
            self._write_error = exc
        self._open_frames.clear()

    def _write(self, event: dict[str, Any]) -> None:
        self._output.write(",\n")
        self._output.write(json.dumps(event))
        self._event_count += 1
