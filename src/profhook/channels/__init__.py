"""Instrumentation channels.

Each module wraps one runtime facility. Channels know nothing about each
other; ``profhook.session.ProfilingSession`` decides which ones run.
"""
from __future__ import annotations

from profhook.channels.cpu import CpuProfiler
from profhook.channels.debugvars import DebugEndpoint, publish, unpublish
from profhook.channels.heap import HeapTracker, take_heap_snapshot, write_heap_snapshot
from profhook.channels.trace import ExecutionTracer

__all__ = [
    "CpuProfiler",
    "DebugEndpoint",
    "ExecutionTracer",
    "HeapTracker",
    "publish",
    "take_heap_snapshot",
    "unpublish",
    "write_heap_snapshot",
]
