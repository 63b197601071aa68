"""Core domain types.

Configuration, error types and the process-wide facility registry live
here. Submodules in core/ should not import from channels/ or cli/.
"""
from __future__ import annotations

from profhook.core.config import ProfileConfig
from profhook.core.errors import (
    ChannelOpenError,
    FacilityBusyError,
    ProfilingError,
    SnapshotError,
    VariableAlreadyPublishedError,
)
from profhook.core.facilities import CPU_PROFILER, TRACER, FacilityRegistry, facilities

__all__ = [
    "CPU_PROFILER",
    "ChannelOpenError",
    "FacilityBusyError",
    "FacilityRegistry",
    "ProfileConfig",
    "ProfilingError",
    "SnapshotError",
    "TRACER",
    "VariableAlreadyPublishedError",
    "facilities",
]
