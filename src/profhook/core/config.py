"""Profiling configuration.

A ``ProfileConfig`` is built once from command-line flags (or any other
mapping of plain values) before the session hooks fire, and is never
mutated afterwards. Every setting is a string; the empty string means
the channel is disabled.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

# Flag name -> field name. Field names are accepted as keys too.
_FLAG_ALIASES: dict[str, str] = {
    "expvar": "expvar_bind",
    "cpuprofile": "cpu_profile_path",
    "memprofile": "mem_profile_path",
    "traceprofile": "trace_profile_path",
}


@dataclass(frozen=True)
class ProfileConfig:
    """Immutable settings for one profiling session.

    Parameters
    ----------
    expvar_bind:
        ``host:port`` for the live debug-variable endpoint.
    cpu_profile_path:
        Destination of the CPU profile (``pstats`` format).
    mem_profile_path:
        Destination of the heap snapshot (pickled ``tracemalloc.Snapshot``).
    trace_profile_path:
        Destination of the execution trace (Chrome trace-event JSON).
    """

    expvar_bind: str = ""
    cpu_profile_path: str = ""
    mem_profile_path: str = ""
    trace_profile_path: str = ""

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                object.__setattr__(self, f.name, "")
            elif not isinstance(value, str):
                object.__setattr__(self, f.name, str(value))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ProfileConfig":
        """Build a config from flag names or field names.

        Keys that are not profiling settings are ignored, so the whole
        parameter dict of a Click context can be passed directly.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in values.items():
            name = _FLAG_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

    @property
    def debug_endpoint_enabled(self) -> bool:
        return bool(self.expvar_bind)

    @property
    def cpu_enabled(self) -> bool:
        return bool(self.cpu_profile_path)

    @property
    def heap_enabled(self) -> bool:
        return bool(self.mem_profile_path)

    @property
    def trace_enabled(self) -> bool:
        return bool(self.trace_profile_path)

    @property
    def any_enabled(self) -> bool:
        """Return True if at least one channel is configured."""
        return (
            self.debug_endpoint_enabled
            or self.cpu_enabled
            or self.heap_enabled
            or self.trace_enabled
        )
