"""profhook — profiling sessions for command-line lifecycle hooks.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
::

    import profhook

    config = profhook.ProfileConfig(
        cpu_profile_path="cpu.out",
        mem_profile_path="mem.out",
    )
    session = profhook.ProfilingSession(config)
    session.start()
    do_work()
    session.stop()

    # Expose a live value on the debug endpoint (--expvar host:port)
    profhook.publish("queue_depth", lambda: len(queue))

    profhook.__version__
    '0.1.0'
"""
from __future__ import annotations

__version__: str = "0.1.0"

from profhook.channels.debugvars import publish, unpublish
from profhook.core.config import ProfileConfig
from profhook.core.errors import (
    ChannelOpenError,
    FacilityBusyError,
    ProfilingError,
    SnapshotError,
    VariableAlreadyPublishedError,
)
from profhook.session import ProfilingSession

__all__ = [
    "ChannelOpenError",
    "FacilityBusyError",
    "ProfileConfig",
    "ProfilingError",
    "ProfilingSession",
    "SnapshotError",
    "VariableAlreadyPublishedError",
    "__version__",
    "publish",
    "unpublish",
]
