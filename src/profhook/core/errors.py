"""Error types raised by profiling sessions.

Every error carries the channel or facility it concerns so that the CLI
can print a precise message and embedding tools can react to the
specific failure.
"""
from __future__ import annotations


class ProfilingError(Exception):
    """Base class for all setup and teardown failures of a session."""


class ChannelOpenError(ProfilingError, OSError):
    """Raised when the output file of a channel cannot be created.

    Parameters
    ----------
    channel:
        Name of the channel whose output failed, e.g. ``"cpu"``.
    path:
        The destination path that could not be opened.
    cause:
        The underlying ``OSError``, if any.
    """

    def __init__(self, channel: str, path: str, cause: OSError | None = None) -> None:
        self.channel = channel
        self.path = path
        self.cause = cause
        reason = cause.strerror if cause is not None and cause.strerror else str(cause or "")
        message = f"cannot create {channel} profile output {path!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FacilityBusyError(ProfilingError):
    """Raised when a process-wide instrumentation facility is already held."""

    def __init__(self, facility: str) -> None:
        self.facility = facility
        super().__init__(
            f"{facility} is already active in this process; "
            "stop the running session before starting another."
        )


class SnapshotError(ProfilingError):
    """Raised when the heap snapshot cannot be opened or written."""

    def __init__(self, path: str, cause: BaseException | None = None) -> None:
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"cannot write heap snapshot to {path!r}{detail}")


class VariableAlreadyPublishedError(ValueError):
    """Raised when publishing a debug variable under a name already in use."""

    def __init__(self, name: str) -> None:
        self.variable_name = name
        super().__init__(
            f"Debug variable {name!r} is already published. "
            "Unpublish the existing entry first or choose a unique name."
        )
