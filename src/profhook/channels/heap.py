"""Heap snapshot channel backed by ``tracemalloc``.

Python only records allocations while ``tracemalloc`` is tracing, so a
session that wants a meaningful snapshot starts a ``HeapTracker`` early.
``write_heap_snapshot`` itself works at any time: when tracing is off it
takes a snapshot of an empty trace set rather than failing.

The snapshot is pickled exactly as ``tracemalloc.Snapshot.dump`` does,
so ``tracemalloc.Snapshot.load(path)`` reads it back.
"""
from __future__ import annotations

import logging
import pickle
import tracemalloc

from profhook.core.errors import SnapshotError

logger = logging.getLogger(__name__)

DEFAULT_TRACEBACK_FRAMES = 16


class HeapTracker:
    """Keep ``tracemalloc`` tracing between ``start`` and ``stop``.

    Tracing that was already on when ``start`` ran is left alone by
    ``stop``.
    """

    def __init__(self, frames: int = DEFAULT_TRACEBACK_FRAMES) -> None:
        self._frames = frames
        self._owns_tracing = False

    @property
    def owns_tracing(self) -> bool:
        return self._owns_tracing

    def start(self) -> None:
        if tracemalloc.is_tracing():
            logger.debug("tracemalloc already tracing; reusing it")
            return
        tracemalloc.start(self._frames)
        self._owns_tracing = True
        logger.debug("tracemalloc started with %d frame(s)", self._frames)

    def stop(self) -> None:
        if not self._owns_tracing:
            return
        self._owns_tracing = False
        tracemalloc.stop()
        logger.debug("tracemalloc stopped")


def take_heap_snapshot() -> tracemalloc.Snapshot:
    """Return a snapshot of the traced heap, tracing briefly if needed."""
    if tracemalloc.is_tracing():
        return tracemalloc.take_snapshot()
    tracemalloc.start()
    try:
        return tracemalloc.take_snapshot()
    finally:
        tracemalloc.stop()


def write_heap_snapshot(path: str) -> None:
    """Open ``path``, write a full heap snapshot into it and close it.

    Raises
    ------
    SnapshotError
        If the file cannot be created or the snapshot cannot be written.
    """
    try:
        output = open(path, "wb")
    except OSError as exc:
        raise SnapshotError(path, exc) from exc
    try:
        with output:
            snapshot = take_heap_snapshot()
            pickle.dump(snapshot, output, pickle.HIGHEST_PROTOCOL)
    except (OSError, pickle.PicklingError) as exc:
        raise SnapshotError(path, exc) from exc
    logger.debug("Heap snapshot with %d trace(s) written to %s", len(snapshot.traces), path)
