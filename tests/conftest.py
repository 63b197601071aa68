"""Shared test fixtures for profhook.

Fixtures defined here are available to all tests in the suite without
needing an explicit import. The CPU profiler, the tracer and
``tracemalloc`` are process-wide, so every test gets them back in a
clean state.
"""
from __future__ import annotations

import sys
import threading
import tracemalloc
from collections.abc import Iterator

import pytest

from profhook.core.facilities import facilities


@pytest.fixture(autouse=True)
def clean_process_facilities() -> Iterator[None]:
    """Release facilities, hooks and tracemalloc left behind by a test."""
    trace_before = sys.gettrace()
    thread_trace_before = threading.gettrace()
    profile_before = sys.getprofile()
    tracing_before = tracemalloc.is_tracing()
    yield
    facilities.clear()
    if sys.gettrace() is not trace_before:
        sys.settrace(trace_before)
    if threading.gettrace() is not thread_trace_before:
        threading.settrace(thread_trace_before)
    if sys.getprofile() is not profile_before:
        sys.setprofile(profile_before)
    if tracemalloc.is_tracing() and not tracing_before:
        tracemalloc.stop()


@pytest.fixture()
def expected_version() -> str:
    """Return the current expected version string.

    Update this fixture when cutting a release so that the version
    test immediately catches stale ``__version__`` values.
    """
    return "0.1.0"


@pytest.fixture()
def missing_dir_path(tmp_path) -> str:
    """A path whose parent directory does not exist, so it cannot be created."""
    return str(tmp_path / "does-not-exist" / "out.prof")
