"""Live debug-variable HTTP endpoint.

Serves a JSON document of process variables at ``/debug/vars``, in the
spirit of Go's ``expvar`` package. The built-in variables are
``cmdline`` and ``memstats``. Anything registered with ``publish`` is
added alongside them.

The endpoint is deliberately fire-and-forget. ``DebugEndpoint.start``
returns immediately and the listener is created on a daemon thread, so
bind failures never reach the caller. The thread records the failure on
``DebugEndpoint.error`` for callers that want to poll it. The endpoint
is plain, unauthenticated HTTP; restrict exposure through the bind
address.

Example
-------
::

    from profhook.channels.debugvars import publish

    publish("requests_served", lambda: counter.value)
"""
from __future__ import annotations

import gc
import json
import logging
import socket
import sys
import threading
import tracemalloc
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from profhook.core.errors import VariableAlreadyPublishedError

try:
    import resource
except ImportError:  # not available on Windows
    resource = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

VARS_PATH = "/debug/vars"

_published_lock = threading.Lock()
_published: dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Variable registry
# ---------------------------------------------------------------------------


def publish(name: str, value: Any) -> None:
    """Expose ``value`` under ``name`` on every debug endpoint.

    ``value`` may be any JSON-serialisable object or a zero-argument
    callable, which is evaluated on each request.

    Raises
    ------
    VariableAlreadyPublishedError
        If ``name`` is already published or names a built-in variable.
    """
    with _published_lock:
        if name in _published or name in ("cmdline", "memstats"):
            raise VariableAlreadyPublishedError(name)
        _published[name] = value
    logger.debug("Published debug variable %r", name)


def unpublish(name: str) -> None:
    """Remove a published variable. Unknown names are ignored."""
    with _published_lock:
        _published.pop(name, None)


def published_names() -> list[str]:
    with _published_lock:
        return sorted(_published)


def memstats() -> dict[str, Any]:
    """Return allocator and collector statistics for this process."""
    stats: dict[str, Any] = {
        "gc_enabled": gc.isenabled(),
        "gc_counts": list(gc.get_count()),
        "gc_generations": gc.get_stats(),
        "tracemalloc_tracing": tracemalloc.is_tracing(),
    }
    if tracemalloc.is_tracing():
        current, peak = tracemalloc.get_traced_memory()
        stats["traced_bytes"] = current
        stats["traced_peak_bytes"] = peak
    if resource is not None:
        stats["max_rss_kb"] = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return stats


def collect_vars() -> dict[str, Any]:
    """Evaluate every variable and return the full document."""
    document: dict[str, Any] = {"cmdline": list(sys.argv), "memstats": memstats()}
    with _published_lock:
        items = list(_published.items())
    for name, value in items:
        document[name] = value() if callable(value) else value
    return document


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------


class DebugVarsHandler(BaseHTTPRequestHandler):
    """Serve ``/debug/vars`` and ``/debug/vars/<name>`` as JSON."""

    server_version = "profhook-debugvars"

    def do_GET(self) -> None:  # noqa: N802
        path = self.path.split("?", 1)[0].rstrip("/")
        if path == VARS_PATH:
            self._send_json(200, collect_vars())
            return
        prefix = VARS_PATH + "/"
        if path.startswith(prefix):
            document = collect_vars()
            name = path[len(prefix):]
            if name in document:
                self._send_json(200, document[name])
                return
        self._send_json(404, {"error": f"not found: {self.path}"})

    def _send_json(self, status: int, payload: Any) -> None:
        body = json.dumps(payload, indent=2, sort_keys=True, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


class _IPv6Server(ThreadingHTTPServer):
    address_family = socket.AF_INET6


def parse_bind(bind: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    An empty host (``":8080"``) binds every interface. IPv6 hosts are
    written in brackets, e.g. ``"[::1]:8080"``.

    Raises
    ------
    ValueError
        If the port is missing or not a number.
    """
    host, sep, port = bind.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid bind address {bind!r}: expected host:port")
    return host.strip("[]"), int(port)


class DebugEndpoint:
    """Background HTTP listener for debug variables.

    Parameters
    ----------
    bind:
        ``host:port`` to listen on. Port ``0`` picks a free port, which is
        then available from ``address`` once ``ready`` is set.
    """

    def __init__(self, bind: str) -> None:
        self.bind = bind
        self.error: BaseException | None = None
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()

    @property
    def ready(self) -> bool:
        """True once the listener is bound or has failed to bind."""
        return self._ready.is_set()

    @property
    def address(self) -> tuple[str, int] | None:
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Launch the listener thread and return without waiting for it."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._serve, name=f"profhook-debugvars-{self.bind}", daemon=True
        )
        self._thread.start()

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until the listener is bound or failed. Returns ``ready``."""
        return self._ready.wait(timeout)

    def shutdown(self) -> None:
        """Stop serving. Sessions never call this; it exists for embedding and tests."""
        server = self._server
        if server is None:
            return
        server.shutdown()
        server.server_close()
        self._server = None

    def _serve(self) -> None:
        try:
            host, port = parse_bind(self.bind)
            server_cls = _IPv6Server if ":" in host else ThreadingHTTPServer
            server = server_cls((host, port), DebugVarsHandler)
        except Exception as exc:
            self.error = exc
            logger.debug("Debug endpoint on %r failed to start: %s", self.bind, exc)
            self._ready.set()
            return
        server.daemon_threads = True
        self._server = server
        self._ready.set()
        logger.debug("Debug endpoint listening on %s:%d%s", *self.address, VARS_PATH)
        try:
            server.serve_forever()
        except Exception as exc:
            self.error = exc
            logger.debug("Debug endpoint on %r stopped: %s", self.bind, exc)
