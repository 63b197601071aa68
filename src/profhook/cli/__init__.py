"""CLI package.

The ``cli`` sub-package contains the Click application. Its root group
is the command-dispatch layer that drives ``ProfilingSession``'s start
and stop hooks around each command.
"""
from __future__ import annotations
