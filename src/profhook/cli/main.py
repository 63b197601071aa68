"""CLI entry point for profhook.

Invoked as::

    profhook [PROFILING OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m profhook.cli.main

The profiling options belong to the root group, so they apply to every
command. The group callback starts the profiling session before the
command runs; the result callback stops it once the command has
returned normally. A command that fails leaves its profiles unwritten.

Commands
--------
run         Run a Python script or module under the profiling session
version     Show version information
"""
from __future__ import annotations

import importlib.util
import logging
import os
import runpy
import sys
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from profhook.core.config import ProfileConfig
from profhook.core.errors import ProfilingError
from profhook.session import ProfilingSession

console = Console()
err_console = Console(stderr=True)

ENV_PREFIX = "PROFHOOK"


def _exit_with_error(exc: BaseException) -> NoReturn:
    """Print a hook failure and exit with a non-zero status."""
    err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
    sys.exit(1)


def _configure_logging(verbose: bool) -> None:
    """Route profhook's lifecycle logging to stderr when ``verbose`` is set."""
    if not verbose:
        return
    package_logger = logging.getLogger("profhook")
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=err_console, show_path=False))
    package_logger.setLevel(logging.DEBUG)


def _profile_option(flag: str, help_text: str) -> Any:
    return click.option(
        f"--{flag}",
        default="",
        envvar=f"{ENV_PREFIX}_{flag.upper()}",
        show_envvar=True,
        help=help_text,
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="profhook")
@_profile_option("expvar", "Bind address for the debug-variable endpoint, default none.")
@_profile_option("cpuprofile", "CPU profile output file, default none.")
@_profile_option("memprofile", "Heap snapshot output file, default none.")
@_profile_option("traceprofile", "Execution trace output file, default none.")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log profiling lifecycle events to stderr.")
@click.pass_context
def cli(
    ctx: click.Context,
    expvar: str,
    cpuprofile: str,
    memprofile: str,
    traceprofile: str,
    verbose: bool,
) -> None:
    """Run Python code with optional CPU, heap, trace and debug-variable profiling."""
    _configure_logging(verbose)
    session = ProfilingSession(ProfileConfig.from_mapping(ctx.params))
    ctx.obj = session
    try:
        session.start()
    except ProfilingError as exc:
        _exit_with_error(exc)


@cli.result_callback()
@click.pass_context
def stop_profiling(ctx: click.Context, result: Any, **_params: Any) -> Any:
    """Tear the session down after a command completed normally."""
    session = ctx.find_object(ProfilingSession)
    if session is None:
        return result
    try:
        session.stop()
    except (ProfilingError, OSError) as exc:
        _exit_with_error(exc)
    return result


# ---------------------------------------------------------------------------
# run command
# ---------------------------------------------------------------------------


def _launch_problem(target: str, as_module: bool) -> str | None:
    """Return why TARGET cannot be launched, or None if it can."""
    if as_module:
        try:
            found = importlib.util.find_spec(target)
        except (ImportError, ValueError) as exc:
            return str(exc)
        return None if found is not None else f"No module named {target!r}"
    if not os.path.exists(target):
        return "No such file or directory"
    if not os.access(target, os.R_OK):
        return "Permission denied"
    return None


@cli.command(
    name="run",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.option("-m", "--module", "as_module", is_flag=True, default=False, help="Run TARGET as a module, like python -m.")
@click.argument("target")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def run_command(target: str, args: tuple[str, ...], as_module: bool) -> None:
    """Run a Python script (or module with -m) in this process.

    TARGET is a script path, or a module name when -m is given. Remaining
    ARGS are passed to it as sys.argv[1:].

    Examples:

    \b
        profhook --cpuprofile cpu.out run app.py --port 8000
        profhook --memprofile mem.out --traceprofile trace.json run -m mypkg.tool
    """
    problem = _launch_problem(target, as_module)
    if problem is not None:
        err_console.print(f"[red]Error:[/red] Cannot run {escape(target)}: {escape(problem)}")
        sys.exit(1)

    saved_argv = sys.argv[:]
    saved_path = sys.path[:]
    sys.argv = [target, *args]
    if not as_module:
        sys.path.insert(0, os.path.dirname(os.path.abspath(target)))
    try:
        if as_module:
            runpy.run_module(target, run_name="__main__", alter_sys=True)
        else:
            runpy.run_path(target, run_name="__main__")
    except SystemExit as exc:
        if exc.code not in (None, 0):
            raise
    finally:
        sys.argv = saved_argv
        sys.path[:] = saved_path


# ---------------------------------------------------------------------------
# version command
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from profhook import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]profhook[/bold]", f"v{__version__}")
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("Platform", sys.platform)
    console.print(table)


if __name__ == "__main__":
    cli()
