#!/usr/bin/env python3
"""Example: wiring profhook into your own Click application

The group callback starts the profiling session before any subcommand
runs; the result callback stops it after the subcommand returns.

Usage:
    python examples/01_click_hooks.py --cpuprofile cpu.out --memprofile mem.out crunch
    python -m pstats cpu.out

Requirements:
    pip install profhook
"""
from __future__ import annotations

import sys

import click

import profhook


@click.group()
@click.option("--cpuprofile", default="", help="CPU profile output file.")
@click.option("--memprofile", default="", help="Heap snapshot output file.")
@click.option("--traceprofile", default="", help="Execution trace output file.")
@click.option("--expvar", default="", help="Debug-variable endpoint bind address.")
@click.pass_context
def app(ctx: click.Context, **_options: str) -> None:
    """A tool whose commands can be profiled."""
    session = profhook.ProfilingSession(profhook.ProfileConfig.from_mapping(ctx.params))
    ctx.obj = session
    try:
        session.start()
    except profhook.ProfilingError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@app.result_callback()
@click.pass_context
def stop(ctx: click.Context, result: object, **_options: str) -> None:
    try:
        ctx.find_object(profhook.ProfilingSession).stop()
    except profhook.ProfilingError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@app.command()
@click.option("--n", default=200_000, show_default=True)
def crunch(n: int) -> None:
    """Burn some CPU."""
    profhook.publish("crunch_n", n)
    click.echo(sum(i * i for i in range(n)))


if __name__ == "__main__":
    app()
