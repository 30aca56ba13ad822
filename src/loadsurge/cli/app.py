"""Typer application and entry point for the ``loadsurge`` CLI."""

from __future__ import annotations

import logging

import typer

from loadsurge import __version__
from loadsurge._internal.logging import setup_logging
from loadsurge.cli.compare import compare_cmd
from loadsurge.cli.presets import presets_cmd
from loadsurge.cli.report import report_cmd
from loadsurge.cli.run import run_cmd

app = typer.Typer(
    name="loadsurge",
    help="Ramp synthetic RPS load against an HTTP target and watch it live.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run one simulation against a target URL.")(run_cmd)
app.command("presets", help="List the built-in large-scale presets.")(presets_cmd)
app.command("compare", help="Compare service benchmarks from a JSON file.")(compare_cmd)
app.command("report", help="Generate a report from saved run records.")(report_cmd)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"loadsurge {__version__}")
        raise typer.Exit


@app.callback()
def main(
    log_json: bool = typer.Option(
        False,
        "--log-json",
        help="Write log records to stderr as one JSON object per line.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_print_version,
        is_eager=True,
    ),
) -> None:
    """LoadSurge: synthetic load generation with live metrics.

    Logging is installed here once so every command shares the same
    format; commands only adjust the level afterwards.
    """
    setup_logging(level=logging.WARNING, json_format=log_json)
