"""``loadsurge report`` — performance report over saved run records."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from loadsurge._internal.errors import LoadSurgeError
from loadsurge.metrics.analysis import MetricsRegistry
from loadsurge.metrics.models import PerformanceReport
from loadsurge.persistence import JsonRunRepository

console = Console(stderr=True)


def build_report(results_dir: Path, run_ids: list[int] | None = None) -> PerformanceReport:
    """Load every record in *results_dir* and report over *run_ids*.

    Args:
        results_dir: Directory of ``run-<id>.json`` files.
        run_ids: Runs to include; all saved runs when empty.  Unknown ids
            are skipped.

    Returns:
        The report.
    """
    repository = JsonRunRepository(results_dir)
    registry = MetricsRegistry()
    for run_id in repository.list_ids():
        registry.add(repository.load(run_id).metrics)
    return registry.generate_report(run_ids or repository.list_ids())


def _print_report(report: PerformanceReport) -> None:
    table = Table(title="Performance Report", show_header=True, header_style="bold cyan")
    table.add_column("Simulation", style="bold")
    table.add_column("Duration", justify="right")
    table.add_column("Requests", justify="right")
    table.add_column("Avg RPS", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Avg Latency", justify="right")
    table.add_column("p95 Latency", justify="right")

    for sim in report.simulations:
        table.add_row(
            sim.name,
            f"{sim.duration_seconds:.1f}s",
            f"{sim.total_requests:,}",
            f"{sim.average_rps:.1f}",
            f"{sim.success_rate:.1f}%",
            f"{sim.avg_response_time_ms:.1f}ms",
            f"{sim.p95_response_time_ms:.1f}ms",
        )
    console.print(table)

    if report.insights:
        console.print("\n[bold]Insights[/bold]")
        for insight in report.insights:
            console.print(f"  - {insight}")

    console.print("\n[bold]Recommendations[/bold]")
    for recommendation in report.recommendations:
        console.print(f"  - {recommendation}")


def report_cmd(
    results_dir: Path = typer.Argument(
        ...,
        help="Directory containing saved run records.",
        exists=True,
        file_okay=False,
        readable=True,
    ),
    run_id: list[int] = typer.Option(
        [],
        "--run-id",
        "-r",
        help="Run to include. Repeatable; defaults to every saved run.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON on stdout.",
    ),
) -> None:
    """Generate a performance report from previously saved runs."""
    try:
        report = build_report(results_dir, run_id)
    except (LoadSurgeError, ValueError, KeyError, TypeError) as exc:
        console.print(f"[red]Error:[/red] could not read run records: {exc}")
        raise typer.Exit(code=1) from exc

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return
    _print_report(report)
