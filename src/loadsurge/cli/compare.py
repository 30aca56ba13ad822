"""``loadsurge compare`` — rank service benchmarks side by side."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from loadsurge._internal.errors import ConfigurationError
from loadsurge.metrics.analysis import compare_services
from loadsurge.metrics.models import PerformanceComparison, ServicePerformance

console = Console(stderr=True)

_CATEGORY_STYLE = {
    "migrate": "red",
    "consider_optimization": "yellow",
    "minimal": "green",
}


def load_services(path: Path) -> list[ServicePerformance]:
    """Read services from a JSON list, or an object with a ``services`` list.

    Raises:
        ConfigurationError: If the file is not valid JSON or an entry has
            missing or unknown fields.
    """
    try:
        payload: Any = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        msg = f"{path} is not valid JSON: {exc}"
        raise ConfigurationError(msg) from None

    if isinstance(payload, dict):
        payload = payload.get("services")
    if not isinstance(payload, list):
        msg = f"{path} must contain a list of services"
        raise ConfigurationError(msg)

    services: list[ServicePerformance] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            msg = f"service #{index} must be a JSON object"
            raise ConfigurationError(msg)
        try:
            services.append(ServicePerformance(**item))
        except TypeError as exc:
            msg = f"service #{index}: {exc}"
            raise ConfigurationError(msg) from None
    return services


def _print_comparison(comparison: PerformanceComparison) -> None:
    table = Table(title="Service Comparison", show_header=True, header_style="bold cyan")
    table.add_column("Service", style="bold")
    table.add_column("Technology")
    table.add_column("Max RPS", justify="right")
    table.add_column("Avg Latency", justify="right")
    table.add_column("p95 Latency", justify="right")
    table.add_column("Error %", justify="right")

    best = comparison.summary.best_performer if comparison.summary else None
    for service in comparison.services:
        label = f"{service.name} *" if service.name == best else service.name
        table.add_row(
            label,
            service.technology,
            f"{service.max_rps:,.0f}",
            f"{service.avg_latency_ms:.1f}ms",
            f"{service.p95_latency_ms:.1f}ms",
            f"{service.error_rate:.2f}%",
        )
    console.print(table)

    summary = comparison.summary
    if summary is None:
        return
    console.print(
        Panel(
            f"[bold]Best performer:[/bold]  {summary.best_performer}\n"
            f"[bold]Performance gap:[/bold] {summary.performance_gap:.1f}%\n\n"
            f"{summary.recommendation}",
            title="Recommendation",
            border_style=_CATEGORY_STYLE.get(summary.category, "cyan"),
        )
    )


def compare_cmd(
    services_file: Path = typer.Argument(
        ...,
        help="JSON file with service benchmarks.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the comparison as JSON on stdout.",
    ),
) -> None:
    """Compare service benchmarks and recommend the best performer."""
    try:
        services = load_services(services_file)
    except ConfigurationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if not services:
        console.print("[yellow]No services to compare.[/yellow]")
        raise typer.Exit(code=1)

    comparison = compare_services(services)
    if as_json:
        typer.echo(json.dumps(comparison.to_dict(), indent=2))
        return
    _print_comparison(comparison)
