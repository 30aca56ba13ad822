"""``loadsurge run`` — drive one simulation with live terminal output."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from loadsurge._internal.config import load_config
from loadsurge._internal.errors import LoadSurgeError
from loadsurge._internal.logging import setup_logging
from loadsurge.engine.manager import SimulationManager
from loadsurge.hub.hub import BroadcastHub
from loadsurge.hub.server import HubServer
from loadsurge.persistence import JsonRunRepository
from loadsurge.rates import build_curve
from loadsurge.rates.presets import preset_config
from loadsurge.simulation.models import LoadPattern, RunStatus, ScaleMode, SimulationConfig

if TYPE_CHECKING:
    from loadsurge._internal.config import LoadSurgeConfig
    from loadsurge.metrics.models import RunMetrics
    from loadsurge.simulation.models import SimulationRun

console = Console(stderr=True)

_STATUS_STYLE = {
    RunStatus.COMPLETED: "green",
    RunStatus.CANCELLED: "yellow",
    RunStatus.FAILED: "red",
}


# ---------------------------------------------------------------------------
# Configuration helpers
# ---------------------------------------------------------------------------


def _parse_headers(raw: list[str]) -> dict[str, str]:
    """Parse repeated ``Name: value`` options into a dict.

    Raises:
        typer.BadParameter: If an entry has no colon or an empty name.
    """
    headers: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            msg = f"Invalid header {item!r}; expected 'Name: value'"
            raise typer.BadParameter(msg)
        headers[name.strip()] = value.strip()
    return headers


def _parse_pairs(raw: list[str], option: str) -> dict[str, str]:
    """Parse repeated ``name=value`` options into a dict.

    Raises:
        typer.BadParameter: If an entry has no ``=`` or an empty name.
    """
    pairs: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            msg = f"Invalid {option} {item!r}; expected 'name=value'"
            raise typer.BadParameter(msg)
        pairs[name.strip()] = value
    return pairs


def _validation_rules(
    expect_status: list[int],
    expect_body: list[str],
    expect_regex: str | None,
    max_response_ms: float | None,
) -> dict[str, object] | None:
    """Collect the response-check flags; None when none was given."""
    if not (expect_status or expect_body or expect_regex or max_response_ms is not None):
        return None
    return {
        "status_codes": expect_status,
        "body_contains": expect_body,
        "body_regex": expect_regex,
        "max_response_time_ms": max_response_ms,
    }


def _build_config(
    url: str,
    *,
    preset: str | None,
    request: dict[str, object],
    ramp: dict[str, object | None],
) -> SimulationConfig:
    """Merge CLI flags into a validated configuration.

    Ramp flags left unset fall back to the preset, or to built-in defaults
    when no preset is given.
    """
    overrides = {k: v for k, v in ramp.items() if v is not None}
    if preset is not None:
        return preset_config(preset, url, **request, **overrides)

    fields: dict[str, object] = {
        "target_url": url,
        "min_rps": 1.0,
        "max_rps": 100.0,
        "duration_seconds": 60.0,
        **request,
        **overrides,
    }
    config = SimulationConfig.from_dict(fields)
    config.validate()
    return config


# ---------------------------------------------------------------------------
# Rich live display
# ---------------------------------------------------------------------------


def _make_live_table(run: SimulationRun | None) -> Table:
    """Build a Rich table summarising the running simulation.

    Args:
        run: Latest run snapshot, or None before the run exists.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if run is None or run.status in (RunStatus.CREATED, RunStatus.STARTING):
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Status", run.status.value)
    table.add_row("Elapsed", f"{run.elapsed_seconds:.0f}s / {run.config.duration_seconds:.0f}s")
    table.add_row("Target RPS", f"{run.target_rps:.1f}")
    table.add_row("Achieved RPS", f"{run.current_rps:.1f}")
    table.add_row("Total Requests", str(run.total_requests))
    table.add_row("Failed", str(run.failed_requests))
    table.add_row("Skipped", str(run.skipped_requests))
    if run.latency is not None:
        table.add_row("p50 Latency", f"{run.latency.median:.1f}ms")
        table.add_row("p95 Latency", f"{run.latency.p95:.1f}ms")
        table.add_row("p99 Latency", f"{run.latency.p99:.1f}ms")
    return table


def _print_summary(run: SimulationRun, metrics: RunMetrics | None) -> None:
    """Print a final summary table after the run terminates."""
    style = _STATUS_STYLE.get(run.status, "white")
    table = Table(
        title=f"Simulation {run.status.value}",
        show_header=True,
        header_style=f"bold {style}",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Name", run.config.name)
    table.add_row("Run ID", str(run.run_id))
    table.add_row("Duration", f"{run.elapsed_seconds:.1f}s")
    table.add_row("Total Requests", str(run.total_requests))
    table.add_row("Successful", str(run.successful_requests))
    table.add_row("Failed", str(run.failed_requests))
    table.add_row("Skipped", str(run.skipped_requests))
    table.add_row("Avg Requests/sec", f"{run.average_rps:.1f}")
    table.add_row("Error Rate", f"{_error_rate(run) * 100:.2f}%")

    if metrics is not None and metrics.all_time.count:
        stats = metrics.all_time
        table.add_row("Mean Latency", f"{stats.mean:.1f}ms")
        table.add_row("p50 Latency", f"{stats.median:.1f}ms")
        table.add_row("p95 Latency", f"{stats.p95:.1f}ms")
        table.add_row("p99 Latency", f"{stats.p99:.1f}ms")
        table.add_row("Max Latency", f"{stats.max:.1f}ms")

    if run.error:
        table.add_row("Error", f"[red]{run.error}[/red]")

    console.print(table)


def _error_rate(run: SimulationRun) -> float:
    if run.total_requests == 0:
        return 0.0
    return run.failed_requests / run.total_requests


# ---------------------------------------------------------------------------
# Async driver
# ---------------------------------------------------------------------------


async def _drive(
    config: SimulationConfig,
    settings: LoadSurgeConfig,
    *,
    ws_port: int | None,
    output: Path | None,
    live: Live,
) -> tuple[SimulationRun, RunMetrics | None]:
    hub = BroadcastHub(buffer_size=settings.observer_buffer_size)
    server = HubServer(hub, settings.host, ws_port) if ws_port is not None else None
    manager = SimulationManager(
        hub=hub,
        settings=settings,
        repository=JsonRunRepository(output) if output is not None else None,
    )

    if server is not None:
        await server.start()
        console.print(f"Streaming events on [cyan]{server.url}[/cyan]")

    loop = asyncio.get_running_loop()
    run_id = manager.start(config)

    def _signal_handler() -> None:
        console.print("[yellow]Stop requested, draining in-flight requests...[/yellow]")
        manager.stop(run_id)

    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, _signal_handler)
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)

    try:
        waiter = asyncio.ensure_future(manager.wait(run_id))
        while not waiter.done():
            live.update(_make_live_table(manager.get(run_id)))
            await asyncio.wait({waiter}, timeout=0.5)
        run = waiter.result()
    finally:
        if sys.platform != "win32":
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        await manager.shutdown()
        if server is not None:
            await server.stop()

    return run, manager.registry.get(run_id)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    url: str = typer.Argument(..., help="Target URL every request is sent to."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: list[str] = typer.Option(
        [],
        "--header",
        "-H",
        help="Extra request header as 'Name: value'. Repeatable.",
    ),
    body: str | None = typer.Option(None, "--body", help="Request body sent verbatim."),
    form: list[str] = typer.Option(
        [],
        "--form",
        help="Form field sent URL-encoded as 'name=value'. Repeatable; excludes --body.",
    ),
    var: list[str] = typer.Option(
        [],
        "--var",
        help="Value for {{name}} placeholders as 'name=value'. Repeatable.",
    ),
    content_type: str | None = typer.Option(
        None,
        "--content-type",
        help="Content-Type applied when a body is sent.",
    ),
    name: str | None = typer.Option(None, "--name", "-n", help="Simulation name."),
    min_rps: float | None = typer.Option(
        None,
        "--min-rps",
        help="Target RPS at the start of the ramp (default: 1).",
        min=0.0,
    ),
    max_rps: float | None = typer.Option(
        None,
        "--max-rps",
        help="Target RPS at the end of the ramp (default: 100).",
        min=0.0,
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Run length in seconds (default: 60).",
    ),
    scale_mode: ScaleMode | None = typer.Option(
        None,
        "--scale-mode",
        "-s",
        help="Ramp shape: linear, logarithmic, exponential or step.",
    ),
    pattern: LoadPattern | None = typer.Option(
        None,
        "--pattern",
        help="Load pattern: ramp (follows --scale-mode), constant, linear_ramp, "
        "step_ramp, spike or sine_wave.",
    ),
    ramp_up: float | None = typer.Option(
        None,
        "--ramp-up",
        help="Ramp length in seconds for the linear_ramp pattern.",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-c",
        help="Maximum in-flight requests (default: 100).",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Per-request timeout in seconds (default: LOADSURGE_TIMEOUT or 30).",
    ),
    preset: str | None = typer.Option(
        None,
        "--preset",
        "-p",
        help="Start from a built-in preset (see 'loadsurge presets').",
    ),
    preflight: bool = typer.Option(
        False,
        "--preflight",
        help="Probe the target once before ramping.",
    ),
    ws_port: int | None = typer.Option(
        None,
        "--ws-port",
        help="Serve the live event stream on this port.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Directory to save the run record in.",
    ),
    expect_status: list[int] = typer.Option(
        [],
        "--expect-status",
        help="Accepted response status. Repeatable (default: any 2xx).",
    ),
    expect_body: list[str] = typer.Option(
        [],
        "--expect-body",
        help="Text every response body must contain. Repeatable.",
    ),
    expect_regex: str | None = typer.Option(
        None,
        "--expect-regex",
        help="Pattern every response body must match.",
    ),
    max_response_ms: float | None = typer.Option(
        None,
        "--max-response-ms",
        help="Fail responses slower than this many milliseconds.",
    ),
    fail_on_error_rate: float | None = typer.Option(
        None,
        "--fail-on-error-rate",
        help="Exit non-zero if error rate exceeds this threshold (e.g., 0.05).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Run one simulation against URL with live terminal output."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)

    try:
        settings = load_config()
        request: dict[str, object] = {
            "method": method,
            "headers": _parse_headers(header),
            "body": body,
            "content_type": content_type,
            "request_timeout": timeout if timeout is not None else settings.request_timeout,
            "preflight": preflight,
            "form_data": _parse_pairs(form, "form field") if form else None,
            "variables": _parse_pairs(var, "variable"),
            "validation": _validation_rules(
                expect_status, expect_body, expect_regex, max_response_ms
            ),
        }
        if name is not None:
            request["name"] = name
        config = _build_config(
            url,
            preset=preset,
            request=request,
            ramp={
                "min_rps": min_rps,
                "max_rps": max_rps,
                "duration_seconds": duration,
                "scale_mode": scale_mode,
                "pattern": pattern,
                "ramp_up_seconds": ramp_up,
                "concurrent_users": concurrency,
            },
        )
    except LoadSurgeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Name:[/bold]        {config.name}\n"
            f"[bold]Target:[/bold]      {config.method} {config.target_url}\n"
            f"[bold]Ramp:[/bold]        {build_curve(config).describe()}\n"
            f"[bold]Concurrency:[/bold] {config.concurrent_users}",
            title="LoadSurge",
            border_style="cyan",
        )
    )

    try:
        with Live(
            _make_live_table(None),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:
            run, metrics = asyncio.run(
                _drive(config, settings, ws_port=ws_port, output=output, live=live)
            )
    except LoadSurgeError as exc:
        console.print(f"[red]Simulation failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(run, metrics)

    if output is not None:
        saved = JsonRunRepository(output).path_for(run.run_id)
        if saved.exists():
            console.print(f"Run record saved to [cyan]{saved}[/cyan]")
        else:
            console.print(f"[yellow]Warning:[/yellow] run record was not saved to {output}")

    if run.status is RunStatus.FAILED:
        raise typer.Exit(code=1)

    error_rate = _error_rate(run)
    if fail_on_error_rate is not None and error_rate > fail_on_error_rate:
        console.print(
            f"[red]FAIL:[/red] Error rate {error_rate * 100:.2f}% "
            f"exceeds threshold {fail_on_error_rate * 100:.2f}%"
        )
        raise typer.Exit(code=1)

    console.print(f"[green]Simulation {run.status.value}.[/green]")
