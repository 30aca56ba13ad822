"""``loadsurge presets`` — list the built-in large-scale presets."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from loadsurge.rates.presets import PRESETS

console = Console()


def presets_cmd() -> None:
    """Show the built-in presets usable with ``loadsurge run --preset``."""
    table = Table(title="Built-in Presets", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="bold")
    table.add_column("Name")
    table.add_column("Min RPS", justify="right")
    table.add_column("Max RPS", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Scale Mode")
    table.add_column("Concurrency", justify="right")

    for preset in PRESETS.values():
        table.add_row(
            preset.key,
            preset.name,
            f"{preset.min_rps:,.0f}",
            f"{preset.max_rps:,.0f}",
            f"{preset.duration_seconds:.0f}s",
            preset.scale_mode.value,
            f"{preset.concurrent_users:,}",
        )

    console.print(table)
