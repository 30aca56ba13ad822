"""LoadSurge — synthetic load generation with live metrics."""

from __future__ import annotations

from loadsurge.engine.generator import LoadGenerator
from loadsurge.engine.manager import SimulationManager, StopResult
from loadsurge.hub.hub import BroadcastHub, Observer
from loadsurge.metrics.analysis import MetricsRegistry, compare_services
from loadsurge.metrics.stats import compute_percentiles
from loadsurge.rates import build_curve, target_rps
from loadsurge.simulation.models import RunStatus, ScaleMode, SimulationConfig, SimulationRun

__version__ = "0.1.0"

__all__ = [
    "BroadcastHub",
    "LoadGenerator",
    "MetricsRegistry",
    "Observer",
    "RunStatus",
    "ScaleMode",
    "SimulationConfig",
    "SimulationManager",
    "SimulationRun",
    "StopResult",
    "build_curve",
    "compare_services",
    "compute_percentiles",
    "target_rps",
]
