"""Rate model: how target requests-per-second evolve over a run.

A run's :class:`~loadsurge.simulation.models.LoadPattern` picks its
:class:`RateCurve`; the default ``ramp`` pattern picks one per
:class:`~loadsurge.simulation.models.ScaleMode` instead.
:func:`target_rps` is the pure ``(elapsed, config)`` entry point used by
the load generator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loadsurge.rates.base import RateCurve
from loadsurge.rates.constant import ConstantCurve
from loadsurge.rates.exponential import ExponentialCurve
from loadsurge.rates.linear import LinearCurve, LinearRampCurve
from loadsurge.rates.logarithmic import LogarithmicCurve
from loadsurge.rates.sine import SineWaveCurve
from loadsurge.rates.spike import SpikeCurve
from loadsurge.rates.step import StepCurve, StepRampCurve, decade_levels
from loadsurge.simulation.models import LoadPattern, ScaleMode

if TYPE_CHECKING:
    from loadsurge.simulation.models import SimulationConfig

_CURVES: dict[ScaleMode, type[RateCurve]] = {
    ScaleMode.LINEAR: LinearCurve,
    ScaleMode.LOGARITHMIC: LogarithmicCurve,
    ScaleMode.EXPONENTIAL: ExponentialCurve,
    ScaleMode.STEP: StepCurve,
}

_PATTERNS: dict[LoadPattern, type[RateCurve]] = {
    LoadPattern.CONSTANT: ConstantCurve,
    LoadPattern.STEP_RAMP: StepRampCurve,
    LoadPattern.SPIKE: SpikeCurve,
    LoadPattern.SINE_WAVE: SineWaveCurve,
}


def build_curve(config: SimulationConfig) -> RateCurve:
    """Return the rate curve for *config*'s pattern and scale mode."""
    bounds = (config.min_rps, config.max_rps, config.duration_seconds)
    if config.pattern is LoadPattern.RAMP:
        return _CURVES[config.scale_mode](*bounds)
    if config.pattern is LoadPattern.LINEAR_RAMP:
        return LinearRampCurve(*bounds, ramp_up_seconds=config.ramp_up_seconds)
    return _PATTERNS[config.pattern](*bounds)


def target_rps(elapsed: float, config: SimulationConfig) -> float:
    """Return the target RPS *elapsed* seconds into a run of *config*."""
    return build_curve(config).target_rps(elapsed)


__all__ = [
    "ConstantCurve",
    "ExponentialCurve",
    "LinearCurve",
    "LinearRampCurve",
    "LogarithmicCurve",
    "RateCurve",
    "SineWaveCurve",
    "SpikeCurve",
    "StepCurve",
    "StepRampCurve",
    "build_curve",
    "decade_levels",
    "target_rps",
]
