"""Step curves: decade levels, or equal slices of the RPS range."""

from __future__ import annotations

import math

from loadsurge._internal.errors import ConfigurationError
from loadsurge.rates.base import RateCurve

DEFAULT_STEPS = 10


def decade_levels(min_rps: float, max_rps: float) -> list[float]:
    """Return the decade sequence ``1, 10, 100, ...`` clipped into range.

    Each power of ten is clipped into ``[min_rps, max_rps]`` and consecutive
    duplicates are dropped, so the sequence is strictly increasing and
    always ends at *max_rps*.

    Args:
        min_rps: Lower clip bound.
        max_rps: Upper clip bound.

    Returns:
        The distinct step levels in ascending order.

    Example::

        decade_levels(5, 500)  # [5.0, 10.0, 100.0, 500.0]
    """
    levels: list[float] = []
    decade = 1.0
    while True:
        level = min(max(decade, min_rps), max_rps)
        if not levels or level != levels[-1]:
            levels.append(float(level))
        if decade >= max_rps:
            return levels
        decade *= 10.0


class StepCurve(RateCurve):
    """Hold each decade level for an equal share of the run.

    With *k* levels the curve advances every ``duration / k`` seconds, so
    ``min_rps=1, max_rps=1_000_000`` over 70 seconds spends ten seconds on
    each of 1, 10, 100, 1K, 10K, 100K and 1M RPS.
    """

    def __init__(self, min_rps: float, max_rps: float, duration_seconds: float) -> None:
        super().__init__(min_rps, max_rps, duration_seconds)
        self._levels = decade_levels(self._min_rps, self._max_rps)

    @property
    def levels(self) -> tuple[float, ...]:
        """Return the step levels in the order they are visited."""
        return tuple(self._levels)

    @property
    def step_duration(self) -> float:
        """Return the seconds spent on each level."""
        return self._duration / len(self._levels)

    def _at_progress(self, progress: float) -> float:
        index = min(int(progress * len(self._levels)), len(self._levels) - 1)
        return self._levels[index]

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return (
            f"Step: {self._levels[0]:g} -> {self._levels[-1]:g} RPS "
            f"({len(self._levels)} levels, {self.step_duration:g}s each)"
        )


class StepRampCurve(RateCurve):
    """Climb from *min_rps* to *max_rps* in equal steps of the range.

    The run is cut into *steps* equal slices; slice *i* targets
    ``min_rps + (max_rps - min_rps) * i / steps``.  With the default ten
    steps the rate rises by a tenth of the range every tenth of the run,
    and *max_rps* itself is only reached at the end.
    """

    def __init__(
        self,
        min_rps: float,
        max_rps: float,
        duration_seconds: float,
        steps: int = DEFAULT_STEPS,
    ) -> None:
        super().__init__(min_rps, max_rps, duration_seconds)
        if steps < 1:
            msg = f"steps must be >= 1, got {steps}"
            raise ConfigurationError(msg)
        self._steps = steps

    @property
    def steps(self) -> int:
        return self._steps

    def _at_progress(self, progress: float) -> float:
        return self._lerp(math.floor(progress * self._steps) / self._steps)

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return (
            f"Step ramp: {self._min_rps:g} -> {self._max_rps:g} RPS in "
            f"{self._steps} steps over {self._duration:g}s"
        )
