"""Sine wave pattern."""

from __future__ import annotations

import math

from loadsurge.rates.base import RateCurve, _validate_positive

DEFAULT_CYCLES = 3.0


class SineWaveCurve(RateCurve):
    """Oscillate between *min_rps* and *max_rps* around their midpoint.

    ``target = mid + amplitude * sin(2 * pi * cycles * p)`` where
    ``mid = (min_rps + max_rps) / 2`` and ``amplitude = (max_rps - min_rps) / 2``.
    The run starts and ends at the midpoint when *cycles* is whole.
    """

    def __init__(
        self,
        min_rps: float,
        max_rps: float,
        duration_seconds: float,
        cycles: float = DEFAULT_CYCLES,
    ) -> None:
        super().__init__(min_rps, max_rps, duration_seconds)
        _validate_positive(cycles, "cycles")
        self._cycles = float(cycles)

    @property
    def cycles(self) -> float:
        return self._cycles

    def _at_progress(self, progress: float) -> float:
        amplitude = (self._max_rps - self._min_rps) / 2
        value = self._min_rps + amplitude * (1 + math.sin(2 * math.pi * self._cycles * progress))
        # Float error must not leave the configured range
        return min(max(value, self._min_rps), self._max_rps)

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return (
            f"Sine wave: {self._min_rps:g} <-> {self._max_rps:g} RPS, "
            f"{self._cycles:g} cycles over {self._duration:g}s"
        )
