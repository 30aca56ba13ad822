"""Exponential ramp curve."""

from __future__ import annotations

from loadsurge._internal.errors import ConfigurationError
from loadsurge.rates.base import RateCurve

DEFAULT_CURVATURE = 3.0


class ExponentialCurve(RateCurve):
    """Ramp along ``1 - (1 - p) ** k``: rapid start, gradual finish.

    Args:
        min_rps: Target RPS at ``t = 0``.
        max_rps: Target RPS at ``t = duration_seconds``.
        duration_seconds: Run length in seconds.
        curvature: The exponent *k*.  Must be >= 1; 1 degenerates to linear.
    """

    def __init__(
        self,
        min_rps: float,
        max_rps: float,
        duration_seconds: float,
        curvature: float = DEFAULT_CURVATURE,
    ) -> None:
        super().__init__(min_rps, max_rps, duration_seconds)
        if curvature < 1:
            msg = f"curvature must be >= 1, got {curvature}"
            raise ConfigurationError(msg)
        self._curvature = curvature

    def _at_progress(self, progress: float) -> float:
        return self._lerp(1.0 - (1.0 - progress) ** self._curvature)

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return (
            f"Exponential (k={self._curvature:g}): {self._min_rps:g} -> "
            f"{self._max_rps:g} RPS over {self._duration:g}s"
        )
