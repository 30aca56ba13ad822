"""Logarithmic ramp curve."""

from __future__ import annotations

import math

from loadsurge.rates.base import RateCurve

_SCALE = 9.0
_NORMALISER = math.log1p(_SCALE)


class LogarithmicCurve(RateCurve):
    """Ramp along ``log1p(9 * p) / log1p(9)`` of the run progress *p*.

    The normaliser pins the curve to *min_rps* at ``p = 0`` and *max_rps*
    at ``p = 1``; the factor of nine matches a base-10 logarithm of
    ``1 + 9p``.
    """

    def _at_progress(self, progress: float) -> float:
        return self._lerp(math.log1p(_SCALE * progress) / _NORMALISER)

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return (
            f"Logarithmic: {self._min_rps:g} -> {self._max_rps:g} RPS over {self._duration:g}s"
        )
