"""Constant pattern: hold the peak rate for the whole run."""

from __future__ import annotations

from loadsurge.rates.base import RateCurve


class ConstantCurve(RateCurve):
    """Send *max_rps* from the first tick to the last.

    *min_rps* only bounds the configuration; it is never targeted.

    Example::

        curve = ConstantCurve(min_rps=1, max_rps=200, duration_seconds=60)
        assert curve.target_rps(0) == 200
        assert curve.target_rps(59) == 200
    """

    def _at_progress(self, progress: float) -> float:
        return self._max_rps

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return f"Constant: {self._max_rps:g} RPS for {self._duration:g}s"
