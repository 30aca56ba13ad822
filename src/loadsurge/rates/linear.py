"""Linear ramp curves."""

from __future__ import annotations

from loadsurge.rates.base import RateCurve, _validate_positive


class LinearCurve(RateCurve):
    """Ramp target RPS at a constant slope from *min_rps* to *max_rps*.

    ``target = min_rps + (max_rps - min_rps) * (t / duration)``

    Example::

        curve = LinearCurve(min_rps=10, max_rps=110, duration_seconds=100)
        assert curve.target_rps(0) == 10
        assert curve.target_rps(50) == 60
        assert curve.target_rps(100) == 110
    """

    def _at_progress(self, progress: float) -> float:
        return self._lerp(progress)

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return f"Linear: {self._min_rps:g} -> {self._max_rps:g} RPS over {self._duration:g}s"


class LinearRampCurve(RateCurve):
    """Ramp linearly over *ramp_up_seconds*, then hold *max_rps*.

    Args:
        min_rps: Target RPS at ``t = 0``.
        max_rps: Target RPS once the ramp-up is over.
        duration_seconds: Run length in seconds.
        ramp_up_seconds: Length of the ramp.  Defaults to the whole run,
            which makes the curve identical to :class:`LinearCurve`.

    Example::

        curve = LinearRampCurve(min_rps=0, max_rps=100, duration_seconds=60, ramp_up_seconds=10)
        assert curve.target_rps(5) == 50
        assert curve.target_rps(30) == 100
    """

    def __init__(
        self,
        min_rps: float,
        max_rps: float,
        duration_seconds: float,
        ramp_up_seconds: float | None = None,
    ) -> None:
        super().__init__(min_rps, max_rps, duration_seconds)
        if ramp_up_seconds is None:
            ramp_up_seconds = self._duration
        _validate_positive(ramp_up_seconds, "ramp_up_seconds")
        self._ramp_up = float(ramp_up_seconds)

    @property
    def ramp_up_seconds(self) -> float:
        return self._ramp_up

    def _at_progress(self, progress: float) -> float:
        return self._lerp(min(progress * self._duration / self._ramp_up, 1.0))

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return (
            f"Linear ramp: {self._min_rps:g} -> {self._max_rps:g} RPS over "
            f"{self._ramp_up:g}s, held until {self._duration:g}s"
        )
