"""Spike pattern: a sudden burst at mid-run, then decay back to base."""

from __future__ import annotations

import math

from loadsurge._internal.errors import ConfigurationError
from loadsurge.rates.base import RateCurve, _validate_positive

DEFAULT_SPIKE_SECONDS = 10.0


class SpikeCurve(RateCurve):
    """Hold *min_rps*, jump to *max_rps*, and decay back to *min_rps*.

    The burst starts at ``spike_at * duration_seconds`` and decays
    exponentially over *spike_seconds*, reaching about 95% decay at the end
    of the window.  Outside the window the curve holds *min_rps*.

    Args:
        min_rps: Base rate before and after the spike.
        max_rps: Peak rate at the start of the spike.
        duration_seconds: Run length in seconds.
        spike_at: Fraction of the run at which the spike starts.  Must be
            in ``[0, 1)``.  Defaults to mid-run.
        spike_seconds: Decay window in seconds.  Defaults to ten seconds,
            shortened to what is left of the run after the spike starts.

    Raises:
        ConfigurationError: If *spike_at* or *spike_seconds* is out of range.

    Example::

        curve = SpikeCurve(min_rps=10, max_rps=1000, duration_seconds=60)
        assert curve.target_rps(29) == 10
        assert curve.target_rps(30) == 1000
        assert curve.target_rps(45) == 10
    """

    def __init__(
        self,
        min_rps: float,
        max_rps: float,
        duration_seconds: float,
        spike_at: float = 0.5,
        spike_seconds: float | None = None,
    ) -> None:
        super().__init__(min_rps, max_rps, duration_seconds)
        if not 0.0 <= spike_at < 1.0:
            msg = f"spike_at must be in [0, 1), got {spike_at}"
            raise ConfigurationError(msg)
        self._spike_start = spike_at * self._duration
        if spike_seconds is None:
            spike_seconds = min(DEFAULT_SPIKE_SECONDS, self._duration - self._spike_start)
        _validate_positive(spike_seconds, "spike_seconds")
        self._spike_seconds = float(spike_seconds)
        # exp(-3) is about 0.05 at the end of the window
        self._decay_rate = 3.0 / self._spike_seconds

    @property
    def spike_start(self) -> float:
        """Return the elapsed second at which the burst fires."""
        return self._spike_start

    @property
    def spike_seconds(self) -> float:
        return self._spike_seconds

    def _at_progress(self, progress: float) -> float:
        since_spike = progress * self._duration - self._spike_start
        if since_spike < 0 or since_spike >= self._spike_seconds:
            return self._min_rps
        decay = math.exp(-self._decay_rate * since_spike)
        return self._min_rps + (self._max_rps - self._min_rps) * decay

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return (
            f"Spike: {self._min_rps:g} -> {self._max_rps:g} RPS at {self._spike_start:g}s, "
            f"decay over {self._spike_seconds:g}s"
        )
