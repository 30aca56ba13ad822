"""Abstract base class for all RPS ramp curves."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from loadsurge._internal.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterator


class RateCurve(ABC):
    """Abstract base for all ramp curves.

    A rate curve maps elapsed run time to a target requests-per-second
    value.  It is a pure function of its parameters: no clocks, no state.
    Every target lies in ``[min_rps, max_rps]``.  Ramp curves start at
    *min_rps* at ``t = 0`` (the step curve starts at the first decade
    level) and reach *max_rps* no later than ``t = duration_seconds``;
    pattern curves (constant, spike, sine wave) shape the run differently.
    Elapsed times past the duration clamp to the value at the end of the
    run; when *min_rps* equals *max_rps* every curve is constant.

    Example::

        curve = LinearCurve(min_rps=10, max_rps=110, duration_seconds=100)
        assert curve.target_rps(50.0) == 60.0
    """

    def __init__(self, min_rps: float, max_rps: float, duration_seconds: float) -> None:
        _validate_non_negative(min_rps, "min_rps")
        _validate_positive(duration_seconds, "duration_seconds")
        if max_rps < min_rps:
            msg = f"max_rps ({max_rps}) must be >= min_rps ({min_rps})"
            raise ConfigurationError(msg)
        self._min_rps = float(min_rps)
        self._max_rps = float(max_rps)
        self._duration = float(duration_seconds)

    @property
    def min_rps(self) -> float:
        return self._min_rps

    @property
    def max_rps(self) -> float:
        return self._max_rps

    @property
    def duration_seconds(self) -> float:
        return self._duration

    def target_rps(self, elapsed: float) -> float:
        """Return the instantaneous target RPS at *elapsed* seconds.

        Args:
            elapsed: Seconds since the run started.  Negative values are
                treated as zero.

        Returns:
            Target requests per second, within ``[min_rps, max_rps]``.
        """
        if self._min_rps == self._max_rps:
            return self._max_rps
        progress = min(max(elapsed, 0.0) / self._duration, 1.0)
        return self._at_progress(progress)

    def iter_targets(self, tick_interval: float = 1.0) -> Iterator[tuple[float, float]]:
        """Yield ``(elapsed_seconds, target_rps)`` for every tick of the run.

        Ticks start at zero and stop before ``duration_seconds``; the run
        ends when the duration expires, so no tick fires at that instant.

        Args:
            tick_interval: Seconds between ticks.  Defaults to 1.0.

        Yields:
            ``(elapsed_seconds, target_rps)`` tuples.
        """
        _validate_positive(tick_interval, "tick_interval")
        index = 0
        while True:
            # Multiply instead of accumulating to avoid float drift
            elapsed = index * tick_interval
            if elapsed >= self._duration:
                return
            yield (elapsed, self.target_rps(elapsed))
            index += 1

    def _lerp(self, fraction: float) -> float:
        if fraction >= 1.0:
            return self._max_rps
        return self._min_rps + (self._max_rps - self._min_rps) * fraction

    @abstractmethod
    def _at_progress(self, progress: float) -> float:
        """Return the target RPS for *progress* in ``[0, 1]``."""

    @abstractmethod
    def describe(self) -> str:
        """Return a human-readable description of this curve.

        Returns:
            A short string summarising the curve, suitable for logs and
            report headers.
        """


def _validate_positive(value: float, name: str) -> None:
    """Raise :class:`ConfigurationError` if *value* is not strictly positive.

    Args:
        value: The numeric value to validate.
        name: Parameter name used in the error message.

    Raises:
        ConfigurationError: If *value* is not > 0.
    """
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigurationError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`ConfigurationError` if *value* is negative.

    Args:
        value: The numeric value to validate.
        name: Parameter name used in the error message.

    Raises:
        ConfigurationError: If *value* is < 0.
    """
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigurationError(msg)
