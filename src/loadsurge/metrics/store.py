"""Thread-safe append-only time-series storage for one run."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from loadsurge.metrics.models import TimeSeries

if TYPE_CHECKING:
    from loadsurge.metrics.models import ErrorRatePoint, ThroughputPoint


class TimeSeriesStore:
    """Throughput and error-rate points appended once per reporting tick.

    The run's reporter appends; any caller may read at any time, including
    after the run ended.  A ``threading.Lock`` keeps readers from seeing a
    throughput point without its matching error-rate point.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._throughput: list[ThroughputPoint] = []
        self._error_rates: list[ErrorRatePoint] = []
        self._lock = threading.Lock()

    def append(self, throughput: ThroughputPoint, error_rate: ErrorRatePoint) -> None:
        """Append the points of one reporting tick.

        Args:
            throughput: Throughput point for the tick.
            error_rate: Error-rate point for the same tick.
        """
        with self._lock:
            self._throughput.append(throughput)
            self._error_rates.append(error_rate)

    def recent(self, limit: int | None = None) -> TimeSeries:
        """Return points oldest-first, truncated to the newest *limit*.

        Args:
            limit: Maximum number of points per series.  None returns all.

        Returns:
            A copy of the stored series.

        Raises:
            ValueError: If *limit* is given and is not positive.
        """
        if limit is not None and limit < 1:
            msg = f"limit must be positive, got {limit}"
            raise ValueError(msg)
        with self._lock:
            start = 0 if limit is None else max(len(self._throughput) - limit, 0)
            return TimeSeries(
                throughput=self._throughput[start:],
                error_rates=self._error_rates[start:],
            )

    def latest(self) -> ThroughputPoint | None:
        """Return the most recent throughput point, or None if empty."""
        with self._lock:
            if not self._throughput:
                return None
            return self._throughput[-1]

    def __len__(self) -> int:
        """Return the number of stored ticks."""
        with self._lock:
            return len(self._throughput)
