"""Response time statistics."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from loadsurge.metrics.models import ResponseTimeStats

if TYPE_CHECKING:
    from collections.abc import Iterable

_ZERO = ResponseTimeStats()


def compute_percentiles(samples: Iterable[float]) -> ResponseTimeStats:
    """Compute the response time distribution of *samples*.

    Percentiles use linear interpolation between order statistics: for
    percentile *p* over *n* sorted values the rank is ``p / 100 * (n - 1)``
    and a fractional rank blends the two bracketing values.  This is
    numpy's default ``"linear"`` method.  The input is never mutated.

    Args:
        samples: Latencies in milliseconds, in any order.

    Returns:
        The statistics; all zeros for an empty input.
    """
    arr = np.fromiter(samples, dtype=np.float64)
    if arr.size == 0:
        return _ZERO

    median, p95, p99 = np.percentile(arr, [50.0, 95.0, 99.0])
    std_dev = float(np.std(arr, ddof=1)) if arr.size > 1 else 0.0

    return ResponseTimeStats(
        count=int(arr.size),
        min=float(arr.min()),
        max=float(arr.max()),
        mean=float(arr.mean()),
        median=float(median),
        p95=float(p95),
        p99=float(p99),
        std_dev=std_dev,
    )


class RunningStats:
    """Exact all-time counters: count, sum, sum of squares, min and max.

    Updated in O(1) per value and never discards data, so mean and
    standard deviation stay exact however many samples are recorded.
    """

    def __init__(self) -> None:
        self.count = 0
        self.total = 0.0
        self.total_squares = 0.0
        self.min = math.inf
        self.max = -math.inf

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.total_squares += value * value
        if value < self.min:
            self.min = value
        if value > self.max:
            self.max = value

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    @property
    def std_dev(self) -> float:
        """Sample standard deviation, 0 for fewer than two values."""
        if self.count < 2:
            return 0.0
        variance = (self.total_squares - self.total * self.total / self.count) / (self.count - 1)
        # Rounding can push a near-zero variance slightly negative
        return math.sqrt(max(variance, 0.0))
