"""All-time latency histogram backed by HdrHistogram.

The bounded latency window only sees recent responses; this histogram
sees every response of a run in constant memory.  Values are kept as
integer microseconds because HdrHistogram only stores integers.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# 1 microsecond to 60 seconds, three significant digits
_LOWEST_US = 1
_HIGHEST_US = 60_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Millisecond-facing wrapper around :class:`HdrHistogram`.

    Latencies above 60 seconds are clamped to the highest trackable value
    so that a hung request can never fail to record.
    """

    def __init__(self) -> None:
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            _LOWEST_US, _HIGHEST_US, _SIGNIFICANT_DIGITS
        )

    def __len__(self) -> int:
        return int(self._histogram.total_count)

    def record(self, latency_ms: float) -> None:
        value_us = int(latency_ms * 1000)
        self._histogram.record_value(max(_LOWEST_US, min(value_us, _HIGHEST_US)))

    def percentile(self, percentile: float) -> float:
        """Return the latency in milliseconds at *percentile* (0-100).

        Returns 0.0 for an empty histogram.
        """
        if self._histogram.total_count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0

    def percentiles(self, *percentiles: float) -> tuple[float, ...]:
        return tuple(self.percentile(p) for p in percentiles)
