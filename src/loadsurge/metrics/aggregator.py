"""Per-run metric aggregation.

One ``MetricsAggregator`` belongs to exactly one run and is fed only from
that run's outcome path, so it needs no locking.  Two kinds of state are
kept, as in any interval reporter:

- **Interval**: counters reset by every :meth:`MetricsAggregator.snapshot`.
- **Cumulative**: exact all-time counters, a bounded latency window and an
  HDR histogram, never reset.
"""

from __future__ import annotations

import time
from collections import Counter, deque
from typing import TYPE_CHECKING

from loadsurge.metrics.histogram import LatencyHistogram
from loadsurge.metrics.models import MetricsSnapshot, ResponseTimeStats, RunMetrics
from loadsurge.metrics.stats import RunningStats, compute_percentiles

if TYPE_CHECKING:
    from loadsurge.metrics.models import RequestOutcome
    from loadsurge.simulation.models import SimulationRun

DEFAULT_SAMPLE_CAPACITY = 10_000


class MetricsAggregator:
    """Turns a stream of ``RequestOutcome`` into counters and statistics.

    Outcomes may arrive in any order relative to dispatch; only their
    arrival matters for interval bucketing.  Latencies are retained in a
    ring buffer of *sample_capacity* entries for windowed percentiles,
    while totals, mean and standard deviation stay exact for the whole run.

    Attributes:
        sample_capacity: Maximum number of retained latency samples.
    """

    def __init__(self, *, sample_capacity: int = DEFAULT_SAMPLE_CAPACITY) -> None:
        """Initialize an empty aggregator.

        Args:
            sample_capacity: Size of the latency ring buffer.

        Raises:
            ValueError: If *sample_capacity* is not positive.
        """
        if sample_capacity < 1:
            msg = f"sample_capacity must be positive, got {sample_capacity}"
            raise ValueError(msg)
        self.sample_capacity = sample_capacity

        self._samples: deque[float] = deque(maxlen=sample_capacity)
        self._running = RunningStats()
        self._histogram = LatencyHistogram()

        # Cumulative counters
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._skipped = 0
        self._dispatched = 0
        self._errors_by_status: Counter[int] = Counter()
        self._errors_by_kind: Counter[str] = Counter()

        # Interval counters (reset on each snapshot)
        self._tick_completed = 0
        self._tick_failed = 0
        self._tick_dispatched = 0
        self._tick_skipped = 0
        self._tick_errors_by_status: Counter[int] = Counter()

        self._target_rps = 0.0
        self._last_snapshot = time.monotonic()

    @property
    def total_requests(self) -> int:
        return self._total

    @property
    def successful_requests(self) -> int:
        return self._successful

    @property
    def failed_requests(self) -> int:
        return self._failed

    @property
    def skipped_requests(self) -> int:
        return self._skipped

    @property
    def dispatched_requests(self) -> int:
        return self._dispatched

    @property
    def in_flight(self) -> int:
        """Requests dispatched but not yet recorded."""
        return self._dispatched - self._total

    @property
    def sample_count(self) -> int:
        """Number of latencies currently retained in the window."""
        return len(self._samples)

    def record(self, outcome: RequestOutcome) -> None:
        """Account for one completed request in O(1).

        Args:
            outcome: The request outcome.  Its latency joins the window only
                if the target actually answered.
        """
        self._total += 1
        self._tick_completed += 1

        if outcome.success:
            self._successful += 1
        else:
            self._failed += 1
            self._tick_failed += 1
            if outcome.has_response:
                self._errors_by_status[outcome.status_code] += 1
                self._tick_errors_by_status[outcome.status_code] += 1
            self._errors_by_kind[outcome.error_kind or "unknown"] += 1

        if outcome.has_response:
            self._samples.append(outcome.latency_ms)
            self._running.add(outcome.latency_ms)
            self._histogram.record(outcome.latency_ms)

    def record_dispatch(self, dispatched: int, skipped: int, target_rps: float) -> None:
        """Account for one tick's dispatch decision.

        Args:
            dispatched: Requests handed to the worker pool.
            skipped: Requests dropped because the pool was saturated.
            target_rps: Rate model output for the tick.
        """
        self._dispatched += dispatched
        self._tick_dispatched += dispatched
        self._skipped += skipped
        self._tick_skipped += skipped
        self._target_rps = target_rps

    def response_time_stats(self) -> ResponseTimeStats:
        """Return statistics over the retained latency window."""
        return compute_percentiles(self._samples)

    def all_time_stats(self) -> ResponseTimeStats:
        """Return statistics over every response of the run.

        Count, min, max, mean and standard deviation are exact; the
        percentiles come from the HDR histogram.
        """
        running = self._running
        if running.count == 0:
            return ResponseTimeStats()
        median, p95, p99 = self._histogram.percentiles(50.0, 95.0, 99.0)
        return ResponseTimeStats(
            count=running.count,
            min=running.min,
            max=running.max,
            mean=running.mean,
            median=median,
            p95=p95,
            p99=p99,
            std_dev=running.std_dev,
        )

    def snapshot(self, elapsed_seconds: float) -> MetricsSnapshot:
        """Build a snapshot for the interval since the previous call.

        Resets the interval counters.

        Args:
            elapsed_seconds: Seconds since the run started.

        Returns:
            The interval snapshot with cumulative totals attached.
        """
        now = time.monotonic()
        interval = max(now - self._last_snapshot, 0.001)
        self._last_snapshot = now

        snapshot = MetricsSnapshot(
            timestamp=time.time(),
            elapsed_seconds=elapsed_seconds,
            target_rps=self._target_rps,
            achieved_rps=self._tick_completed / interval,
            interval_requests=self._tick_completed,
            interval_errors=self._tick_failed,
            interval_dispatched=self._tick_dispatched,
            interval_skipped=self._tick_skipped,
            total_requests=self._total,
            successful_requests=self._successful,
            failed_requests=self._failed,
            skipped_requests=self._skipped,
            in_flight=self.in_flight,
            response_time_stats=self.response_time_stats(),
            errors_by_status=dict(self._errors_by_status),
            errors_by_kind=dict(self._errors_by_kind),
            interval_error_code=_most_common(self._tick_errors_by_status),
        )
        self._reset_interval()
        return snapshot

    def freeze(self, run: SimulationRun) -> RunMetrics:
        """Capture the final metrics of a terminated run.

        Args:
            run: The run, already in a terminal state.

        Returns:
            Immutable run metrics for reports and persistence.
        """
        end_time = run.end_time if run.end_time is not None else time.time()
        return RunMetrics(
            run_id=run.run_id,
            name=run.config.name,
            status=run.status.value,
            start_time=run.start_time,
            end_time=end_time,
            total_requests=self._total,
            successful_requests=self._successful,
            failed_requests=self._failed,
            skipped_requests=self._skipped,
            response_times=self.response_time_stats(),
            all_time=self.all_time_stats(),
        )

    def _reset_interval(self) -> None:
        self._tick_completed = 0
        self._tick_failed = 0
        self._tick_dispatched = 0
        self._tick_skipped = 0
        self._tick_errors_by_status.clear()


def _most_common(counter: Counter[int]) -> int | None:
    if not counter:
        return None
    return counter.most_common(1)[0][0]
