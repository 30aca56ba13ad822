"""Metric dataclasses for LoadSurge."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "ComparisonSummary",
    "ErrorRatePoint",
    "MetricsSnapshot",
    "PerformanceComparison",
    "PerformanceReport",
    "RequestOutcome",
    "ResponseTimeStats",
    "RunMetrics",
    "ServicePerformance",
    "SimulationSummary",
    "ThroughputPoint",
    "TimeSeries",
]


@dataclass(frozen=True)
class RequestOutcome:
    """Result of one dispatched request.

    Attributes:
        timestamp: Wall-clock time (Unix seconds) the request completed.
        latency_ms: Time from dispatch to completion in milliseconds.
        success: True only for a 2xx response.
        status_code: HTTP status code, 0 when no response was received.
        content_length: Response body size in bytes.
        error: Error message for failed requests, None otherwise.
        error_kind: ``"status"``, ``"validation"``, ``"timeout"``,
            ``"transport"`` or ``"abandoned"`` for failed requests, None
            otherwise.
    """

    timestamp: float
    latency_ms: float
    success: bool
    status_code: int = 0
    content_length: int = 0
    error: str | None = None
    error_kind: str | None = None

    @property
    def has_response(self) -> bool:
        """Return True if the target answered with any status code."""
        return self.status_code > 0


@dataclass(frozen=True)
class ResponseTimeStats:
    """Response time distribution in milliseconds.

    A pure function of a sample set; an empty set yields all zeros.

    Attributes:
        count: Number of samples the statistics were computed from.
        min: Smallest sample.
        max: Largest sample.
        mean: Arithmetic mean.
        median: 50th percentile.
        p95: 95th percentile.
        p99: 99th percentile.
        std_dev: Sample standard deviation (0 for fewer than two samples).
    """

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    std_dev: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class ThroughputPoint:
    """Throughput over one reporting interval.

    Attributes:
        timestamp: Wall-clock time (Unix seconds) at the end of the interval.
        elapsed_seconds: Seconds since the run started.
        rps: Requests completed per second in the interval.
        target_rps: Rate model output for the interval.
        dispatched: Requests handed to the worker pool in the interval.
        skipped: Dispatches dropped for lack of a free slot.
    """

    timestamp: float
    elapsed_seconds: float
    rps: float
    target_rps: float
    dispatched: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class ErrorRatePoint:
    """Error and skip rates over one reporting interval.

    Attributes:
        timestamp: Wall-clock time (Unix seconds) at the end of the interval.
        elapsed_seconds: Seconds since the run started.
        error_rate: Failed / completed requests, as a percentage.
        skip_rate: Skipped / attempted dispatches, as a percentage.
        error_code: Most frequent HTTP error status, if any.
    """

    timestamp: float
    elapsed_seconds: float
    error_rate: float
    skip_rate: float = 0.0
    error_code: int | None = None


@dataclass(frozen=True)
class TimeSeries:
    """Ordered throughput and error-rate points, oldest first."""

    throughput: list[ThroughputPoint] = field(default_factory=list)
    error_rates: list[ErrorRatePoint] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.throughput)

    def to_dict(self) -> dict[str, Any]:
        return {
            "throughput": [dataclasses.asdict(p) for p in self.throughput],
            "error_rates": [dataclasses.asdict(p) for p in self.error_rates],
        }


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time view of a run, emitted every reporting interval.

    Attributes:
        timestamp: Wall-clock time (Unix seconds) of the snapshot.
        elapsed_seconds: Seconds since the run started.
        target_rps: Latest rate model output.
        achieved_rps: Requests completed per second in the interval.
        interval_requests: Requests completed in the interval.
        interval_errors: Requests failed in the interval.
        interval_dispatched: Requests dispatched in the interval.
        interval_skipped: Dispatches skipped in the interval.
        total_requests: All-time completed requests.
        successful_requests: All-time successful requests.
        failed_requests: All-time failed requests.
        skipped_requests: All-time skipped dispatches.
        in_flight: Requests dispatched but not yet completed.
        response_time_stats: Statistics over the retained latency window.
        errors_by_status: All-time error counts by HTTP status.
        errors_by_kind: All-time error counts by error kind.
        interval_error_code: Most frequent HTTP error status in the interval.
    """

    timestamp: float
    elapsed_seconds: float
    target_rps: float
    achieved_rps: float
    interval_requests: int
    interval_errors: int
    interval_dispatched: int
    interval_skipped: int
    total_requests: int
    successful_requests: int
    failed_requests: int
    skipped_requests: int
    in_flight: int
    response_time_stats: ResponseTimeStats
    errors_by_status: dict[int, int] = field(default_factory=dict)
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    interval_error_code: int | None = None

    @property
    def interval_error_rate(self) -> float:
        """Failed / completed requests in the interval, as a percentage."""
        if self.interval_requests == 0:
            return 0.0
        return self.interval_errors / self.interval_requests * 100

    @property
    def interval_skip_rate(self) -> float:
        """Skipped / attempted dispatches in the interval, as a percentage."""
        attempted = self.interval_dispatched + self.interval_skipped
        if attempted == 0:
            return 0.0
        return self.interval_skipped / attempted * 100


@dataclass(frozen=True)
class RunMetrics:
    """Frozen metrics of a terminated run, kept for reports.

    Attributes:
        run_id: Run identity.
        name: Simulation name.
        status: Terminal status value.
        start_time: Wall-clock start (Unix seconds).
        end_time: Wall-clock end (Unix seconds).
        total_requests: Completed requests.
        successful_requests: Successful requests.
        failed_requests: Failed requests.
        skipped_requests: Skipped dispatches.
        response_times: Statistics over the retained latency window.
        all_time: Statistics over every response; percentiles come from an
            HDR histogram and are exact to three significant digits.
    """

    run_id: int
    name: str
    status: str
    start_time: float
    end_time: float
    total_requests: int
    successful_requests: int
    failed_requests: int
    skipped_requests: int
    response_times: ResponseTimeStats
    all_time: ResponseTimeStats

    @property
    def duration_seconds(self) -> float:
        return max(self.end_time - self.start_time, 0.0)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunMetrics:
        values = dict(data)
        values["response_times"] = ResponseTimeStats(**values["response_times"])
        values["all_time"] = ResponseTimeStats(**values["all_time"])
        return cls(**values)


@dataclass(frozen=True)
class ServicePerformance:
    """A named service benchmark supplied by the caller for comparison.

    Attributes:
        name: Service name.
        technology: Stack label, e.g. ``"Go"``.
        max_rps: Highest sustained RPS.
        avg_latency_ms: Mean latency in milliseconds.
        p95_latency_ms: 95th percentile latency in milliseconds.
        error_rate: Error rate as a percentage.
    """

    name: str
    technology: str
    max_rps: float
    avg_latency_ms: float
    p95_latency_ms: float
    error_rate: float = 0.0


@dataclass(frozen=True)
class ComparisonSummary:
    """Outcome of a service comparison.

    Attributes:
        best_performer: Name of the winning service.
        performance_gap: Winner's RPS above the mean, as a percentage.
        recommendation: Human-readable advice.
        category: ``"migrate"``, ``"consider_optimization"`` or ``"minimal"``.
    """

    best_performer: str
    performance_gap: float
    recommendation: str
    category: str


@dataclass(frozen=True)
class PerformanceComparison:
    """Services compared side by side, with a summary when non-empty."""

    services: list[ServicePerformance] = field(default_factory=list)
    summary: ComparisonSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class SimulationSummary:
    """Key figures of one run inside a performance report.

    Attributes:
        name: ``"Simulation-<id>"``.
        duration_seconds: Run length.
        total_requests: Completed requests.
        average_rps: ``total_requests / duration_seconds``.
        success_rate: Successful / total requests, as a percentage.
        avg_response_time_ms: Mean latency over every response.
        p95_response_time_ms: All-time 95th percentile latency.
    """

    name: str
    duration_seconds: float
    total_requests: int
    average_rps: float
    success_rate: float
    avg_response_time_ms: float
    p95_response_time_ms: float


@dataclass(frozen=True)
class PerformanceReport:
    """Aggregated report over a set of runs.

    Attributes:
        generated_at: Wall-clock time (Unix seconds) of generation.
        simulations: Per-run summaries, in request order, unknown ids skipped.
        insights: Observations across the set.
        recommendations: Advice for flagged runs.
    """

    generated_at: float
    simulations: list[SimulationSummary] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)
