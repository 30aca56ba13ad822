"""Service comparison and multi-run performance reports."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

from loadsurge._internal.logging import get_logger
from loadsurge.metrics.models import (
    ComparisonSummary,
    PerformanceComparison,
    PerformanceReport,
    SimulationSummary,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from loadsurge.metrics.models import RunMetrics, ServicePerformance

logger = get_logger("metrics.analysis")

# A challenger only wins on throughput if its p95 stays under this multiple
# of the current best's p95.
LATENCY_TOLERANCE = 2.0

MIGRATE_GAP = 50.0
OPTIMIZE_GAP = 20.0

LOW_SUCCESS_RATE = 95.0
HIGH_P95_MS = 2000.0

ACCEPTABLE = "Performance metrics are within acceptable ranges."


def compare_services(services: Sequence[ServicePerformance]) -> PerformanceComparison:
    """Pick the best performer among *services* and quantify the gap.

    Services are scanned in order; a later service replaces the current
    best only if it has a strictly higher ``max_rps`` and its p95 latency is
    under twice the current best's.  Ties therefore keep the first seen.
    The gap is the winner's ``max_rps`` above the mean, as a percentage.

    Args:
        services: Benchmarks to compare.

    Returns:
        The comparison; ``summary`` is None for an empty input.
    """
    if not services:
        return PerformanceComparison()

    best = services[0]
    for service in services[1:]:
        if (
            service.max_rps > best.max_rps
            and service.p95_latency_ms < LATENCY_TOLERANCE * best.p95_latency_ms
        ):
            best = service

    mean_rps = sum(s.max_rps for s in services) / len(services)
    gap = (best.max_rps - mean_rps) / mean_rps * 100 if mean_rps > 0 else 0.0
    category, recommendation = _recommend(best, gap)

    return PerformanceComparison(
        services=list(services),
        summary=ComparisonSummary(
            best_performer=best.name,
            performance_gap=gap,
            recommendation=recommendation,
            category=category,
        ),
    )


def _recommend(best: ServicePerformance, gap: float) -> tuple[str, str]:
    if gap > MIGRATE_GAP:
        return (
            "migrate",
            f"Consider migrating services to {best.name} ({best.technology}) for significant "
            f"performance gains. Performance improvement potential: {gap:.1f}%",
        )
    if gap > OPTIMIZE_GAP:
        return (
            "consider_optimization",
            f"{best.name} ({best.technology}) shows better performance. Consider optimization "
            "or migration for critical services.",
        )
    return (
        "minimal",
        "Performance differences are minimal. Current architecture choices are reasonable.",
    )


def summarize(metrics: RunMetrics) -> SimulationSummary:
    """Reduce frozen run metrics to the figures a report shows."""
    duration = metrics.duration_seconds
    total = metrics.total_requests
    return SimulationSummary(
        name=f"Simulation-{metrics.run_id}",
        duration_seconds=duration,
        total_requests=total,
        average_rps=total / duration if duration > 0 else 0.0,
        success_rate=metrics.successful_requests / total * 100 if total else 0.0,
        avg_response_time_ms=metrics.all_time.mean,
        p95_response_time_ms=metrics.all_time.p95,
    )


def build_report(runs: Iterable[RunMetrics]) -> PerformanceReport:
    """Build a report over already-resolved run metrics."""
    summaries = [summarize(m) for m in runs]
    return PerformanceReport(
        generated_at=time.time(),
        simulations=summaries,
        insights=_insights(summaries),
        recommendations=_recommendations(summaries),
    )


def _insights(summaries: list[SimulationSummary]) -> list[str]:
    if not summaries:
        return []
    rates = [s.average_rps for s in summaries]
    avg_p95 = sum(s.p95_response_time_ms for s in summaries) / len(summaries)
    return [
        f"Average throughput across simulations: {sum(rates) / len(rates):.0f} RPS",
        f"Peak throughput achieved: {max(rates):.0f} RPS",
        f"Average P95 response time: {avg_p95:.1f}ms",
    ]


def _recommendations(summaries: list[SimulationSummary]) -> list[str]:
    recommendations: list[str] = []
    for s in summaries:
        # A run that sent nothing has no success rate to judge
        if s.total_requests and s.success_rate < LOW_SUCCESS_RATE:
            recommendations.append(
                f"Simulation '{s.name}' has low success rate ({s.success_rate:.1f}%). "
                "Consider investigating error causes."
            )
    for s in summaries:
        if s.p95_response_time_ms > HIGH_P95_MS:
            recommendations.append(
                f"Simulation '{s.name}' has high P95 latency ({s.p95_response_time_ms:.0f}ms). "
                "Consider performance optimization."
            )
    if not recommendations:
        recommendations.append(ACCEPTABLE)
    return recommendations


class MetricsRegistry:
    """Frozen metrics of every terminated run, keyed by run id.

    Written once per run when it terminates, read by report generation;
    the lock covers the dictionary only.
    """

    def __init__(self) -> None:
        self._runs: dict[int, RunMetrics] = {}
        self._lock = threading.Lock()

    def add(self, metrics: RunMetrics) -> None:
        with self._lock:
            self._runs[metrics.run_id] = metrics

    def get(self, run_id: int) -> RunMetrics | None:
        with self._lock:
            return self._runs.get(run_id)

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._runs

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)

    def generate_report(self, run_ids: Iterable[int]) -> PerformanceReport:
        """Build a report over *run_ids*, silently skipping unknown ids.

        Args:
            run_ids: Runs to include, in the order they should appear.

        Returns:
            A report; empty when none of the ids are known.
        """
        found: list[RunMetrics] = []
        for run_id in run_ids:
            metrics = self.get(run_id)
            if metrics is None:
                logger.debug("Skipping unknown run %s in report", run_id)
                continue
            found.append(metrics)
        return build_report(found)
