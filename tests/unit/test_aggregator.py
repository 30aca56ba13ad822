"""Tests for MetricsAggregator."""

from __future__ import annotations

import time

import pytest

from loadsurge.metrics.aggregator import MetricsAggregator
from loadsurge.metrics.models import RequestOutcome
from loadsurge.simulation.models import RunStatus, SimulationConfig, SimulationRun


def _ok(latency_ms: float = 10.0) -> RequestOutcome:
    return RequestOutcome(
        timestamp=time.time(),
        latency_ms=latency_ms,
        success=True,
        status_code=200,
        content_length=100,
    )


def _status_error(status_code: int = 500, latency_ms: float = 5.0) -> RequestOutcome:
    return RequestOutcome(
        timestamp=time.time(),
        latency_ms=latency_ms,
        success=False,
        status_code=status_code,
        error=f"HTTP {status_code}",
        error_kind="status",
    )


def _transport_error() -> RequestOutcome:
    return RequestOutcome(
        timestamp=time.time(),
        latency_ms=1.0,
        success=False,
        error="ClientConnectorError: refused",
        error_kind="transport",
    )


class TestRecord:
    def test_counts_success_and_failure(self):
        agg = MetricsAggregator()
        agg.record_dispatch(4, 0, 4.0)
        agg.record(_ok())
        agg.record(_ok())
        agg.record(_status_error())
        agg.record(_transport_error())

        assert agg.total_requests == 4
        assert agg.successful_requests == 2
        assert agg.failed_requests == 2
        assert agg.total_requests == agg.successful_requests + agg.failed_requests
        assert agg.in_flight == 0

    def test_only_responses_contribute_latency(self):
        agg = MetricsAggregator()
        agg.record(_ok(20.0))
        agg.record(_status_error(latency_ms=40.0))
        agg.record(_transport_error())

        assert agg.sample_count == 2
        stats = agg.response_time_stats()
        assert stats.count == 2
        assert stats.mean == pytest.approx(30.0)

    def test_out_of_order_arrival(self):
        """Arrival order does not affect the statistics."""
        forward = MetricsAggregator()
        backward = MetricsAggregator()
        latencies = [5.0, 50.0, 15.0, 500.0, 25.0]
        for latency in latencies:
            forward.record(_ok(latency))
        for latency in reversed(latencies):
            backward.record(_ok(latency))
        assert forward.response_time_stats() == backward.response_time_stats()

    def test_window_is_bounded_but_totals_are_exact(self):
        agg = MetricsAggregator(sample_capacity=10)
        for i in range(1, 101):
            agg.record(_ok(float(i)))

        assert agg.sample_count == 10
        windowed = agg.response_time_stats()
        assert windowed.min == 91.0

        all_time = agg.all_time_stats()
        assert all_time.count == 100
        assert all_time.min == 1.0
        assert all_time.max == 100.0
        assert all_time.mean == pytest.approx(50.5)

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError, match="sample_capacity"):
            MetricsAggregator(sample_capacity=0)

    def test_errors_broken_down(self):
        agg = MetricsAggregator()
        agg.record(_status_error(500))
        agg.record(_status_error(500))
        agg.record(_status_error(503))
        agg.record(_transport_error())

        snapshot = agg.snapshot(elapsed_seconds=1.0)
        assert snapshot.errors_by_status == {500: 2, 503: 1}
        assert snapshot.errors_by_kind == {"status": 3, "transport": 1}


class TestDispatch:
    def test_skipped_are_not_requests(self):
        agg = MetricsAggregator()
        agg.record_dispatch(dispatched=3, skipped=7, target_rps=10.0)

        assert agg.dispatched_requests == 3
        assert agg.skipped_requests == 7
        assert agg.total_requests == 0
        assert agg.in_flight == 3


class TestSnapshot:
    def test_interval_counters_reset(self):
        agg = MetricsAggregator()
        agg.record_dispatch(2, 1, 3.0)
        agg.record(_ok())
        agg.record(_status_error(502))

        first = agg.snapshot(elapsed_seconds=1.0)
        assert first.interval_requests == 2
        assert first.interval_errors == 1
        assert first.interval_dispatched == 2
        assert first.interval_skipped == 1
        assert first.interval_error_rate == pytest.approx(50.0)
        assert first.interval_skip_rate == pytest.approx(100 / 3)
        assert first.interval_error_code == 502
        assert first.target_rps == 3.0

        second = agg.snapshot(elapsed_seconds=2.0)
        assert second.interval_requests == 0
        assert second.interval_errors == 0
        assert second.interval_error_rate == 0.0
        assert second.interval_error_code is None
        # Cumulative values survive the reset
        assert second.total_requests == 2
        assert second.failed_requests == 1
        assert second.skipped_requests == 1

    def test_achieved_rps_is_positive_after_completions(self):
        agg = MetricsAggregator()
        for _ in range(5):
            agg.record(_ok())
        snapshot = agg.snapshot(elapsed_seconds=1.0)
        assert snapshot.achieved_rps > 0


class TestFreeze:
    def test_freeze_captures_run(self):
        config = SimulationConfig(
            target_url="http://localhost/", min_rps=1, max_rps=10, duration_seconds=5
        )
        run = SimulationRun(run_id=7, config=config, start_time=100.0)
        run.status = RunStatus.COMPLETED
        run.end_time = 110.0

        agg = MetricsAggregator()
        agg.record_dispatch(3, 2, 10.0)
        agg.record(_ok(10.0))
        agg.record(_ok(30.0))
        agg.record(_transport_error())

        metrics = agg.freeze(run)
        assert metrics.run_id == 7
        assert metrics.status == "completed"
        assert metrics.duration_seconds == pytest.approx(10.0)
        assert metrics.total_requests == 3
        assert metrics.successful_requests == 2
        assert metrics.failed_requests == 1
        assert metrics.skipped_requests == 2
        assert metrics.all_time.count == 2
        assert metrics.all_time.mean == pytest.approx(20.0)
