"""Tests for TimeSeriesStore."""

from __future__ import annotations

import threading
import time

import pytest

from loadsurge.metrics.models import ErrorRatePoint, ThroughputPoint
from loadsurge.metrics.store import TimeSeriesStore


def _points(elapsed: float, rps: float = 0.0) -> tuple[ThroughputPoint, ErrorRatePoint]:
    now = time.time()
    return (
        ThroughputPoint(timestamp=now, elapsed_seconds=elapsed, rps=rps, target_rps=rps),
        ErrorRatePoint(timestamp=now, elapsed_seconds=elapsed, error_rate=0.0),
    )


class TestTimeSeriesStore:
    def test_empty_store(self):
        store = TimeSeriesStore()
        assert len(store) == 0
        assert store.latest() is None
        series = store.recent()
        assert series.throughput == []
        assert series.error_rates == []

    def test_append_keeps_series_aligned(self):
        store = TimeSeriesStore()
        for i in range(3):
            store.append(*_points(float(i), rps=i * 10.0))

        series = store.recent()
        assert len(series) == 3
        assert [p.elapsed_seconds for p in series.throughput] == [0.0, 1.0, 2.0]
        assert [p.elapsed_seconds for p in series.error_rates] == [0.0, 1.0, 2.0]

    def test_latest(self):
        store = TimeSeriesStore()
        store.append(*_points(1.0, rps=5.0))
        store.append(*_points(2.0, rps=7.0))
        latest = store.latest()
        assert latest is not None
        assert latest.rps == 7.0

    def test_recent_limit_returns_newest(self):
        store = TimeSeriesStore()
        for i in range(10):
            store.append(*_points(float(i)))

        series = store.recent(limit=3)
        assert [p.elapsed_seconds for p in series.throughput] == [7.0, 8.0, 9.0]
        assert len(series.error_rates) == 3

    def test_recent_limit_larger_than_store(self):
        store = TimeSeriesStore()
        store.append(*_points(0.0))
        assert len(store.recent(limit=100)) == 1

    @pytest.mark.parametrize("limit", [0, -1])
    def test_recent_rejects_non_positive_limit(self, limit: int):
        store = TimeSeriesStore()
        with pytest.raises(ValueError, match="limit"):
            store.recent(limit=limit)

    def test_recent_returns_copy(self):
        store = TimeSeriesStore()
        store.append(*_points(0.0))
        series = store.recent()
        series.throughput.clear()
        assert len(store) == 1

    def test_to_dict(self):
        store = TimeSeriesStore()
        store.append(*_points(1.0, rps=3.0))
        data = store.recent().to_dict()
        assert data["throughput"][0]["rps"] == 3.0
        assert data["error_rates"][0]["error_rate"] == 0.0

    def test_concurrent_appends(self):
        store = TimeSeriesStore()

        def writer() -> None:
            for i in range(250):
                store.append(*_points(float(i)))

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        series = store.recent()
        assert len(series.throughput) == len(series.error_rates) == 1000
