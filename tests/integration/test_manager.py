"""Integration tests for SimulationManager."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from loadsurge._internal.errors import ConfigurationError, LifecycleError, RunNotFoundError
from loadsurge.engine.manager import SimulationManager, StopResult
from loadsurge.metrics.models import ServicePerformance
from loadsurge.persistence import InMemoryRunRepository, JsonRunRepository
from loadsurge.simulation.models import RunStatus, SimulationConfig

if TYPE_CHECKING:
    from pathlib import Path

    from loadsurge._internal.config import LoadSurgeConfig


def _config(url: str, **overrides: object) -> SimulationConfig:
    fields: dict[str, object] = {
        "target_url": url,
        "min_rps": 10,
        "max_rps": 30,
        "duration_seconds": 0.5,
        "concurrent_users": 10,
        "request_timeout": 2.0,
    }
    fields.update(overrides)
    return SimulationConfig(**fields)  # type: ignore[arg-type]


@pytest.mark.timeout(30)
class TestSimulationManager:
    async def test_run_to_completion(self, echo_server: str, fast_settings: LoadSurgeConfig):
        manager = SimulationManager(settings=fast_settings)
        run = await manager.run(_config(f"{echo_server}/echo"))

        assert run.run_id == 1
        assert run.status is RunStatus.COMPLETED
        assert manager.get(1).status is RunStatus.COMPLETED
        assert manager.active_runs() == []
        assert 1 in manager.registry

    async def test_ids_are_sequential_and_runs_independent(
        self, echo_server: str, fast_settings: LoadSurgeConfig
    ):
        manager = SimulationManager(settings=fast_settings)
        first = manager.start(_config(f"{echo_server}/echo", name="first"))
        second = manager.start(_config(f"{echo_server}/error?status=500", name="second"))
        assert (first, second) == (1, 2)
        assert sorted(manager.active_runs()) == [1, 2]

        runs = await asyncio.gather(manager.wait(first), manager.wait(second))
        assert runs[0].failed_requests == 0
        assert runs[1].failed_requests == runs[1].total_requests
        assert [r.config.name for r in manager.list_runs()] == ["first", "second"]

    async def test_invalid_config_creates_no_run(self, fast_settings: LoadSurgeConfig):
        manager = SimulationManager(settings=fast_settings)
        with pytest.raises(ConfigurationError, match="max_rps"):
            manager.start(_config("http://localhost/", min_rps=10, max_rps=1))
        assert manager.list_runs() == []

    async def test_stop_results(self, echo_server: str, fast_settings: LoadSurgeConfig):
        manager = SimulationManager(settings=fast_settings)
        run_id = manager.start(_config(f"{echo_server}/echo", duration_seconds=30))
        await asyncio.sleep(0.2)

        assert manager.stop(99) is StopResult.NOT_FOUND
        assert manager.stop(run_id) is StopResult.STOPPED
        run = await manager.wait(run_id)
        assert run.status is RunStatus.CANCELLED
        assert manager.stop(run_id) is StopResult.ALREADY_TERMINAL

    async def test_unknown_run(self, fast_settings: LoadSurgeConfig):
        manager = SimulationManager(settings=fast_settings)
        with pytest.raises(RunNotFoundError, match="Simulation 5 not found"):
            manager.get(5)
        with pytest.raises(RunNotFoundError):
            manager.time_series(5)
        with pytest.raises(RunNotFoundError):
            await manager.wait(5)

    async def test_time_series(self, echo_server: str, fast_settings: LoadSurgeConfig):
        manager = SimulationManager(settings=fast_settings)
        run = await manager.run(_config(f"{echo_server}/echo"))

        full = manager.time_series(run.run_id)
        assert len(full) >= 2
        assert len(full.throughput) == len(full.error_rates)

        recent = manager.time_series(run.run_id, limit=1)
        assert recent.throughput == full.throughput[-1:]

        with pytest.raises(ValueError, match="limit"):
            manager.time_series(run.run_id, limit=0)

    async def test_generate_report(self, echo_server: str, fast_settings: LoadSurgeConfig):
        manager = SimulationManager(settings=fast_settings)
        run = await manager.run(_config(f"{echo_server}/echo"))

        report = manager.generate_report([run.run_id, 42])
        assert [s.name for s in report.simulations] == [f"Simulation-{run.run_id}"]
        summary = report.simulations[0]
        assert summary.total_requests == run.total_requests
        assert summary.success_rate == pytest.approx(100.0)
        assert len(report.insights) == 3

    async def test_compare_services(self, fast_settings: LoadSurgeConfig):
        manager = SimulationManager(settings=fast_settings)
        comparison = manager.compare_services(
            [
                ServicePerformance("go-api", "Go", 45_000, 20, 100),
                ServicePerformance("java-api", "Java", 12_000, 40, 150),
            ]
        )
        assert comparison.summary is not None
        assert comparison.summary.best_performer == "go-api"

    async def test_saves_terminated_runs(self, echo_server: str, fast_settings: LoadSurgeConfig):
        repository = InMemoryRunRepository()
        manager = SimulationManager(settings=fast_settings, repository=repository)
        run = await manager.run(_config(f"{echo_server}/echo"))

        record = repository.load(run.run_id)
        assert record.run["status"] == "completed"
        assert record.metrics.total_requests == run.total_requests
        assert len(record.time_series) >= 1

    async def test_saves_json_records(
        self, echo_server: str, fast_settings: LoadSurgeConfig, tmp_path: Path
    ):
        repository = JsonRunRepository(tmp_path)
        manager = SimulationManager(settings=fast_settings, repository=repository)
        run = await manager.run(_config(f"{echo_server}/echo"))

        assert repository.list_ids() == [run.run_id]
        assert repository.load(run.run_id).config == run.config

    async def test_ids_continue_after_saved_runs(
        self, echo_server: str, fast_settings: LoadSurgeConfig, tmp_path: Path
    ):
        """A second manager on the same directory never overwrites a record."""
        first = SimulationManager(settings=fast_settings, repository=JsonRunRepository(tmp_path))
        run_one = await first.run(_config(f"{echo_server}/echo", name="first", duration_seconds=0.3))

        second = SimulationManager(settings=fast_settings, repository=JsonRunRepository(tmp_path))
        run_two = await second.run(
            _config(f"{echo_server}/echo", name="second", duration_seconds=0.3)
        )

        assert (run_one.run_id, run_two.run_id) == (1, 2)
        repository = JsonRunRepository(tmp_path)
        assert repository.list_ids() == [1, 2]
        assert repository.load(1).config.name == "first"
        assert repository.load(2).config.name == "second"

    async def test_in_memory_repository_ids_continue(
        self, echo_server: str, fast_settings: LoadSurgeConfig
    ):
        repository = InMemoryRunRepository()
        await SimulationManager(settings=fast_settings, repository=repository).run(
            _config(f"{echo_server}/echo", duration_seconds=0.3)
        )
        manager = SimulationManager(settings=fast_settings, repository=repository)
        run = await manager.run(_config(f"{echo_server}/echo", duration_seconds=0.3))
        assert run.run_id == 2
        assert repository.list_ids() == [1, 2]

    async def test_shutdown_stops_live_runs(
        self, echo_server: str, fast_settings: LoadSurgeConfig
    ):
        manager = SimulationManager(settings=fast_settings)
        run_id = manager.start(_config(f"{echo_server}/echo", duration_seconds=30))
        await asyncio.sleep(0.2)

        await manager.shutdown()

        assert manager.get(run_id).status is RunStatus.CANCELLED
        with pytest.raises(LifecycleError, match="shut down"):
            manager.start(_config(f"{echo_server}/echo"))
