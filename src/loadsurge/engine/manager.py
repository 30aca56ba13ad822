"""Start/stop/query surface over all simulations of a process."""

from __future__ import annotations

import asyncio
import itertools
from enum import Enum
from typing import TYPE_CHECKING

from loadsurge._internal.config import LoadSurgeConfig
from loadsurge._internal.errors import LifecycleError, RunNotFoundError
from loadsurge._internal.logging import get_logger
from loadsurge.engine.generator import LoadGenerator
from loadsurge.metrics.analysis import MetricsRegistry, compare_services
from loadsurge.persistence import RunRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from loadsurge.hub.hub import BroadcastHub
    from loadsurge.metrics.models import (
        PerformanceComparison,
        PerformanceReport,
        ServicePerformance,
        TimeSeries,
    )
    from loadsurge.persistence import RunRepository
    from loadsurge.simulation.models import SimulationConfig, SimulationRun

logger = get_logger("engine.manager")


class StopResult(str, Enum):
    """Outcome of a stop request."""

    STOPPED = "stopped"
    NOT_FOUND = "not_found"
    ALREADY_TERMINAL = "already_terminal"


class SimulationManager:
    """Owns every simulation started in this process.

    Wires together: configuration validation, one ``LoadGenerator`` task
    per run, the shared broadcast hub, the registry of frozen metrics and
    an optional repository.  Runs are independent; any number may be
    active at once.  All methods must be called from the event loop that
    runs the simulations.

    Attributes:
        registry: Frozen metrics of every terminated run.
        settings: Engine settings handed to each generator.
    """

    def __init__(
        self,
        *,
        hub: BroadcastHub | None = None,
        settings: LoadSurgeConfig | None = None,
        repository: RunRepository | None = None,
        registry: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            hub: Hub receiving every run's events.
            settings: Engine settings.  Defaults to built-in values.
            repository: Where terminated runs are saved, if anywhere.  New
                run ids start after the largest id it already holds.
            registry: Registry for frozen metrics.  A new one by default.
        """
        self.settings = settings or LoadSurgeConfig()
        self.registry = registry or MetricsRegistry()
        self._hub = hub
        self._repository = repository
        self._generators: dict[int, LoadGenerator] = {}
        self._tasks: dict[int, asyncio.Task[SimulationRun]] = {}
        # Ids continue after runs already saved by earlier processes
        last_saved = max(repository.list_ids(), default=0) if repository is not None else 0
        self._ids = itertools.count(last_saved + 1)
        self._closed = False

    def start(self, config: SimulationConfig) -> int:
        """Validate *config* and start a run.

        Returns:
            The new run id.

        Raises:
            ConfigurationError: If *config* is invalid.  No run is created.
            LifecycleError: If the manager was shut down.
        """
        if self._closed:
            raise LifecycleError("simulation manager is shut down")
        config.validate()

        run_id = next(self._ids)
        generator = LoadGenerator(
            run_id,
            config,
            hub=self._hub,
            settings=self.settings,
            on_terminal=self._on_terminal,
        )
        self._generators[run_id] = generator
        self._tasks[run_id] = asyncio.create_task(generator.run(), name=f"simulation-{run_id}")
        logger.info("Started simulation %d (%s) against %s", run_id, config.name, config.target_url)
        return run_id

    async def run(self, config: SimulationConfig) -> SimulationRun:
        """Start a run and wait for it to terminate."""
        return await self.wait(self.start(config))

    def stop(self, run_id: int) -> StopResult:
        """Request cancellation of a run.

        Returns:
            ``STOPPED`` if the request was accepted, otherwise why not.
        """
        generator = self._generators.get(run_id)
        if generator is None:
            return StopResult.NOT_FOUND
        try:
            generator.stop()
        except LifecycleError:
            return StopResult.ALREADY_TERMINAL
        return StopResult.STOPPED

    def get(self, run_id: int) -> SimulationRun:
        """Return a snapshot of one run.

        Raises:
            RunNotFoundError: If *run_id* is unknown.
        """
        return self._generator(run_id).snapshot()

    def list_runs(self) -> list[SimulationRun]:
        """Return snapshots of every run, oldest first."""
        return [g.snapshot() for _, g in sorted(self._generators.items())]

    def active_runs(self) -> list[int]:
        return [rid for rid, g in self._generators.items() if not g.status.is_terminal]

    def time_series(self, run_id: int, limit: int | None = None) -> TimeSeries:
        """Return a run's points oldest-first, truncated to the newest *limit*.

        Raises:
            RunNotFoundError: If *run_id* is unknown.
            ValueError: If *limit* is not positive.
        """
        return self._generator(run_id).store.recent(limit)

    def compare_services(self, services: Sequence[ServicePerformance]) -> PerformanceComparison:
        return compare_services(services)

    def generate_report(self, run_ids: Iterable[int]) -> PerformanceReport:
        """Report over terminated runs; unknown or live ids are skipped."""
        return self.registry.generate_report(run_ids)

    async def wait(self, run_id: int) -> SimulationRun:
        """Wait for *run_id* to terminate and return its final snapshot.

        Raises:
            RunNotFoundError: If *run_id* is unknown.
        """
        return await self._generator(run_id).wait()

    async def shutdown(self) -> None:
        """Stop every live run and wait for all of them to terminate."""
        self._closed = True
        for run_id in self.active_runs():
            self.stop(run_id)
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Simulation manager shut down (%d runs)", len(tasks))

    def _generator(self, run_id: int) -> LoadGenerator:
        generator = self._generators.get(run_id)
        if generator is None:
            raise RunNotFoundError(run_id)
        return generator

    def _on_terminal(self, generator: LoadGenerator) -> None:
        metrics = generator.metrics
        if metrics is None:
            return
        self.registry.add(metrics)
        if self._repository is None:
            return
        record = RunRecord.build(generator.snapshot(), metrics, generator.store.recent())
        try:
            self._repository.save(record)
        except OSError:
            logger.exception("Failed to save simulation %d", generator.run_id)
