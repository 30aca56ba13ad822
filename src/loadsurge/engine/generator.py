"""Per-simulation load generator: lifecycle, tick loop and reporting."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

from loadsurge._internal.config import LoadSurgeConfig
from loadsurge._internal.errors import EngineError, LifecycleError, LoadSurgeError
from loadsurge._internal.logging import RunLogger, get_logger
from loadsurge.engine.executor import RequestExecutor
from loadsurge.engine.scheduler import Scheduler
from loadsurge.engine.worker_pool import WorkerPool
from loadsurge.hub.events import ErrorEvent, SimulationCompleted, SimulationStarted, SimulationUpdate
from loadsurge.metrics.aggregator import MetricsAggregator
from loadsurge.metrics.models import ErrorRatePoint, RequestOutcome, ThroughputPoint
from loadsurge.metrics.store import TimeSeriesStore
from loadsurge.rates import build_curve
from loadsurge.simulation.models import RunStatus, SimulationRun, can_transition

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadsurge.engine.scheduler import TickCommand
    from loadsurge.hub.events import Event
    from loadsurge.hub.hub import BroadcastHub
    from loadsurge.metrics.models import RunMetrics
    from loadsurge.simulation.models import SimulationConfig

logger = get_logger("engine.generator")


class LoadGenerator:
    """Drives one simulation from start to a terminal state.

    Coordinates the rate curve, the worker pool, the metrics aggregator and
    the broadcast hub.  Every tick it dispatches the target rate scaled by
    the tick interval without waiting for a slot; requests that find the pool
    saturated are counted as skipped.  A separate reporter task snapshots
    the metrics every reporting interval.

    State machine: CREATED -> STARTING -> RUNNING -> COMPLETED (natural expiry)
                                                  -> CANCELLED (stop requested)
                   CREATED/STARTING/RUNNING -> FAILED (unrecoverable error)

    Attributes:
        config: The simulation being run.
    """

    def __init__(
        self,
        run_id: int,
        config: SimulationConfig,
        *,
        hub: BroadcastHub | None = None,
        settings: LoadSurgeConfig | None = None,
        on_terminal: Callable[[LoadGenerator], None] | None = None,
    ) -> None:
        """Initialize a generator in the CREATED state.

        Args:
            run_id: Identity of the run.
            config: Validated simulation configuration.
            hub: Hub receiving lifecycle and metrics events, if any.
            settings: Engine settings (tick, reporting and grace periods).
            on_terminal: Called once with this generator after the run
                reached a terminal state and its metrics were frozen.
        """
        self.config = config
        self._settings = settings or LoadSurgeConfig()
        self._hub = hub
        self._on_terminal = on_terminal

        self._run = SimulationRun(run_id=run_id, config=config)
        self._aggregator = MetricsAggregator(sample_capacity=self._settings.sample_capacity)
        self._store = TimeSeriesStore()
        self._pool = WorkerPool(config.concurrent_users)
        self._stop_event = asyncio.Event()
        self._done = asyncio.Event()
        self._metrics: RunMetrics | None = None
        self._started_at = time.monotonic()
        self._log = RunLogger(logger, run_id)

    @property
    def run_id(self) -> int:
        return self._run.run_id

    @property
    def status(self) -> RunStatus:
        return self._run.status

    @property
    def store(self) -> TimeSeriesStore:
        return self._store

    @property
    def metrics(self) -> RunMetrics | None:
        """Frozen metrics, available once the run is terminal."""
        return self._metrics

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def snapshot(self) -> SimulationRun:
        """Return a copy of the run state, safe to read at any time."""
        return self._run.snapshot()

    def stop(self) -> None:
        """Request cancellation.

        The tick loop exits at once; in-flight requests drain for the grace
        period.  A stop issued before the run reached RUNNING takes effect
        as soon as it does.

        Raises:
            LifecycleError: If the run is already terminal.
        """
        if self._run.status.is_terminal:
            msg = f"Simulation {self.run_id} already {self._run.status.value}"
            raise LifecycleError(msg)
        if not self._stop_event.is_set():
            self._log.info("Stop requested")
            self._stop_event.set()

    async def wait(self) -> SimulationRun:
        """Wait for a terminal state and return the final run snapshot."""
        await self._done.wait()
        return self.snapshot()

    async def run(self) -> SimulationRun:
        """Execute the full simulation lifecycle.

        Errors never propagate: configuration, preflight and engine failures
        end the run in FAILED with ``error`` set.  Only cancellation of the
        calling task is re-raised, after the run was closed as CANCELLED or
        FAILED.

        Returns:
            The final run snapshot.

        Raises:
            LifecycleError: If the generator was already run.
        """
        if self._run.status is not RunStatus.CREATED:
            msg = f"Simulation {self.run_id} was already started"
            raise LifecycleError(msg)

        self._transition(RunStatus.STARTING)
        try:
            await self._execute()
        except asyncio.CancelledError:
            if self._run.status is RunStatus.RUNNING:
                self._finish(RunStatus.CANCELLED)
            else:
                self._finish(RunStatus.FAILED, error="cancelled during startup")
            raise
        except LoadSurgeError as exc:
            self._log.error("Simulation failed: %s", exc)
            self._finish(RunStatus.FAILED, error=str(exc))
        except Exception as exc:
            self._log.exception("Simulation failed unexpectedly")
            self._finish(RunStatus.FAILED, error=f"{type(exc).__name__}: {exc}")
        else:
            self._finish(RunStatus.CANCELLED if self.stop_requested else RunStatus.COMPLETED)
        return self.snapshot()

    async def _execute(self) -> None:
        config = self.config
        curve = build_curve(config)
        scheduler = Scheduler(curve, self._settings.tick_interval)

        async with RequestExecutor(config) as executor:
            if config.preflight:
                self._log.info("Probing %s", config.target_url)
                await executor.probe()

            self._run.start_time = time.time()
            self._started_at = time.monotonic()
            self._transition(RunStatus.RUNNING)
            self._log.info(
                "Running: target=%s, %s, concurrency=%d",
                config.target_url,
                curve.describe(),
                config.concurrent_users,
            )
            self._publish(SimulationStarted.from_run(self._run))

            reporter = asyncio.create_task(
                self._report_loop(), name=f"simulation-{self.run_id}-reporter"
            )
            try:
                await self._tick_loop(scheduler, executor)
            finally:
                abandoned = await self._pool.drain(self._settings.grace_period)
                self._record_abandoned(abandoned)
                reporter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await reporter

        # Final interval, so the series covers the drain
        self._report()

    async def _tick_loop(self, scheduler: Scheduler, executor: RequestExecutor) -> None:
        try:
            for command in scheduler.iter_commands():
                # Wait until the right time for this tick, waking early on stop
                if await self._sleep_until(command.elapsed_seconds):
                    return
                self._dispatch(command, executor)

            # Hold the last level until the duration expires
            await self._sleep_until(self.config.duration_seconds)
        except LoadSurgeError:
            raise
        except Exception as exc:
            self._log.exception("Tick loop failed")
            raise EngineError("Tick loop failed") from exc

    async def _sleep_until(self, elapsed_seconds: float) -> bool:
        """Sleep until *elapsed_seconds* into the run; return True on stop."""
        delay = self._started_at + elapsed_seconds - time.monotonic()
        if delay > 0 and not self._stop_event.is_set():
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        return self._stop_event.is_set()

    def _dispatch(self, command: TickCommand, executor: RequestExecutor) -> None:
        requested = command.request_count
        dispatched = 0
        for _ in range(requested):
            if not self._pool.try_submit(self._send(executor)):
                break
            dispatched += 1
        skipped = requested - dispatched

        self._aggregator.record_dispatch(dispatched, skipped, command.target_rps)
        self._run.dispatched_requests += dispatched
        self._run.skipped_requests += skipped
        self._run.target_rps = command.target_rps

        if skipped:
            self._log.debug(
                "Tick %d: pool saturated, skipped %d of %d requests",
                command.index,
                skipped,
                requested,
            )

    async def _send(self, executor: RequestExecutor) -> None:
        self._record(await executor.execute())

    def _record(self, outcome: RequestOutcome) -> None:
        self._aggregator.record(outcome)
        self._run.total_requests += 1
        if outcome.success:
            self._run.successful_requests += 1
        else:
            self._run.failed_requests += 1
            self._log.debug("Request failed (%s): %s", outcome.error_kind, outcome.error)

    def _record_abandoned(self, cancelled: int) -> None:
        # Cancelled tasks never record themselves; whatever was dispatched
        # but not recorded is accounted for here
        missing = self._aggregator.in_flight
        if not missing:
            return
        self._log.warning(
            "%d requests abandoned after %.1fs grace period (%d cancelled)",
            missing,
            self._settings.grace_period,
            cancelled,
        )
        now = time.time()
        for _ in range(missing):
            self._record(
                RequestOutcome(
                    timestamp=now,
                    latency_ms=self._settings.grace_period * 1000,
                    success=False,
                    error="abandoned after grace period",
                    error_kind="abandoned",
                )
            )

    async def _report_loop(self) -> None:
        interval = self._settings.report_interval
        while True:
            await asyncio.sleep(interval)
            self._report()

    def _report(self) -> None:
        elapsed = time.monotonic() - self._started_at
        snapshot = self._aggregator.snapshot(elapsed)

        self._store.append(
            ThroughputPoint(
                timestamp=snapshot.timestamp,
                elapsed_seconds=elapsed,
                rps=snapshot.achieved_rps,
                target_rps=snapshot.target_rps,
                dispatched=snapshot.interval_dispatched,
                skipped=snapshot.interval_skipped,
            ),
            ErrorRatePoint(
                timestamp=snapshot.timestamp,
                elapsed_seconds=elapsed,
                error_rate=snapshot.interval_error_rate,
                skip_rate=snapshot.interval_skip_rate,
                error_code=snapshot.interval_error_code,
            ),
        )
        self._run.current_rps = snapshot.achieved_rps
        self._run.latency = snapshot.response_time_stats
        self._publish(SimulationUpdate.from_snapshot(self.run_id, snapshot))

        self._log.debug(
            "%.1fs: target=%.1f rps, achieved=%.1f rps, p95=%.1fms, in_flight=%d, skipped=%d",
            elapsed,
            snapshot.target_rps,
            snapshot.achieved_rps,
            snapshot.response_time_stats.p95,
            snapshot.in_flight,
            snapshot.interval_skipped,
        )

    def _transition(self, target: RunStatus) -> None:
        current = self._run.status
        if not can_transition(current, target):
            msg = f"Simulation {self.run_id} cannot go from {current.value} to {target.value}"
            raise LifecycleError(msg)
        self._run.status = target
        self._log.debug("%s -> %s", current.value, target.value)

    def _finish(self, status: RunStatus, *, error: str | None = None) -> None:
        run = self._run
        self._transition(status)
        run.end_time = time.time()
        run.error = error
        duration = run.end_time - run.start_time
        run.average_rps = run.total_requests / duration if duration > 0 else 0.0
        if run.latency is None:
            run.latency = self._aggregator.response_time_stats()
        self._metrics = self._aggregator.freeze(run)

        if status is RunStatus.FAILED:
            self._publish(
                ErrorEvent(
                    error_type="simulation_failed",
                    message=error or "simulation failed",
                    run_id=self.run_id,
                )
            )
        self._publish(SimulationCompleted.from_run(run))

        self._log.info(
            "Simulation %s: duration=%.1fs, total=%d, successful=%d, failed=%d, "
            "skipped=%d, avg_rps=%.1f",
            status.value,
            duration,
            run.total_requests,
            run.successful_requests,
            run.failed_requests,
            run.skipped_requests,
            run.average_rps,
        )

        if self._on_terminal is not None:
            try:
                self._on_terminal(self)
            except Exception:
                self._log.exception("Terminal callback failed")
        self._done.set()

    def _publish(self, event: Event) -> None:
        if self._hub is not None:
            self._hub.broadcast(event)
