"""Save/load contract for terminated simulation runs."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from loadsurge._internal.errors import RunNotFoundError
from loadsurge._internal.logging import get_logger
from loadsurge.metrics.models import ErrorRatePoint, RunMetrics, ThroughputPoint, TimeSeries
from loadsurge.simulation.models import SimulationConfig

if TYPE_CHECKING:
    from loadsurge.simulation.models import SimulationRun

logger = get_logger("persistence")


@dataclass(frozen=True)
class RunRecord:
    """Everything kept about a run after it terminated.

    Attributes:
        config: The configuration the run was started with.
        run: Final run state as returned by ``SimulationRun.to_dict()``.
        metrics: Frozen run metrics.
        time_series: Throughput and error-rate points for the whole run.
    """

    config: SimulationConfig
    run: dict[str, Any]
    metrics: RunMetrics
    time_series: TimeSeries

    @property
    def run_id(self) -> int:
        return self.metrics.run_id

    @classmethod
    def build(cls, run: SimulationRun, metrics: RunMetrics, series: TimeSeries) -> RunRecord:
        return cls(config=run.config, run=run.to_dict(), metrics=metrics, time_series=series)

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "run": self.run,
            "metrics": self.metrics.to_dict(),
            "time_series": self.time_series.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunRecord:
        series = data.get("time_series") or {}
        return cls(
            config=SimulationConfig.from_dict(data["config"]),
            run=data["run"],
            metrics=RunMetrics.from_dict(data["metrics"]),
            time_series=TimeSeries(
                throughput=[ThroughputPoint(**p) for p in series.get("throughput", [])],
                error_rates=[ErrorRatePoint(**p) for p in series.get("error_rates", [])],
            ),
        )


class RunRepository(Protocol):
    """Storage for terminated runs."""

    def save(self, record: RunRecord) -> None: ...

    def load(self, run_id: int) -> RunRecord: ...

    def list_ids(self) -> list[int]: ...


class InMemoryRunRepository:
    """Process-local repository, mostly for tests and embedding."""

    def __init__(self) -> None:
        self._records: dict[int, RunRecord] = {}
        self._lock = threading.Lock()

    def save(self, record: RunRecord) -> None:
        with self._lock:
            self._records[record.run_id] = record

    def load(self, run_id: int) -> RunRecord:
        with self._lock:
            record = self._records.get(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return record

    def list_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._records)


class JsonRunRepository:
    """Stores one ``run-<id>.json`` file per run in a directory.

    Attributes:
        directory: Where the files live; created on first save.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, run_id: int) -> Path:
        return self.directory / f"run-{run_id}.json"

    def save(self, record: RunRecord) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(record.run_id)
        # Write then rename so readers never see a partial file
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(record.to_dict(), indent=2))
        tmp.replace(path)
        logger.debug("Saved run %d to %s", record.run_id, path)

    def load(self, run_id: int) -> RunRecord:
        """Read a saved run.

        Raises:
            RunNotFoundError: If no file exists for *run_id*.
            ConfigurationError: If the stored configuration is invalid.
        """
        path = self.path_for(run_id)
        if not path.exists():
            raise RunNotFoundError(run_id)
        return RunRecord.from_dict(json.loads(path.read_text()))

    def list_ids(self) -> list[int]:
        if not self.directory.is_dir():
            return []
        ids: list[int] = []
        for path in self.directory.glob("run-*.json"):
            suffix = path.stem.removeprefix("run-")
            if suffix.isdigit():
                ids.append(int(suffix))
        return sorted(ids)
