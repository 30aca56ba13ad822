"""Typed hub events and their wire envelope.

Every message crossing the hub is one of the event classes below.  On the
wire each becomes a generic envelope::

    {"type": "simulation_update", "data": {...}, "timestamp": 1718000000000}

with ``timestamp`` in Unix milliseconds.
"""

from __future__ import annotations

import dataclasses
import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from loadsurge._internal.types import JsonDict
    from loadsurge.metrics.models import MetricsSnapshot
    from loadsurge.simulation.models import SimulationRun

SERVER_STATUS_RUNNING = "running"


@dataclass(frozen=True)
class Event:
    """Base class for every hub event.

    Subclasses set ``event_type``, the ``type`` field of the envelope.
    """

    event_type: ClassVar[str] = ""

    @property
    def simulation_id(self) -> int | None:
        """Run the event belongs to, or None for connection-level events."""
        return None

    def to_data(self) -> JsonDict:
        return dataclasses.asdict(self)

    def envelope(self) -> Envelope:
        return Envelope(type=self.event_type, data=self.to_data())


@dataclass(frozen=True)
class ConnectionEstablished(Event):
    """Welcome message sent to an observer right after registration."""

    event_type: ClassVar[str] = "connection_established"

    client_id: str
    message: str = "Connected to LoadSurge"


@dataclass(frozen=True)
class Pong(Event):
    event_type: ClassVar[str] = "pong"


@dataclass(frozen=True)
class StatusUpdate(Event):
    event_type: ClassVar[str] = "status_update"

    connected_observers: int
    server_status: str = SERVER_STATUS_RUNNING


@dataclass(frozen=True)
class SubscriptionAck(Event):
    """Acknowledges ``subscribe_simulation`` or ``unsubscribe_simulation``."""

    event_type: ClassVar[str] = "subscription_ack"

    action: str
    subscribed_to: int | None = None


@dataclass(frozen=True)
class ErrorEvent(Event):
    """An error reported to observers.

    Attributes:
        error_type: Machine-readable category, e.g. ``"unknown_command"``.
        message: Human-readable description.
        details: Extra context.
        run_id: Run the error belongs to, if any.
    """

    event_type: ClassVar[str] = "error"

    error_type: str
    message: str
    details: JsonDict = field(default_factory=dict)
    run_id: int | None = None

    @property
    def simulation_id(self) -> int | None:
        return self.run_id

    def to_data(self) -> JsonDict:
        data = {"error_type": self.error_type, "message": self.message, "details": self.details}
        if self.run_id is not None:
            data["simulation_id"] = self.run_id
        return data


@dataclass(frozen=True)
class _RunEvent(Event):
    run: JsonDict

    @property
    def simulation_id(self) -> int | None:
        return self.run["id"]

    def to_data(self) -> JsonDict:
        return {"simulation_id": self.run["id"], "simulation": self.run}


@dataclass(frozen=True)
class SimulationStarted(_RunEvent):
    event_type: ClassVar[str] = "simulation_started"

    @classmethod
    def from_run(cls, run: SimulationRun) -> SimulationStarted:
        return cls(run=run.to_dict())


@dataclass(frozen=True)
class SimulationCompleted(_RunEvent):
    event_type: ClassVar[str] = "simulation_completed"

    @classmethod
    def from_run(cls, run: SimulationRun) -> SimulationCompleted:
        return cls(run=run.to_dict())


@dataclass(frozen=True)
class SimulationUpdate(Event):
    """Periodic metrics snapshot of a running simulation.

    Attributes:
        run_id: Run the snapshot belongs to.
        timestamp: Unix seconds the snapshot was taken.
        achieved_rps: Completed requests per second over the interval.
        target_rps: Rate model output for the interval.
        total_requests: All-time completed requests.
        successful_requests: All-time successful requests.
        failed_requests: All-time failed requests.
        skipped_requests: All-time skipped dispatches.
        in_flight: Requests dispatched but not completed.
        error_rate: Interval error rate, percent.
        response_time_stats: Windowed latency statistics.
    """

    event_type: ClassVar[str] = "simulation_update"

    run_id: int
    timestamp: float
    achieved_rps: float
    target_rps: float
    total_requests: int
    successful_requests: int
    failed_requests: int
    skipped_requests: int
    in_flight: int
    error_rate: float
    response_time_stats: JsonDict

    @property
    def simulation_id(self) -> int | None:
        return self.run_id

    def to_data(self) -> JsonDict:
        data = dataclasses.asdict(self)
        data["simulation_id"] = data.pop("run_id")
        return data

    @classmethod
    def from_snapshot(cls, run_id: int, snapshot: MetricsSnapshot) -> SimulationUpdate:
        return cls(
            run_id=run_id,
            timestamp=snapshot.timestamp,
            achieved_rps=snapshot.achieved_rps,
            target_rps=snapshot.target_rps,
            total_requests=snapshot.total_requests,
            successful_requests=snapshot.successful_requests,
            failed_requests=snapshot.failed_requests,
            skipped_requests=snapshot.skipped_requests,
            in_flight=snapshot.in_flight,
            error_rate=snapshot.interval_error_rate,
            response_time_stats=snapshot.response_time_stats.to_dict(),
        )


@dataclass(frozen=True)
class Envelope:
    """Generic wire form of an event."""

    type: str
    data: JsonDict
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_wire(self) -> str:
        return json.dumps({"type": self.type, "data": self.data, "timestamp": self.timestamp})


@dataclass(frozen=True)
class Command:
    """An inbound observer command.

    Attributes:
        type: Command name, e.g. ``"ping"``.
        data: Command arguments.
    """

    PING: ClassVar[str] = "ping"
    SUBSCRIBE: ClassVar[str] = "subscribe_simulation"
    UNSUBSCRIBE: ClassVar[str] = "unsubscribe_simulation"
    GET_STATUS: ClassVar[str] = "get_status"

    type: str
    data: JsonDict = field(default_factory=dict)

    @property
    def simulation_id(self) -> int | None:
        """Return the ``simulation_id`` argument as an int, if present.

        Raises:
            ValueError: If the argument is present but not an integer.
        """
        raw = self.data.get("simulation_id")
        if raw is None:
            return None
        if isinstance(raw, bool) or not isinstance(raw, (int, str)):
            msg = f"simulation_id must be an integer, got {raw!r}"
            raise ValueError(msg)
        return int(raw)


def parse_command(raw: str) -> Command:
    """Decode an inbound text frame.

    Args:
        raw: JSON object with a string ``type`` and an optional object
            ``data``.

    Returns:
        The decoded command.

    Raises:
        ValueError: If *raw* is not valid JSON or lacks a string ``type``.
    """
    payload = json.loads(raw)
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        msg = "command must be a JSON object with a string 'type'"
        raise ValueError(msg)
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        msg = "command 'data' must be a JSON object"
        raise ValueError(msg)
    return Command(type=payload["type"], data=data)
