"""Simulation configuration and run-state models."""

from __future__ import annotations

import dataclasses
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from yarl import URL

from loadsurge._internal.errors import ConfigurationError

if TYPE_CHECKING:
    from loadsurge._internal.types import Headers
    from loadsurge.metrics.models import ResponseTimeStats

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


class ScaleMode(str, Enum):
    """Shape of the target RPS ramp over the run duration."""

    LINEAR = "linear"
    LOGARITHMIC = "logarithmic"
    EXPONENTIAL = "exponential"
    STEP = "step"


class LoadPattern(str, Enum):
    """Overall shape of a run's load.

    ``RAMP`` follows the configured :class:`ScaleMode`; every other pattern
    replaces the ramp with its own curve.
    """

    RAMP = "ramp"
    CONSTANT = "constant"
    LINEAR_RAMP = "linear_ramp"
    STEP_RAMP = "step_ramp"
    SPIKE = "spike"
    SINE_WAVE = "sine_wave"


class RunStatus(str, Enum):
    """Lifecycle state of a simulation run.

    ``CREATED -> STARTING -> RUNNING -> {COMPLETED | FAILED | CANCELLED}``;
    ``CREATED`` and ``STARTING`` may also go straight to ``FAILED``.
    """

    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return True for states a run never leaves."""
        return self in _TERMINAL


_TERMINAL = frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED})

_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.CREATED: frozenset({RunStatus.STARTING, RunStatus.FAILED}),
    RunStatus.STARTING: frozenset({RunStatus.RUNNING, RunStatus.FAILED}),
    RunStatus.RUNNING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
}


def can_transition(current: RunStatus, target: RunStatus) -> bool:
    """Return True if *current* may move to *target*."""
    return target in _TRANSITIONS[current]


@dataclass(frozen=True)
class ResponseValidation:
    """Checks every response must pass to count as a success.

    Unset checks are skipped.  A response failing any check is a failed
    request of kind ``"validation"``.

    Attributes:
        status_codes: Accepted status codes.  Empty accepts any 2xx.
        headers: Response headers that must be present with exactly these
            values.  Names are case-insensitive.
        content_type: Substring the ``Content-Type`` header must contain.
        body_contains: Substrings the body must contain.
        body_not_contains: Substrings the body must not contain.
        body_regex: Pattern that must match somewhere in the body.
        json_body: Require the body to parse as JSON.
        min_body_bytes: Smallest accepted body size.
        max_body_bytes: Largest accepted body size.
        max_response_time_ms: Latency SLA; slower responses fail.
    """

    status_codes: tuple[int, ...] = ()
    headers: Headers = field(default_factory=dict)
    content_type: str | None = None
    body_contains: tuple[str, ...] = ()
    body_not_contains: tuple[str, ...] = ()
    body_regex: str | None = None
    json_body: bool = False
    min_body_bytes: int | None = None
    max_body_bytes: int | None = None
    max_response_time_ms: float | None = None

    def __post_init__(self) -> None:
        # JSON gives lists; keep tuples so equal configs compare equal
        object.__setattr__(self, "status_codes", tuple(self.status_codes))
        object.__setattr__(self, "headers", dict(self.headers))
        object.__setattr__(self, "body_contains", tuple(self.body_contains))
        object.__setattr__(self, "body_not_contains", tuple(self.body_not_contains))

    def validate(self) -> None:
        """Check the validation rules themselves.

        Raises:
            ConfigurationError: On the first invalid rule.
        """
        for code in self.status_codes:
            if not 100 <= code <= 599:
                msg = f"expected status code out of range: {code}"
                raise ConfigurationError(msg)
        if self.body_regex is not None:
            try:
                re.compile(self.body_regex)
            except re.error as exc:
                msg = f"invalid body_regex {self.body_regex!r}: {exc}"
                raise ConfigurationError(msg) from None
        for name in ("min_body_bytes", "max_body_bytes"):
            value = getattr(self, name)
            if value is not None and value < 0:
                msg = f"{name} must be non-negative, got {value}"
                raise ConfigurationError(msg)
        if (
            self.min_body_bytes is not None
            and self.max_body_bytes is not None
            and self.max_body_bytes < self.min_body_bytes
        ):
            msg = (
                f"max_body_bytes ({self.max_body_bytes}) must be >= "
                f"min_body_bytes ({self.min_body_bytes})"
            )
            raise ConfigurationError(msg)
        if self.max_response_time_ms is not None and self.max_response_time_ms <= 0:
            msg = f"max_response_time_ms must be positive, got {self.max_response_time_ms}"
            raise ConfigurationError(msg)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResponseValidation:
        """Build validation rules from JSON.

        Raises:
            ConfigurationError: If unknown keys are present.
        """
        return _from_fields(cls, data, "validation")


@dataclass(frozen=True)
class SimulationConfig:
    """Immutable description of one simulation.

    Attributes:
        target_url: Absolute http(s) URL every request is sent to.
        min_rps: Target RPS at the start of the ramp. Must be >= 0.
        max_rps: Target RPS at the end of the ramp. Must be >= ``min_rps``.
        duration_seconds: Run length in seconds. Must be > 0.
        scale_mode: Ramp shape.
        concurrent_users: Upper bound on in-flight requests. Must be > 0.
        request_timeout: Per-request timeout in seconds. Must be > 0.
        method: HTTP method.
        headers: Extra request headers.
        body: Optional request body sent verbatim.
        content_type: ``Content-Type`` applied when a body is present.
        name: Human-readable simulation name.
        preflight: Probe the target once during ``STARTING``.
        pattern: Load pattern; ``RAMP`` follows ``scale_mode``.
        ramp_up_seconds: Ramp length for the ``LINEAR_RAMP`` pattern.
            Defaults to the whole run.
        form_data: Fields sent URL-encoded as the body.  Excludes ``body``.
        variables: Static values for ``{{name}}`` placeholders.
        validation: Response checks.  None means any 2xx succeeds.
    """

    target_url: str
    min_rps: float
    max_rps: float
    duration_seconds: float
    scale_mode: ScaleMode = ScaleMode.LINEAR
    concurrent_users: int = 100
    request_timeout: float = 30.0
    method: str = "GET"
    headers: Headers = field(default_factory=dict)
    body: str | None = None
    content_type: str | None = None
    name: str = "simulation"
    preflight: bool = False
    pattern: LoadPattern = LoadPattern.RAMP
    ramp_up_seconds: float | None = None
    form_data: dict[str, str] | None = None
    variables: dict[str, str] = field(default_factory=dict)
    validation: ResponseValidation | None = None

    def __post_init__(self) -> None:
        # Accept plain strings for the enums and normalise the method
        scale_mode = _coerce_enum(ScaleMode, self.scale_mode, "scale mode")
        object.__setattr__(self, "scale_mode", scale_mode)
        object.__setattr__(self, "pattern", _coerce_enum(LoadPattern, self.pattern, "pattern"))
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", dict(self.headers))
        object.__setattr__(self, "variables", dict(self.variables))
        if self.form_data is not None:
            object.__setattr__(self, "form_data", dict(self.form_data))
        if isinstance(self.validation, dict):
            object.__setattr__(self, "validation", ResponseValidation.from_dict(self.validation))

    def validate(self) -> None:
        """Check every invariant of the configuration.

        Raises:
            ConfigurationError: On the first violated invariant.
        """
        if not self.name:
            raise ConfigurationError("simulation name is required")
        _validate_url(self.target_url)
        if self.method not in SUPPORTED_METHODS:
            msg = f"unsupported HTTP method: {self.method}"
            raise ConfigurationError(msg)
        if self.min_rps < 0:
            msg = f"min_rps must be non-negative, got {self.min_rps}"
            raise ConfigurationError(msg)
        if self.max_rps < self.min_rps:
            msg = f"max_rps ({self.max_rps}) must be >= min_rps ({self.min_rps})"
            raise ConfigurationError(msg)
        if self.duration_seconds <= 0:
            msg = f"duration_seconds must be positive, got {self.duration_seconds}"
            raise ConfigurationError(msg)
        if self.concurrent_users <= 0:
            msg = f"concurrent_users must be positive, got {self.concurrent_users}"
            raise ConfigurationError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ConfigurationError(msg)
        if self.ramp_up_seconds is not None and self.ramp_up_seconds <= 0:
            msg = f"ramp_up_seconds must be positive, got {self.ramp_up_seconds}"
            raise ConfigurationError(msg)
        if self.body is not None and self.form_data is not None:
            raise ConfigurationError("body and form_data are mutually exclusive")
        if self.validation is not None:
            self.validation.validate()

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        data = dataclasses.asdict(self)
        data["scale_mode"] = self.scale_mode.value
        data["pattern"] = self.pattern.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationConfig:
        """Build a config from :meth:`to_dict` output or user-supplied JSON.

        Raises:
            ConfigurationError: If required keys are missing or unknown keys
                are present.
        """
        return _from_fields(cls, data, "configuration")


def _from_fields(cls: Any, data: dict[str, Any], label: str) -> Any:
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        msg = f"unknown {label} keys: {', '.join(sorted(unknown))}"
        raise ConfigurationError(msg)
    try:
        return cls(**data)
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from None


def _coerce_enum(enum_cls: Any, value: Any, label: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        msg = f"unknown {label} {value!r}; choose from: {choices}"
        raise ConfigurationError(msg) from None


def _validate_url(raw: str) -> None:
    if not raw:
        raise ConfigurationError("target URL is required")
    try:
        url = URL(raw)
    except (ValueError, TypeError) as exc:
        msg = f"malformed target URL {raw!r}: {exc}"
        raise ConfigurationError(msg) from None
    if url.scheme not in ("http", "https"):
        msg = f"target URL must use http or https, got {raw!r}"
        raise ConfigurationError(msg)
    if not url.host:
        msg = f"target URL has no host: {raw!r}"
        raise ConfigurationError(msg)


@dataclass
class SimulationRun:
    """Mutable state of one simulation, owned by its load generator.

    Counters only ever increase. Once ``status`` is terminal the run is
    read-only and ``total_requests == successful_requests + failed_requests``.
    Skipped dispatches were never sent and are not part of ``total_requests``.

    Attributes:
        run_id: Identity assigned by the simulation manager.
        config: Configuration the run was started with.
        status: Current lifecycle state.
        start_time: Wall-clock time (Unix seconds) the run was created.
        end_time: Wall-clock time the run reached a terminal state.
        total_requests: Requests sent and accounted for.
        successful_requests: Requests with an accepted status that passed
            every response check.
        failed_requests: Requests that errored, timed out or were abandoned.
        skipped_requests: Dispatches dropped because the pool was saturated.
        dispatched_requests: Requests handed to the worker pool.
        current_rps: Achieved RPS over the last reporting interval.
        target_rps: Rate model output at the last reporting interval.
        average_rps: ``total_requests / duration`` set at termination.
        latency: Most recent response time statistics.
        error: Failure reason when ``status`` is ``FAILED``.
    """

    run_id: int
    config: SimulationConfig
    status: RunStatus = RunStatus.CREATED
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    skipped_requests: int = 0
    dispatched_requests: int = 0
    current_rps: float = 0.0
    target_rps: float = 0.0
    average_rps: float = 0.0
    latency: ResponseTimeStats | None = None
    error: str | None = None

    @property
    def elapsed_seconds(self) -> float:
        """Seconds since start, frozen once the run ended."""
        end = self.end_time if self.end_time is not None else time.time()
        return max(end - self.start_time, 0.0)

    def snapshot(self) -> SimulationRun:
        """Return an independent copy safe to hand to any caller."""
        return dataclasses.replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "id": self.run_id,
            "name": self.config.name,
            "status": self.status.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "skipped_requests": self.skipped_requests,
            "dispatched_requests": self.dispatched_requests,
            "current_rps": self.current_rps,
            "target_rps": self.target_rps,
            "average_rps": self.average_rps,
            "response_times": self.latency.to_dict() if self.latency is not None else None,
            "error": self.error,
            "config": self.config.to_dict(),
        }
