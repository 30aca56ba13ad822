"""Custom exception hierarchy for LoadSurge."""

from __future__ import annotations


class LoadSurgeError(Exception):
    """Base exception for all LoadSurge errors.

    All custom exceptions in the LoadSurge engine inherit from this class,
    making it easy to catch any LoadSurge-specific error with a single
    except clause.
    """


class ConfigurationError(LoadSurgeError):
    """Raised when a simulation or engine configuration is invalid.

    Rejected before any run starts and never retried.

    Examples:
        - ``max_rps`` is lower than ``min_rps``.
        - The target URL has no scheme or host.
        - An environment variable has an invalid value.
    """


class TransportError(LoadSurgeError):
    """A single request failed: network error, rejected status, failed check or timeout.

    Raised inside the request executor only; it is always converted into a
    failed ``RequestOutcome`` and never unwinds the tick loop.
    """

    def __init__(self, message: str, *, kind: str = "transport", status_code: int = 0) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class CapacityError(LoadSurgeError):
    """The worker pool had no free slot for a dispatch.

    The request is skipped, not failed, and counted separately from errors.
    """


class LifecycleError(LoadSurgeError):
    """Raised when an operation does not fit the run's lifecycle state.

    Examples:
        - Stopping a run that already reached a terminal state.
        - Querying a run id that was never started.
    """


class RunNotFoundError(LifecycleError):
    """Raised when a run id is unknown to the simulation manager."""

    def __init__(self, run_id: int) -> None:
        super().__init__(f"Simulation {run_id} not found")
        self.run_id = run_id


class ObserverDeliveryError(LoadSurgeError):
    """A message could not be queued for an observer.

    Logged by the hub and never propagated to the run that produced it.
    """


class EngineError(LoadSurgeError):
    """Raised when a simulation fails for reasons outside its configuration."""
