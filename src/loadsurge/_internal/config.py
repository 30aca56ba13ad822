"""Configuration loading for LoadSurge."""

from __future__ import annotations

import os
from dataclasses import dataclass

from loadsurge._internal.errors import ConfigurationError


@dataclass(frozen=True)
class LoadSurgeConfig:
    """Engine-wide LoadSurge configuration.

    Attributes:
        tick_interval: Seconds between load generator ticks.
        report_interval: Seconds between metric snapshots pushed to observers.
        grace_period: Seconds in-flight requests may take to drain on stop.
        sample_capacity: Latencies retained per run for windowed percentiles.
        observer_buffer_size: Outbound messages buffered per observer.
        request_timeout: Default request timeout in seconds.
        host: Interface the websocket hub server binds to.
        port: Port the websocket hub server listens on.
    """

    tick_interval: float = 1.0
    report_interval: float = 1.0
    grace_period: float = 5.0
    sample_capacity: int = 10_000
    observer_buffer_size: int = 256
    request_timeout: float = 30.0
    host: str = "127.0.0.1"
    port: int = 8089


def _read_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigurationError(msg) from None
    if value <= 0:
        msg = f"{name} must be positive, got: {value}"
        raise ConfigurationError(msg)
    return value


def _read_int(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigurationError(msg) from None
    if value < 1:
        msg = f"{name} must be >= 1, got: {value}"
        raise ConfigurationError(msg)
    return value


def load_config() -> LoadSurgeConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        LOADSURGE_TICK_INTERVAL: Tick period in seconds (default: 1.0).
        LOADSURGE_REPORT_INTERVAL: Snapshot period in seconds (default: 1.0).
        LOADSURGE_GRACE_PERIOD: Drain grace period in seconds (default: 5.0).
        LOADSURGE_SAMPLE_CAPACITY: Retained latency samples (default: 10000).
        LOADSURGE_OBSERVER_BUFFER: Per-observer buffer size (default: 256).
        LOADSURGE_TIMEOUT: Request timeout in seconds (default: 30.0).
        LOADSURGE_HOST: Hub server bind host (default: 127.0.0.1).
        LOADSURGE_PORT: Hub server port (default: 8089).

    Returns:
        Populated LoadSurgeConfig instance.

    Raises:
        ConfigurationError: If an environment variable has an invalid value.
    """
    port = _read_int("LOADSURGE_PORT", "8089")
    if port > 65535:
        msg = f"LOADSURGE_PORT must be <= 65535, got: {port}"
        raise ConfigurationError(msg)

    return LoadSurgeConfig(
        tick_interval=_read_float("LOADSURGE_TICK_INTERVAL", "1.0"),
        report_interval=_read_float("LOADSURGE_REPORT_INTERVAL", "1.0"),
        grace_period=_read_float("LOADSURGE_GRACE_PERIOD", "5.0"),
        sample_capacity=_read_int("LOADSURGE_SAMPLE_CAPACITY", "10000"),
        observer_buffer_size=_read_int("LOADSURGE_OBSERVER_BUFFER", "256"),
        request_timeout=_read_float("LOADSURGE_TIMEOUT", "30.0"),
        host=os.environ.get("LOADSURGE_HOST", "127.0.0.1"),
        port=port,
    )
