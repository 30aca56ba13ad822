"""Built-in large-scale simulation presets."""

from __future__ import annotations

from dataclasses import dataclass

from loadsurge._internal.errors import ConfigurationError
from loadsurge.simulation.models import ScaleMode, SimulationConfig


@dataclass(frozen=True)
class Preset:
    """Reusable ramp settings without a target.

    Attributes:
        key: Lookup key used on the command line.
        name: Display name, copied into the simulation name.
        min_rps: Starting RPS.
        max_rps: Final RPS.
        duration_seconds: Run length.
        scale_mode: Ramp shape.
        concurrent_users: In-flight request bound.
    """

    key: str
    name: str
    min_rps: float
    max_rps: float
    duration_seconds: float
    scale_mode: ScaleMode
    concurrent_users: int


PRESETS: dict[str, Preset] = {
    p.key: p
    for p in (
        Preset("ramp_to_thousand", "Ramp to 1K RPS", 1, 1_000, 300, ScaleMode.LINEAR, 100),
        Preset(
            "ramp_to_million", "Ramp to 1M RPS", 1, 1_000_000, 600, ScaleMode.LOGARITHMIC, 10_000
        ),
        Preset(
            "exponential_scale",
            "Exponential Scale Test",
            1,
            500_000,
            480,
            ScaleMode.EXPONENTIAL,
            5_000,
        ),
        Preset(
            "step_scale", "Step Scale (Powers of 10)", 1, 1_000_000, 420, ScaleMode.STEP, 1_000
        ),
    )
}


def preset_config(key: str, target_url: str, **overrides: object) -> SimulationConfig:
    """Build a :class:`SimulationConfig` from a named preset.

    Args:
        key: Preset key, e.g. ``"ramp_to_million"``.
        target_url: URL the simulation will hit.
        **overrides: Any ``SimulationConfig`` field to replace.

    Returns:
        A validated configuration.

    Raises:
        ConfigurationError: If *key* is unknown or the result is invalid.
    """
    preset = PRESETS.get(key)
    if preset is None:
        msg = f"unknown preset {key!r}; choose from: {', '.join(sorted(PRESETS))}"
        raise ConfigurationError(msg)

    fields: dict[str, object] = {
        "target_url": target_url,
        "name": preset.name,
        "min_rps": preset.min_rps,
        "max_rps": preset.max_rps,
        "duration_seconds": preset.duration_seconds,
        "scale_mode": preset.scale_mode,
        "concurrent_users": preset.concurrent_users,
    }
    fields.update(overrides)
    config = SimulationConfig.from_dict(fields)
    config.validate()
    return config
