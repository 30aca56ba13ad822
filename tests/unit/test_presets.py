"""Tests for the built-in presets."""

from __future__ import annotations

import pytest

from loadsurge._internal.errors import ConfigurationError
from loadsurge.rates.presets import PRESETS, preset_config
from loadsurge.simulation.models import ScaleMode


class TestPresets:
    def test_known_presets(self):
        assert set(PRESETS) == {
            "ramp_to_thousand",
            "ramp_to_million",
            "exponential_scale",
            "step_scale",
        }

    def test_ramp_to_million(self):
        preset = PRESETS["ramp_to_million"]
        assert preset.max_rps == 1_000_000
        assert preset.scale_mode is ScaleMode.LOGARITHMIC

    def test_preset_config(self):
        config = preset_config("step_scale", "http://localhost:8080/")
        assert config.target_url == "http://localhost:8080/"
        assert config.name == "Step Scale (Powers of 10)"
        assert config.scale_mode is ScaleMode.STEP
        assert config.max_rps == 1_000_000

    def test_overrides(self):
        config = preset_config(
            "ramp_to_thousand", "http://localhost/", duration_seconds=5, name="short"
        )
        assert config.duration_seconds == 5
        assert config.name == "short"
        assert config.max_rps == 1_000

    def test_unknown_preset(self):
        with pytest.raises(ConfigurationError, match="unknown preset"):
            preset_config("warp_speed", "http://localhost/")

    def test_invalid_target_rejected(self):
        with pytest.raises(ConfigurationError, match="http or https"):
            preset_config("ramp_to_thousand", "not-a-url")
