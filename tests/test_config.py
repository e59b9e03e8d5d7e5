"""Tests for deployment settings."""

from __future__ import annotations

import pytest

from pipelines_webinar.config import DeploymentSettings


class TestDeploymentSettings:
    def test_defaults(self) -> None:
        settings = DeploymentSettings()
        assert settings.alias_name == "Current"
        assert settings.canary_rate_minutes == 1
        assert settings.alarm_threshold == 90
        assert settings.shift_type == "canary"
        assert settings.shift_percentage == 99
        assert settings.shift_interval_minutes == 5
        assert settings.missing_data == "notBreaching"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PIPELINE_STAGE", "beta")
        monkeypatch.setenv("PIPELINE_SHIFT_TYPE", "LINEAR")
        monkeypatch.setenv("PIPELINE_SHIFT_PERCENTAGE", "10")
        monkeypatch.setenv("PIPELINE_ALARM_THRESHOLD", "95.5")
        settings = DeploymentSettings.from_env()
        assert settings.stage_name == "beta"
        assert settings.shift_type == "linear"
        assert settings.shift_percentage == 10
        assert settings.alarm_threshold == 95.5

    def test_overrides_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PIPELINE_STAGE", "beta")
        settings = DeploymentSettings.from_env(stage_name="gamma", shift_percentage=None)
        assert settings.stage_name == "gamma"
        assert settings.shift_percentage == 99

    def test_non_integer_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PIPELINE_SHIFT_PERCENTAGE", "lots")
        with pytest.raises(ValueError, match="PIPELINE_SHIFT_PERCENTAGE"):
            DeploymentSettings.from_env()

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"shift_type": "blue_green"},
            {"missing_data": "sometimes"},
            {"shift_percentage": 0},
            {"shift_percentage": 101},
            {"shift_interval_minutes": 0},
            {"hook_max_attempts": 0},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            DeploymentSettings(**kwargs)

    def test_to_dict(self) -> None:
        assert DeploymentSettings().to_dict()["alias_name"] == "Current"
