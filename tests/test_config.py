"""
Tests for Settings validation
"""
import pytest
from pydantic import ValidationError

from mock_agency.core.config import Settings


class TestDefaults:

    @pytest.mark.unit
    def test_defaults(self, monkeypatch):
        for name in ("PORT", "TRACKING_PREFIX", "SIMULATION_OVERLAP_POLICY", "STRICT_TRANSITIONS"):
            monkeypatch.delenv(name, raising=False)

        config = Settings()

        assert config.PORT == 3001
        assert config.TRACKING_PREFIX == "YDN"
        assert config.TRACKING_COUNTER_START == 1000
        assert config.WEBHOOK_TIMEOUT_SECONDS == 5.0
        assert config.SIMULATION_OVERLAP_POLICY == "allow"
        assert config.STRICT_TRANSITIONS is False
        assert config.simulation_delays == {"fast": 2.0, "normal": 5.0, "slow": 10.0}

    @pytest.mark.unit
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "4000")
        monkeypatch.setenv("SIMULATION_FAST_SECONDS", "0.5")
        monkeypatch.setenv("STRICT_TRANSITIONS", "true")

        config = Settings()

        assert config.PORT == 4000
        assert config.simulation_delays["fast"] == 0.5
        assert config.STRICT_TRANSITIONS is True


class TestValidators:

    @pytest.mark.unit
    @pytest.mark.parametrize("field", [
        "WEBHOOK_TIMEOUT_SECONDS",
        "SIMULATION_FAST_SECONDS",
        "SIMULATION_NORMAL_SECONDS",
        "SIMULATION_SLOW_SECONDS",
    ])
    @pytest.mark.parametrize("value", [0, -1.5])
    def test_durations_must_be_positive(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    @pytest.mark.unit
    def test_max_concurrency_at_least_one(self):
        with pytest.raises(ValidationError):
            Settings(WEBHOOK_MAX_CONCURRENCY=0)

    @pytest.mark.unit
    @pytest.mark.parametrize("raw,expected", [
        ("allow", "allow"),
        (" Reject ", "reject"),
        ("REPLACE", "replace"),
    ])
    def test_overlap_policy_is_normalized(self, raw, expected):
        assert Settings(SIMULATION_OVERLAP_POLICY=raw).SIMULATION_OVERLAP_POLICY == expected

    @pytest.mark.unit
    def test_unknown_overlap_policy(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(SIMULATION_OVERLAP_POLICY="queue")

        assert "not supported" in str(exc_info.value)

    @pytest.mark.unit
    def test_tracking_prefix_not_blank(self):
        with pytest.raises(ValidationError):
            Settings(TRACKING_PREFIX="   ")
