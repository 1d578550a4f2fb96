"""EngineSettings 테스트 — 기본값, env override, 검증, 캐시."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from yieldbot.config.settings import EngineSettings, clear_settings_cache, get_settings


class TestDefaults:
    def test_documented_defaults(self, settings: EngineSettings) -> None:
        assert settings.max_venues == 10
        assert settings.slippage_ceiling == pytest.approx(0.05)
        assert settings.price_buffer_size == 24
        assert settings.emergency_risk_threshold == pytest.approx(80.0)
        assert settings.max_tasks_per_tick == 3
        assert settings.safe_stable_weight == pytest.approx(0.8)
        assert settings.history_retention == 100


class TestEnvOverride:
    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("YIELDBOT_MAX_TASKS_PER_TICK", "5")
        monkeypatch.setenv("YIELDBOT_EMERGENCY_RISK_THRESHOLD", "70")
        settings = EngineSettings(_env_file=None)  # type: ignore[call-arg]
        assert settings.max_tasks_per_tick == 5
        assert settings.emergency_risk_threshold == pytest.approx(70.0)


class TestValidation:
    def test_high_volatility_above_emergency_rejected(self) -> None:
        with pytest.raises(ValidationError, match="high_volatility_bps"):
            EngineSettings(
                _env_file=None,  # type: ignore[call-arg]
                high_volatility_bps=3000.0,
                emergency_volatility_bps=2000.0,
            )

    def test_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EngineSettings(_env_file=None, max_tasks_per_tick=0)  # type: ignore[call-arg]


class TestSettingsCache:
    def test_cached_instance(self) -> None:
        assert get_settings() is get_settings()

    def test_clear_cache(self) -> None:
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first
