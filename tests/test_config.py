"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from market_sim.config import AppSettings, GeneratorSettings


class TestGeneratorSettings:
    def test_defaults(self) -> None:
        settings = GeneratorSettings()
        assert settings.candle_interval == 180
        assert settings.update_interval == 30
        assert settings.checkpoint_interval == 10
        assert settings.retention_cap == 2000
        assert (settings.min_price, settings.max_price) == (475.0, 525.0)
        assert settings.volatility_profile == "calm"

    def test_update_must_be_faster_than_creation(self) -> None:
        with pytest.raises(ValidationError):
            GeneratorSettings(candle_interval=60, update_interval=60)

    def test_band_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError):
            GeneratorSettings(min_price=600.0, max_price=500.0)

    def test_backfill_band_inside_global_band(self) -> None:
        with pytest.raises(ValidationError):
            GeneratorSettings(backfill_min_price=470.0)

    def test_seed_price_inside_band(self) -> None:
        with pytest.raises(ValidationError):
            GeneratorSettings(seed_price=600.0)

    def test_unknown_profile_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GeneratorSettings(volatility_profile="chaotic")  # type: ignore[arg-type]

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GENERATOR_RETENTION_CAP", "300")
        monkeypatch.setenv("GENERATOR_CANDLE_INTERVAL", "60")
        monkeypatch.setenv("GENERATOR_UPDATE_INTERVAL", "10")
        settings = GeneratorSettings()
        assert settings.retention_cap == 300
        assert settings.candle_interval == 60


class TestAppSettings:
    def test_composes_sub_settings(self) -> None:
        settings = AppSettings(_env_file=None)  # type: ignore[call-arg]
        assert settings.api.max_candles == 500
        assert settings.storage.db_path == "data/market.db"
        assert settings.generator.retention_cap == 2000
