"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal, Self

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeneratorSettings(BaseSettings):
    """Synthetic candle generator parameters.

    Intervals are in seconds. The default price band, retention cap and
    3-minute candle interval follow the tighter, later tuning of the
    generator; all of them are tunable via the GENERATOR_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="GENERATOR_")

    candle_interval: int = 180  # bucket width and creation period
    update_interval: int = 30  # live-candle update period
    checkpoint_interval: int = 10  # regime checkpoint period
    retention_cap: int = 2000  # max persisted candles
    min_price: float = 475.0
    max_price: float = 525.0
    seed_price: float = 500.0  # first close when the store is empty
    backfill_min_price: float = 480.0  # tighter band for gap repair
    backfill_max_price: float = 520.0
    volatility_profile: Literal["calm", "wild"] = "calm"
    random_seed: int | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> Self:
        if self.candle_interval <= 0 or self.update_interval <= 0 or self.checkpoint_interval <= 0:
            raise ValueError("intervals must be positive")
        if self.update_interval >= self.candle_interval:
            raise ValueError("update_interval must be smaller than candle_interval")
        if self.retention_cap <= 0:
            raise ValueError("retention_cap must be positive")
        if self.min_price >= self.max_price:
            raise ValueError("min_price must be below max_price")
        if not (
            self.min_price <= self.backfill_min_price < self.backfill_max_price <= self.max_price
        ):
            raise ValueError("backfill band must lie inside [min_price, max_price]")
        if not self.min_price <= self.seed_price <= self.max_price:
            raise ValueError("seed_price must lie inside [min_price, max_price]")
        return self


class StorageSettings(BaseSettings):
    """SQLite storage location."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/market.db"


class ApiSettings(BaseSettings):
    """Read API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 4000
    enabled: bool = True
    max_candles: int = 500  # hard ceiling for /api/market/candles


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    generator: GeneratorSettings = GeneratorSettings()
    storage: StorageSettings = StorageSettings()
    api: ApiSettings = ApiSettings()
