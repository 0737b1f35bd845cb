"""Centralized engine settings powered by Pydantic.

Environment matrix:

| Section | Environment Variable               | Default   | Purpose                                        |
|---------|------------------------------------|-----------|------------------------------------------------|
| Engine  | `ENGINE_STARTING_CAPITAL`          | `100000`  | Cash available at the start of every backtest  |
| Engine  | `ENGINE_RSI_PERIOD`                | `14`      | RSI lookback used by the simulator             |
| Engine  | `ENGINE_MIN_HOLD_BARS`             | `3`       | Bars a position must be held before any exit   |
| Engine  | `ENGINE_FALLBACK_HOLD_BARS`        | `5`       | Minimum hold of the synthesized fallback trade |
| Engine  | `ENGINE_FALLBACK_HOLD_JITTER`      | `2`       | Extra random bars added to the fallback hold   |
| Engine  | `ENGINE_FALLBACK_ENTRY_FRACTION`   | `0.25`    | Position in the sample of the fallback entry   |
| Engine  | `ENGINE_DEFAULT_VARIANT_COUNT`     | `10`      | Variants produced per evolution batch          |
| Engine  | `ENGINE_MAX_WORKERS`               | `4`       | Thread pool size for batch evaluation          |
| Sentry  | `SENTRY_DSN`                       | `None`    | Sentry ingest DSN                              |
| Sentry  | `SENTRY_TRACES_SAMPLE_RATE`        | `0.0`     | Fraction of transactions to trace              |
| Sentry  | `SENTRY_ENVIRONMENT`               | `None`    | Deployment environment label                   |

Settings are read from the environment each time `get_settings()` is called and
are frozen once built.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class EngineSettings(_SettingsBase):
    """Simulation constants for the backtest and variant generation."""

    starting_capital: float = Field(default=100_000.0, alias="ENGINE_STARTING_CAPITAL")
    rsi_period: int = Field(default=14, alias="ENGINE_RSI_PERIOD")
    min_hold_bars: int = Field(default=3, alias="ENGINE_MIN_HOLD_BARS")
    fallback_hold_bars: int = Field(default=5, alias="ENGINE_FALLBACK_HOLD_BARS")
    fallback_hold_jitter: int = Field(default=2, alias="ENGINE_FALLBACK_HOLD_JITTER")
    fallback_entry_fraction: float = Field(
        default=0.25, alias="ENGINE_FALLBACK_ENTRY_FRACTION"
    )
    default_variant_count: int = Field(default=10, alias="ENGINE_DEFAULT_VARIANT_COUNT")
    max_workers: int = Field(default=4, alias="ENGINE_MAX_WORKERS")

    @field_validator("starting_capital")
    @classmethod
    def _positive_capital(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("starting capital must be positive")
        return value

    @field_validator("rsi_period", "max_workers")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, int(value))

    @field_validator("fallback_entry_fraction")
    @classmethod
    def _fraction(cls, value: float) -> float:
        if not 0.0 <= value < 1.0:
            raise ValueError("fallback entry fraction must be in [0, 1)")
        return value


class SentrySettings(_SettingsBase):
    """Sentry SDK configuration."""

    dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    traces_sample_rate: float = Field(default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE")
    environment: str | None = Field(default=None, alias="SENTRY_ENVIRONMENT")

    @computed_field
    @property
    def enabled(self) -> bool:
        return bool(self.dsn)


class Settings(BaseModel):
    """Aggregate accessor for domain-specific settings."""

    engine: EngineSettings = Field(default_factory=EngineSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }


def get_settings() -> Settings:
    """Instantiate settings from the current environment."""
    return Settings()


def reload_settings() -> Settings:
    """Alias for get_settings to maintain a consistent API."""
    return get_settings()


def get_engine_settings() -> EngineSettings:
    return get_settings().engine


def get_sentry_settings() -> SentrySettings:
    return get_settings().sentry


__all__ = [
    "Settings",
    "EngineSettings",
    "SentrySettings",
    "get_settings",
    "reload_settings",
    "get_engine_settings",
    "get_sentry_settings",
]
