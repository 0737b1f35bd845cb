from __future__ import annotations

import pytest
from pydantic import ValidationError

from strategy_evolution import settings as settings_module

_ENGINE_KEYS = (
    "ENGINE_STARTING_CAPITAL",
    "ENGINE_RSI_PERIOD",
    "ENGINE_MIN_HOLD_BARS",
    "ENGINE_FALLBACK_HOLD_BARS",
    "ENGINE_FALLBACK_HOLD_JITTER",
    "ENGINE_FALLBACK_ENTRY_FRACTION",
    "ENGINE_DEFAULT_VARIANT_COUNT",
    "ENGINE_MAX_WORKERS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in _ENGINE_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_engine_defaults():
    engine = settings_module.get_engine_settings()

    assert engine.starting_capital == 100_000.0
    assert engine.rsi_period == 14
    assert engine.min_hold_bars == 3
    assert engine.fallback_hold_bars == 5
    assert engine.fallback_hold_jitter == 2
    assert engine.fallback_entry_fraction == 0.25
    assert engine.default_variant_count == 10
    assert engine.max_workers == 4


def test_engine_settings_from_env(monkeypatch):
    monkeypatch.setenv("ENGINE_STARTING_CAPITAL", "25000")
    monkeypatch.setenv("ENGINE_MAX_WORKERS", "0")

    engine = settings_module.reload_settings().engine

    assert engine.starting_capital == 25_000.0
    assert engine.max_workers == 1


def test_invalid_engine_settings_raise(monkeypatch):
    monkeypatch.setenv("ENGINE_FALLBACK_ENTRY_FRACTION", "1.5")

    with pytest.raises(ValidationError):
        settings_module.get_engine_settings()


def test_settings_are_frozen():
    engine = settings_module.get_engine_settings()

    with pytest.raises(ValidationError):
        engine.starting_capital = 1.0


def test_sentry_enabled_flag(monkeypatch):
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    assert settings_module.get_sentry_settings().enabled is False

    monkeypatch.setenv("SENTRY_DSN", "https://key@example.ingest.sentry.io/1")
    sentry = settings_module.get_sentry_settings()
    assert sentry.enabled is True
    assert sentry.traces_sample_rate == 0.0


def test_sentry_setup_ignores_engine_settings(monkeypatch):
    import strategy_evolution

    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.setenv("ENGINE_FALLBACK_ENTRY_FRACTION", "1.5")

    assert strategy_evolution._init_sentry() is False
