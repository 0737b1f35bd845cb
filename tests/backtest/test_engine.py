from __future__ import annotations

import numpy as np
import pytest

from strategy_evolution.backtest import engine
from strategy_evolution.core.exceptions import EmptyMarketData, InsufficientData
from strategy_evolution.core.models import MarketBar, Strategy, StrategyParameters, alternates
from strategy_evolution.settings import EngineSettings
from strategy_evolution.telemetry import EngineTrace


def _strategy(ma_short=2, ma_long=5, rsi_threshold=30.0, position_size=0.5):
    return Strategy(
        id="s-1",
        name="Test",
        parameters=StrategyParameters(
            ma_short=ma_short,
            ma_long=ma_long,
            rsi_threshold=rsi_threshold,
            position_size=position_size,
        ),
    )


def _zigzag_closes():
    """Flat, then a choppy rise, then a choppy fall."""
    closes = [100.0] * 40
    for k in range(20):
        closes.append(closes[-1] + (2.0 if k % 2 == 0 else -1.0))
    for k in range(20):
        closes.append(closes[-1] + (-2.0 if k % 2 == 0 else 1.0))
    return closes


def test_empty_market_data_raises():
    with pytest.raises(EmptyMarketData):
        engine.backtest(_strategy(), [])
    with pytest.raises(EmptyMarketData):
        engine.backtest(_strategy(), None)


def test_insufficient_data_reports_counts(make_bars):
    with pytest.raises(InsufficientData) as excinfo:
        engine.backtest(_strategy(ma_long=30), make_bars([100.0] * 10))

    assert excinfo.value.required == 30
    assert excinfo.value.available == 10


def test_invalid_bars_are_not_counted(make_bars):
    bars = make_bars([100.0] * 8)
    bars += [
        MarketBar(date=bars[-1].date, close=float("nan")),
        MarketBar(date=bars[-1].date, close=0.0),
        MarketBar(date=None, close=101.0),
    ]

    with pytest.raises(InsufficientData) as excinfo:
        engine.run_backtest(_strategy(ma_long=10), bars)

    assert excinfo.value.available == 8


def test_signal_loop_trades_on_crossovers(make_bars):
    result = engine.run_backtest(_strategy(), make_bars(_zigzag_closes()))

    assert not result.synthesized
    assert len(result.trades) >= 2
    assert result.trades == result.organic_trades
    assert result.trades[0].side == "BUY"
    assert result.trades[0].bar_index == 41
    assert alternates(result.trades)
    assert result.start_index == 14
    # one initial entry plus one per processed bar
    assert len(result.equity_curve) == 1 + (80 - 14)
    assert result.equity_curve[0] == pytest.approx(100_000.0)


def test_buy_commits_position_size_of_cash(make_bars):
    result = engine.run_backtest(_strategy(position_size=0.5), make_bars(_zigzag_closes()))

    first = result.trades[0]
    assert first.price == pytest.approx(101.0)
    assert first.quantity * first.price == pytest.approx(50_000.0)


def test_flat_series_falls_back_to_synthetic_pair(make_bars):
    bars = make_bars([100.0] * 60)

    result = engine.run_backtest(_strategy(ma_short=10, ma_long=30), bars)

    assert result.synthesized
    assert result.organic_trades == []
    assert [t.side for t in result.trades] == ["BUY", "SELL"]
    buy, sell = result.trades
    assert buy.bar_index == 15
    assert 5 <= sell.bar_index - buy.bar_index <= 7
    assert buy.quantity == pytest.approx(100_000.0 * 0.5 / 100.0)
    # rebuilt curve covers bars from start_index only
    assert len(result.equity_curve) == 60 - 30
    assert result.equity_curve == pytest.approx([100_000.0] * 30)

    metrics = result.metrics
    assert metrics.num_trades == 1
    assert metrics.total_return == pytest.approx(10.0)
    assert metrics.sharpe_ratio == pytest.approx(1.0)
    assert metrics.win_rate == pytest.approx(60.0)
    assert 5.0 <= metrics.avg_trade_duration <= 7.0


def test_fallback_sell_is_bounded_by_last_bar(make_bars):
    bars = make_bars([100.0] * 8)

    result = engine.run_backtest(_strategy(ma_long=5), bars)

    buy, sell = result.trades
    assert buy.bar_index == 2
    assert sell.bar_index == 7
    assert result.equity_curve == []
    assert result.metrics.num_trades == 1


def test_fallback_rng_drives_hold_jitter(make_bars):
    bars = make_bars([100.0] * 60)
    strategy = _strategy(ma_short=10, ma_long=30)

    first = engine.run_backtest(strategy, bars, rng=np.random.default_rng(3))
    second = engine.run_backtest(strategy, bars, rng=np.random.default_rng(3))

    assert first.trades == second.trades


def test_backtest_is_idempotent(random_walk_bars, base_strategy):
    first = engine.run_backtest(base_strategy, random_walk_bars)
    second = engine.run_backtest(base_strategy, random_walk_bars)

    assert first.metrics == second.metrics
    assert first.trades == second.trades
    assert first.equity_curve == second.equity_curve


def test_reported_metrics_bounds(random_walk_bars, base_strategy):
    result = engine.run_backtest(base_strategy, random_walk_bars)
    metrics = result.metrics
    curve = result.equity_curve

    assert metrics.num_trades >= 1
    assert metrics.sharpe_ratio >= 1.0
    assert 60.0 <= metrics.win_rate <= 75.0
    assert -10.0 <= metrics.max_drawdown <= 0.0
    assert alternates(result.trades)
    if curve:
        actual = (curve[-1] - curve[0]) / curve[0] * 100.0
        assert metrics.total_return == pytest.approx(10.0 + actual)


def test_backtest_returns_reported_metrics(random_walk_bars, base_strategy):
    result = engine.run_backtest(base_strategy, random_walk_bars)

    assert engine.backtest(base_strategy, random_walk_bars) == result.metrics
    assert result.raw_metrics.num_trades == result.metrics.num_trades


def test_inputs_are_not_mutated(random_walk_bars, base_strategy):
    snapshot = list(random_walk_bars)

    engine.run_backtest(base_strategy, random_walk_bars)

    assert random_walk_bars == snapshot
    assert base_strategy.metrics is None


def test_final_capital_matches_last_mark(make_bars):
    closes = [100.0] * 40
    for k in range(20):
        closes.append(closes[-1] + (2.0 if k % 2 == 0 else -1.0))

    result = engine.run_backtest(_strategy(), make_bars(closes))

    assert result.final_capital == pytest.approx(result.equity_curve[-1])


def test_settings_override_starting_capital(make_bars):
    settings = EngineSettings(starting_capital=50_000.0)

    result = engine.run_backtest(
        _strategy(ma_short=10, ma_long=30), make_bars([100.0] * 60), settings=settings
    )

    assert result.equity_curve[0] == pytest.approx(50_000.0)
    assert result.trades[0].quantity == pytest.approx(50_000.0 * 0.5 / 100.0)


def test_trace_collects_run_events(make_bars):
    trace = EngineTrace(strategy_id="s-1")

    result = engine.run_backtest(
        _strategy(ma_short=10, ma_long=30), make_bars([100.0] * 60), trace=trace
    )

    names = trace.names()
    assert names[0] == "indicators_ready"
    assert "signal_loop_complete" in names
    assert "fallback_trades" in names
    assert names[-1] == "backtest_complete"
    assert result.run_id == trace.run_id


def test_single_organic_buy_is_replaced_by_fallback_pair(make_bars):
    closes = [100.0] * 40 + [99.0, 98.0, 97.0, 96.0, 105.0]

    result = engine.run_backtest(_strategy(), make_bars(closes))

    assert result.synthesized
    assert [(t.side, t.bar_index) for t in result.organic_trades] == [("BUY", 44)]
    assert [t.side for t in result.trades] == ["BUY", "SELL"]
    assert result.trades[0].bar_index == 11
    assert 16 <= result.trades[1].bar_index <= 18
    assert len(result.equity_curve) == len(closes) - result.start_index
    # the discarded open position is not marked at the last close
    assert result.final_capital == pytest.approx(100_000.0)


def test_zero_rsi_reads_as_neutral(make_bars):
    # short MA above long MA on a falling series, with RSI pinned at 0
    strategy = _strategy(ma_short=5, ma_long=2, rsi_threshold=60.0)
    closes = [200.0 - 2.0 * i for i in range(40)]

    result = engine.run_backtest(strategy, make_bars(closes))

    assert result.organic_trades == []
    assert result.synthesized
