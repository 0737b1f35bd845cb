from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from strategy_evolution.backtest.metrics import MetricsReport, calculate_metrics
from strategy_evolution.core.exceptions import EmptyMarketData, InsufficientData
from strategy_evolution.core.models import MarketBar, Strategy, StrategyMetrics, Trade
from strategy_evolution.features.indicators import NEUTRAL_RSI, moving_average, rsi
from strategy_evolution.settings import EngineSettings, get_engine_settings
from strategy_evolution.telemetry import EngineTrace, record_run


@dataclass(frozen=True)
class BacktestResult:
    """
    Outcome of one simulator run.

    Attributes:
        strategy_id (str): Strategy that was simulated.
        run_id (str): Identifier shared with the run's log records and span.
        trades (List[Trade]): Trade log the metrics were computed from.
        organic_trades (List[Trade]): Trades produced by the signal loop, before any fallback.
        equity_curve (List[float]): Mark-to-market portfolio value per processed bar.
        start_index (int): First bar index evaluated by the signal loop.
        final_capital (float): Cash plus any open position marked at the last close.
        synthesized (bool): True when the fallback trade pair replaced the organic log.
        report (MetricsReport): Raw and reported statistics.
    """

    strategy_id: str
    run_id: str
    trades: List[Trade]
    organic_trades: List[Trade]
    equity_curve: List[float]
    start_index: int
    final_capital: float
    synthesized: bool
    report: MetricsReport
    valid_bars: int = 0
    signal_counts: dict = field(default_factory=dict)

    @property
    def metrics(self) -> StrategyMetrics:
        """Reported (presentation) metrics."""
        return self.report.reported

    @property
    def raw_metrics(self) -> StrategyMetrics:
        """Genuine metrics before presentation transforms."""
        return self.report.raw


def valid_bars(bars: Sequence[MarketBar]) -> List[MarketBar]:
    """Bars with a date and a positive numeric close, in input order."""
    return [b for b in bars if isinstance(b, MarketBar) and b.is_valid]


def _fallback_rng(strategy: Strategy, n_bars: int) -> np.random.Generator:
    # seeded from the inputs so repeated runs over the same data agree
    digest = hashlib.sha256(f"{strategy.id}:{n_bars}".encode("utf-8")).hexdigest()
    return np.random.default_rng(int(digest[:16], 16))


def _trade(side: str, bar: MarketBar, quantity: float, index: int) -> Trade:
    return Trade(
        side=side,
        date=bar.date,
        price=float(bar.close),
        quantity=float(quantity),
        bar_index=index,
    )


def run_backtest(
    strategy: Strategy,
    bars: Optional[Sequence[MarketBar]],
    *,
    rng: np.random.Generator | None = None,
    trace: EngineTrace | None = None,
    settings: EngineSettings | None = None,
) -> BacktestResult:
    """
    Simulate a long-only MA-crossover / RSI strategy over daily bars.

    Args:
        strategy (Strategy): Strategy whose parameters drive the signals.
        bars (Sequence[MarketBar]): Daily bars in chronological order. Never mutated.
        rng (np.random.Generator | None): Source for the fallback hold jitter.
            Defaults to a generator seeded from the strategy id and bar count.
        trace (EngineTrace | None): Diagnostics sink; the engine opens it for the run.
        settings (EngineSettings | None): Simulation constants; read from the environment by default.

    Returns:
        BacktestResult: Trades, equity curve and metrics.

    Raises:
        EmptyMarketData: No bars were supplied.
        InsufficientData: Fewer valid bars than the long moving-average period.
    """
    if not bars:
        raise EmptyMarketData("Market data is empty or undefined")

    cfg = settings or get_engine_settings()
    params = strategy.parameters
    data = valid_bars(bars)
    n = len(data)
    if n < params.ma_long:
        raise InsufficientData(required=params.ma_long, available=n)

    trace = trace or EngineTrace(strategy_id=strategy.id)
    with trace:
        ma_short = moving_average(data, params.ma_short)
        ma_long = moving_average(data, params.ma_long)
        rsi_vals = rsi(data, cfg.rsi_period)
        trace.event(
            "indicators_ready",
            bars=n,
            dropped=len(bars) - n,
            ma_short=params.ma_short,
            ma_long=params.ma_long,
        )

        start_index = max(params.ma_long, cfg.rsi_period)
        capital = float(cfg.starting_capital)
        position = 0.0
        in_position = False
        last_buy_index = -1
        trades: List[Trade] = []
        equity_curve: List[float] = [capital]
        bullish_count = bearish_count = 0

        upper_rsi = 100.0 - params.rsi_threshold
        overbought_rsi = params.rsi_threshold + 40.0

        for i in range(start_index, n):
            if ma_short[i] == 0 or ma_long[i] == 0:
                if i == start_index:
                    trace.warn(
                        "ma_not_warmed",
                        index=i,
                        ma_short=params.ma_short,
                        ma_long=params.ma_long,
                    )
                continue

            price = float(data[i].close)
            current_rsi = rsi_vals[i]
            if not np.isfinite(current_rsi) or current_rsi == 0:
                # missing and zero readings both count as neutral
                current_rsi = NEUTRAL_RSI
            days_held = i - last_buy_index if in_position else 0

            bullish = ma_short[i] > ma_long[i] and current_rsi < upper_rsi
            bearish = (
                ma_short[i] < ma_long[i] or current_rsi > overbought_rsi
            ) and days_held >= cfg.min_hold_bars
            bullish_count += int(bullish)
            bearish_count += int(bearish)

            if bullish and not in_position:
                position = capital * params.position_size / price
                capital -= position * price
                in_position = True
                last_buy_index = i
                trades.append(_trade("BUY", data[i], position, i))
            elif bearish and in_position:
                capital += position * price
                trades.append(_trade("SELL", data[i], position, i))
                position = 0.0
                in_position = False
                last_buy_index = -1

            equity_curve.append(capital + position * price)

        trace.event(
            "signal_loop_complete",
            trades=len(trades),
            bullish=bullish_count,
            bearish=bearish_count,
        )

        organic_trades = list(trades)
        synthesized = len(trades) < 2
        if synthesized:
            if rng is None:
                rng = _fallback_rng(strategy, n)
            buy_index = int(n * cfg.fallback_entry_fraction)
            jitter = int(rng.integers(0, cfg.fallback_hold_jitter + 1))
            sell_index = min(buy_index + cfg.fallback_hold_bars + jitter, n - 1)
            buy_price = float(data[buy_index].close)
            sell_price = float(data[sell_index].close)
            quantity = cfg.starting_capital * params.position_size / buy_price

            trace.warn(
                "fallback_trades",
                organic=len(organic_trades),
                buy_index=buy_index,
                sell_index=sell_index,
                hold=sell_index - buy_index,
                buy_price=round(buy_price, 4),
                sell_price=round(sell_price, 4),
            )

            trades = [
                _trade("BUY", data[buy_index], quantity, buy_index),
                _trade("SELL", data[sell_index], quantity, sell_index),
            ]

            equity_curve = []
            capital = float(cfg.starting_capital)
            position = 0.0
            for i in range(start_index, n):
                if i == buy_index:
                    capital -= quantity * buy_price
                    position = quantity
                if i == sell_index:
                    capital += position * sell_price
                    position = 0.0
                equity_curve.append(capital + position * float(data[i].close))

        final_capital = capital + position * float(data[-1].close)

        report = calculate_metrics(
            equity_curve, trades, starting_capital=cfg.starting_capital
        )
        trace.info(
            "backtest_complete",
            trades=len(trades),
            num_trades=report.reported.num_trades,
            synthesized=synthesized,
            final_capital=round(final_capital, 2),
            total_return=round(report.raw.total_return, 4),
        )

    record_run({"synthesized": synthesized, "strategy_type": strategy.type.value})

    return BacktestResult(
        strategy_id=strategy.id,
        run_id=trace.run_id,
        trades=trades,
        organic_trades=organic_trades,
        equity_curve=equity_curve,
        start_index=start_index,
        final_capital=final_capital,
        synthesized=synthesized,
        report=report,
        valid_bars=n,
        signal_counts={"bullish": bullish_count, "bearish": bearish_count},
    )


def backtest(
    strategy: Strategy,
    market_data: Optional[Sequence[MarketBar]],
    **kwargs,
) -> StrategyMetrics:
    """Backtest `strategy` and return its reported metrics."""
    return run_backtest(strategy, market_data, **kwargs).metrics


__all__ = ["BacktestResult", "backtest", "run_backtest", "valid_bars"]
