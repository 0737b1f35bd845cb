"""Variant generation, the backtest simulator and its metrics."""

from .engine import BacktestResult, backtest, run_backtest
from .metrics import MetricsReport, calculate_metrics
from .variants import generate_variants

__all__ = [
    "BacktestResult",
    "MetricsReport",
    "backtest",
    "calculate_metrics",
    "generate_variants",
    "run_backtest",
]
